import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from provisioner.api import health_router, router
from provisioner.logging_config import configure_logging
from provisioner.platforms.exceptions import (
    AuthenticationError,
    ImageValidationError,
    MetaAPIError,
    PipelineError,
    PlatformError,
    PreparationError,
    ResolutionError,
    ValidationError,
)
from provisioner.repository import CampaignRepository, InMemoryCampaignRepository

logger = logging.getLogger(__name__)


def _status_for(exc: PlatformError) -> int:
    if isinstance(exc, (ValidationError, ResolutionError, ImageValidationError)):
        return 400
    if isinstance(exc, AuthenticationError):
        return 401
    if isinstance(exc, PipelineError):
        return _status_for(exc.cause)
    if isinstance(exc, (PreparationError, MetaAPIError)):
        return 502
    return 500


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "message": exc.message,
            "missingFields": exc.missing_fields,
            "invalidFields": exc.invalid_fields,
        },
    )


async def resolution_error_handler(request: Request, exc: ResolutionError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"message": exc.message, "reason": exc.reason, "postUrl": exc.post_url},
    )


async def pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
    return JSONResponse(
        status_code=_status_for(exc),
        content={
            "message": exc.message,
            "error": exc.cause.details,
            "stage": exc.stage,
            "createdIds": exc.result.created_ids(),
        },
    )


async def platform_error_handler(request: Request, exc: PlatformError) -> JSONResponse:
    status_code = _status_for(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    content = {"message": exc.message}
    if exc.details:
        content["error"] = exc.details
    return JSONResponse(status_code=status_code, content=content)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"message": "Internal server error", "error": str(exc)},
    )


def create_app(repository: CampaignRepository | None = None) -> FastAPI:
    configure_logging()

    app = FastAPI(title="Campaign Provisioner", version="0.1.0")
    app.state.campaign_repository = repository or InMemoryCampaignRepository()

    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(ResolutionError, resolution_error_handler)
    app.add_exception_handler(PipelineError, pipeline_error_handler)
    app.add_exception_handler(PlatformError, platform_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(router)
    app.include_router(health_router)
    return app


app = create_app()
