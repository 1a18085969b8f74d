import os
from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from starlette.datastructures import UploadFile

from provisioner.dependencies import (
    get_campaign_repository,
    get_platform_client,
    get_token_store,
)
from provisioner.platforms.base import AdPlatformClient
from provisioner.platforms.exceptions import ImageValidationError, ValidationError
from provisioner.repository import CampaignRecord, CampaignRepository
from provisioner.schemas import CampaignFromPostIn, CampaignListOut, HealthOut, ProvisionOut
from provisioner.services.listing import list_campaigns
from provisioner.services.normalizer import SourceKind, normalize, strip_account_prefix
from provisioner.services.pipeline import CampaignPipeline
from provisioner.settings import settings
from provisioner.tokens import TokenStore
from provisioner.utils.image_utils import ImageProcessor

router = APIRouter(prefix="/campaigns", tags=["campaigns"])
health_router = APIRouter(tags=["health"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _stage_upload(upload: UploadFile) -> str:
    """Save an uploaded image to a temp file and return its path."""
    data = await upload.read()
    if len(data) > settings.MAX_UPLOAD_BYTES:
        raise ImageValidationError(
            f"Uploaded image exceeds {settings.MAX_UPLOAD_BYTES:,} bytes",
            details={"size_bytes": len(data), "filename": upload.filename},
        )
    suffix = os.path.splitext(upload.filename or "")[1] or ".img"
    return ImageProcessor.save_to_tempfile(data, suffix=suffix)


async def _read_form(request: Request) -> tuple[dict[str, Any], str | None]:
    """Return the form's text fields plus the staged ``imageFile`` path."""
    form = await request.form()
    raw: dict[str, Any] = {
        k: v for k, v in form.items() if isinstance(v, str) and k != "imageFile"
    }
    upload = form.get("imageFile")
    staged: str | None = None
    if isinstance(upload, UploadFile) and upload.filename:
        staged = await _stage_upload(upload)
        raw["imageFile"] = staged
    return raw, staged


async def _provision(
    raw: dict[str, Any],
    kind: SourceKind,
    *,
    staged: str | None,
    tokens: TokenStore,
    client: AdPlatformClient,
    repository: CampaignRepository,
) -> ProvisionOut:
    try:
        provisioning_request = normalize(raw, kind=kind)
        pipeline = CampaignPipeline(client, tokens)
        result = await pipeline.provision(provisioning_request)
    finally:
        ImageProcessor.discard(staged)

    repository.append(
        provisioning_request.ad_account_id,
        CampaignRecord.from_result(provisioning_request, result),
    )
    return ProvisionOut(
        message="Ad created and published as ACTIVE",
        campaignId=result.campaign_id,
        adSetId=result.ad_set_id,
        creativeId=result.creative_id,
        adId=result.ad_id,
        status="ACTIVE",
        objectStoryId=result.object_story_id,
        imageHash=result.image_hash,
        warnings=result.warnings,
    )


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.post("/from-image", response_model=ProvisionOut, status_code=201)
async def create_from_image(
    request: Request,
    tokens: TokenStore = Depends(get_token_store),
    client: AdPlatformClient = Depends(get_platform_client),
    repository: CampaignRepository = Depends(get_campaign_repository),
):
    """Create campaign, ad set, creative and ad from an uploaded image (or ``imageUrl``)."""
    raw, staged = await _read_form(request)
    return await _provision(
        raw, "image", staged=staged, tokens=tokens, client=client, repository=repository
    )


@router.post("/from-post", response_model=ProvisionOut, status_code=201)
async def create_from_post(
    payload: CampaignFromPostIn,
    tokens: TokenStore = Depends(get_token_store),
    client: AdPlatformClient = Depends(get_platform_client),
    repository: CampaignRepository = Depends(get_campaign_repository),
):
    """Promote an existing page post, referenced by its URL."""
    raw = payload.model_dump(exclude_none=True)
    return await _provision(
        raw, "post", staged=None, tokens=tokens, client=client, repository=repository
    )


@router.post("/publish-and-promote", response_model=ProvisionOut, status_code=201)
async def publish_and_promote(
    request: Request,
    tokens: TokenStore = Depends(get_token_store),
    client: AdPlatformClient = Depends(get_platform_client),
    repository: CampaignRepository = Depends(get_campaign_repository),
):
    """Publish an uploaded photo on the page, then promote the new post."""
    raw, staged = await _read_form(request)
    return await _provision(
        raw,
        "published_photo",
        staged=staged,
        tokens=tokens,
        client=client,
        repository=repository,
    )


@router.get("", response_model=CampaignListOut)
async def get_campaigns(
    adAccountId: str | None = Query(None),
    client: AdPlatformClient = Depends(get_platform_client),
    repository: CampaignRepository = Depends(get_campaign_repository),
):
    """List cached and live campaigns for an ad account."""
    if not adAccountId:
        raise ValidationError(missing_fields=["adAccountId"])
    ad_account_id = strip_account_prefix(adAccountId)
    campaigns, upstream_error = await list_campaigns(ad_account_id, repository, client)
    return CampaignListOut(
        adAccountId=ad_account_id, campaigns=campaigns, upstreamError=upstream_error
    )


@health_router.get("/health", response_model=HealthOut)
async def health():
    return HealthOut(
        status="ok",
        dryRun=settings.USE_DRY_RUN_EXECUTION,
        apiVersion=settings.META_API_VERSION,
    )
