"""Exceptions for the provisioning pipeline and the platform client layer.

Every error carries a human-readable message plus a ``details`` dict that is
safe to return to the caller.  The HTTP layer maps each class to a status code;
nothing here knows about HTTP.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from provisioner.platforms.base import PipelineResult


class PlatformError(Exception):
    """Base exception for all provisioning errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = details or {}


class ValidationError(PlatformError):
    """Raised by the normalizer with every missing and invalid field at once."""

    def __init__(
        self,
        missing_fields: list[str] | None = None,
        invalid_fields: dict[str, str] | None = None,
    ) -> None:
        self.missing_fields: list[str] = list(missing_fields or [])
        self.invalid_fields: dict[str, str] = dict(invalid_fields or {})
        parts = []
        if self.missing_fields:
            parts.append(f"missing: {', '.join(self.missing_fields)}")
        if self.invalid_fields:
            parts.append(f"invalid: {', '.join(self.invalid_fields)}")
        super().__init__(
            f"Request validation failed ({'; '.join(parts)})",
            details={
                "missing_fields": self.missing_fields,
                "invalid_fields": self.invalid_fields,
            },
        )


class AuthenticationError(PlatformError):
    """Raised when the caller supplied no usable platform access token."""


class ResolutionError(PlatformError):
    """Raised when a post URL cannot be mapped to a post id."""

    def __init__(self, post_url: str, reason: str = "unparseable URL") -> None:
        self.post_url = post_url
        self.reason = reason
        super().__init__(
            f"Could not resolve post URL: {reason}",
            details={"post_url": post_url, "reason": reason},
        )


class PreparationError(PlatformError):
    """Base for failures while preparing the creative."""


class ImageDownloadError(PreparationError):
    """Raised when an image cannot be downloaded from the provided URL."""


class ImageValidationError(PreparationError):
    """Raised when an image fails validation (corrupt, wrong format, too small, etc.)."""


class ImageUploadError(PreparationError):
    """Raised when an image upload to the ad platform fails."""


class PhotoPublishError(PreparationError):
    """Raised when publishing a photo on the page fails."""


class MetaAPIError(PlatformError):
    """A single Graph API call failed (platform error body or transport failure)."""

    def __init__(
        self,
        message: str,
        *,
        error_code: int | None = None,
        error_subcode: int | None = None,
        http_status: int | None = None,
        body: Any = None,
        timeout: bool = False,
    ) -> None:
        self.error_code = error_code
        self.error_subcode = error_subcode
        self.http_status = http_status
        self.body = body
        self.timeout = timeout
        super().__init__(
            message,
            details={
                "error_code": error_code,
                "error_subcode": error_subcode,
                "http_status": http_status,
                "body": body,
                "timeout": timeout,
            },
        )

    @property
    def is_permission_error(self) -> bool:
        # 10 and 200-299 are the Graph API permission codes
        if self.error_code == 10 or (
            self.error_code is not None and 200 <= self.error_code <= 299
        ):
            return True
        return self.http_status == 403


class PipelineError(PlatformError):
    """A pipeline stage failed.  ``result`` holds the ids created before it."""

    def __init__(
        self, stage: str, cause: PlatformError, result: PipelineResult
    ) -> None:
        self.stage = stage
        self.cause = cause
        self.result = result
        super().__init__(
            f"Pipeline failed at stage '{stage}': {cause.message}",
            details={
                "stage": stage,
                "cause": cause.details,
                "created_ids": result.created_ids(),
            },
        )


class UpstreamError(PipelineError):
    """A stage failed because the platform rejected (or never answered) a call."""

    cause: MetaAPIError
