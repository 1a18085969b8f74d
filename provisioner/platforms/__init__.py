from provisioner.platforms.base import (
    AdPlatformClient,
    CreativePayload,
    ExistingPostSource,
    GeoLocation,
    ImageSource,
    PipelineResult,
    PipelineState,
    ProvisioningRequest,
    PublishedPhotoSource,
    ResolvedPostReference,
    Stage,
    UploadedImage,
)
from provisioner.platforms.dry_run import DryRunAdsClient
from provisioner.platforms.exceptions import (
    AuthenticationError,
    ImageDownloadError,
    ImageUploadError,
    ImageValidationError,
    MetaAPIError,
    PhotoPublishError,
    PipelineError,
    PlatformError,
    PreparationError,
    ResolutionError,
    UpstreamError,
    ValidationError,
)
from provisioner.platforms.factory import get_ads_client
from provisioner.platforms.meta_ads import MetaAdsClient

__all__ = [
    "AdPlatformClient",
    "AuthenticationError",
    "CreativePayload",
    "DryRunAdsClient",
    "ExistingPostSource",
    "GeoLocation",
    "ImageDownloadError",
    "ImageSource",
    "ImageUploadError",
    "ImageValidationError",
    "MetaAPIError",
    "MetaAdsClient",
    "PhotoPublishError",
    "PipelineError",
    "PipelineResult",
    "PipelineState",
    "PlatformError",
    "PreparationError",
    "ProvisioningRequest",
    "PublishedPhotoSource",
    "ResolutionError",
    "ResolvedPostReference",
    "Stage",
    "UpstreamError",
    "UploadedImage",
    "ValidationError",
    "get_ads_client",
]
