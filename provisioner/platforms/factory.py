from __future__ import annotations

from provisioner.platforms.base import AdPlatformClient
from provisioner.platforms.dry_run import DryRunAdsClient
from provisioner.settings import settings


def get_ads_client(access_token: str, *, dry_run: bool | None = None) -> AdPlatformClient:
    """Return the ad platform client bound to *access_token*.

    When dry_run is true (default: ``USE_DRY_RUN_EXECUTION``) the
    DryRunAdsClient is used and no network call is ever made.
    """
    if dry_run is None:
        dry_run = settings.USE_DRY_RUN_EXECUTION
    if dry_run:
        return DryRunAdsClient(access_token)

    from provisioner.platforms.meta_ads import MetaAdsClient

    return MetaAdsClient(
        access_token,
        app_secret=settings.META_APP_SECRET,
        api_version=settings.META_API_VERSION,
        timeout=settings.META_HTTP_TIMEOUT_SECONDS,
    )
