"""Meta Ads (Facebook/Instagram) platform client.

Uses the official facebook-business Python SDK against the Meta Marketing
API.  Each client owns its own ``FacebookAdsApi`` session, bound to one access
token and a bounded per-call timeout, so a user-level client and a
page-scoped client can coexist in the same process.

All methods block; callers on the event loop run them in a worker thread.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar

import requests
from facebook_business.adobjects.adaccount import AdAccount
from facebook_business.adobjects.adimage import AdImage
from facebook_business.api import FacebookAdsApi
from facebook_business.exceptions import FacebookRequestError
from facebook_business.session import FacebookSession

from provisioner.platforms.base import AdPlatformClient, UploadedImage
from provisioner.platforms.exceptions import (
    ImageUploadError,
    MetaAPIError,
    PhotoPublishError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

CAMPAIGN_LIST_FIELDS: list[str] = [
    "id",
    "name",
    "objective",
    "status",
    "created_time",
    "updated_time",
    "daily_budget",
    "lifetime_budget",
]

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _account_path(ad_account_id: str) -> str:
    """Return ``act_<id>`` whether or not the caller included the prefix."""
    return f"act_{ad_account_id.removeprefix('act_')}"


def _from_request_error(action: str, exc: FacebookRequestError) -> MetaAPIError:
    return MetaAPIError(
        f"{action} failed: {exc.api_error_message()}",
        error_code=exc.api_error_code(),
        error_subcode=exc.api_error_subcode(),
        http_status=exc.http_status(),
        body=exc.body(),
    )


def _from_transport_error(action: str, exc: requests.RequestException) -> MetaAPIError:
    return MetaAPIError(
        f"{action} failed: {exc}",
        body={"error": str(exc)},
        timeout=isinstance(exc, requests.Timeout),
    )


# ---------------------------------------------------------------------------
# MetaAdsClient
# ---------------------------------------------------------------------------


class MetaAdsClient(AdPlatformClient):
    """Real Meta Marketing API client using the facebook-business SDK."""

    def __init__(
        self,
        access_token: str,
        *,
        app_secret: str = "",
        api_version: str = "v19.0",
        timeout: float = 8.0,
    ) -> None:
        self._access_token = access_token
        self._app_secret = app_secret
        self._api_version = api_version
        self._timeout = timeout

        session = FacebookSession(
            app_secret=app_secret or None,
            access_token=access_token,
            timeout=timeout,
        )
        self._api = FacebookAdsApi(session, api_version=api_version)

    def with_token(self, access_token: str) -> MetaAdsClient:
        return MetaAdsClient(
            access_token,
            app_secret=self._app_secret,
            api_version=self._api_version,
            timeout=self._timeout,
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _account(self, ad_account_id: str) -> AdAccount:
        return AdAccount(_account_path(ad_account_id), api=self._api)

    def _invoke(self, action: str, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run one SDK call, translating SDK and transport errors to MetaAPIError."""
        try:
            return func(*args, **kwargs)
        except FacebookRequestError as exc:
            logger.warning(
                "%s rejected by Meta (code=%s, status=%s): %s",
                action,
                exc.api_error_code(),
                exc.http_status(),
                exc.api_error_message(),
            )
            raise _from_request_error(action, exc) from exc
        except requests.RequestException as exc:
            logger.warning("%s transport failure: %s", action, exc)
            raise _from_transport_error(action, exc) from exc

    def _graph_get(self, action: str, path: tuple[str, ...], params: dict[str, Any]) -> dict[str, Any]:
        response = self._invoke(action, self._api.call, "GET", path, params=params)
        return response.json()

    # ------------------------------------------------------------------
    # Creation endpoints
    # ------------------------------------------------------------------

    def create_campaign(self, ad_account_id: str, params: dict[str, Any]) -> str:
        campaign = self._invoke(
            "Campaign creation", self._account(ad_account_id).create_campaign, params=params
        )
        return campaign["id"]

    def create_ad_set(self, ad_account_id: str, params: dict[str, Any]) -> str:
        adset = self._invoke(
            "Ad set creation", self._account(ad_account_id).create_ad_set, params=params
        )
        return adset["id"]

    def create_ad_creative(self, ad_account_id: str, params: dict[str, Any]) -> str:
        creative = self._invoke(
            "Ad creative creation",
            self._account(ad_account_id).create_ad_creative,
            params=params,
        )
        return creative["id"]

    def create_ad(self, ad_account_id: str, params: dict[str, Any]) -> str:
        ad = self._invoke("Ad creation", self._account(ad_account_id).create_ad, params=params)
        return ad["id"]

    # ------------------------------------------------------------------
    # Image upload / photo publishing
    # ------------------------------------------------------------------

    def upload_image(self, ad_account_id: str, file_path: str) -> UploadedImage:
        """Upload a local image file to the ad account's image library."""
        image = AdImage(parent_id=_account_path(ad_account_id), api=self._api)
        image[AdImage.Field.filename] = file_path
        try:
            self._invoke("Image upload", image.remote_create)
        except MetaAPIError as exc:
            raise ImageUploadError(
                f"Meta image upload failed: {exc.message}",
                details={"file_path": file_path, **exc.details},
            ) from exc

        url = image[AdImage.Field.url] if AdImage.Field.url in image else None
        return UploadedImage(hash=image[AdImage.Field.hash], url=url)

    def publish_photo(self, page_id: str, file_path: str, caption: str) -> str:
        try:
            with open(file_path, "rb") as fh:
                response = self._invoke(
                    "Photo publish",
                    self._api.call,
                    "POST",
                    (page_id, "photos"),
                    params={"caption": caption, "published": "true"},
                    files={"source": fh},
                )
        except MetaAPIError as exc:
            raise PhotoPublishError(
                f"Publishing photo on page {page_id} failed: {exc.message}",
                details={"page_id": page_id, **exc.details},
            ) from exc

        data = response.json()
        # Photos answer with their own id and the feed post id ("<page>_<post>")
        post_id = data.get("post_id")
        if post_id:
            return post_id
        if data.get("id"):
            return f"{page_id}_{data['id']}"
        raise PhotoPublishError(
            "Photo publish response carried no id",
            details={"page_id": page_id, "body": data},
        )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def lookup_post_id(self, post_url: str) -> str | None:
        """Ask the Graph API URL node for the post behind *post_url*."""
        data = self._graph_get(
            "Post URL lookup", (), {"id": post_url, "fields": "og_object{id}"}
        )
        og_id = (data.get("og_object") or {}).get("id")
        if og_id:
            return str(og_id)

        # URL nodes echo the URL back as their id; only a real id is useful
        node_id = data.get("id")
        if node_id and "/" not in str(node_id):
            return str(node_id)
        return None

    def get_post(self, object_story_id: str) -> dict[str, Any]:
        return self._graph_get(
            "Post metadata lookup",
            (object_story_id,),
            {"fields": "id,is_published,permalink_url"},
        )

    def get_page_access_token(self, page_id: str) -> str | None:
        data = self._graph_get("Page token lookup", (page_id,), {"fields": "access_token"})
        return data.get("access_token")

    def list_campaigns(self, ad_account_id: str) -> list[dict[str, Any]]:
        cursor = self._invoke(
            "Campaign listing",
            self._account(ad_account_id).get_campaigns,
            fields=CAMPAIGN_LIST_FIELDS,
        )
        return self._invoke(
            "Campaign listing", lambda: [c.export_all_data() for c in cursor]
        )
