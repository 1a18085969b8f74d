from __future__ import annotations

import hashlib
import uuid
from typing import Any

from provisioner.platforms.base import AdPlatformClient, UploadedImage


class DryRunAdsClient(AdPlatformClient):
    """Simulates platform API calls with realistic fake responses.

    Used for development, testing, and end-to-end checks of the pipeline
    without touching a real ad account.  Every creation call is recorded in
    ``created`` so callers can inspect what would have been sent.
    """

    def __init__(self, access_token: str = "dry-run") -> None:
        self.access_token = access_token
        self.created: list[tuple[str, dict[str, Any]]] = []

    def with_token(self, access_token: str) -> DryRunAdsClient:
        client = DryRunAdsClient(access_token)
        client.created = self.created  # one shared log per request
        return client

    def _create(self, kind: str, params: dict[str, Any]) -> str:
        self.created.append((kind, dict(params)))
        return f"dry-run-{kind}-{uuid.uuid4().hex[:8]}"

    def create_campaign(self, ad_account_id: str, params: dict[str, Any]) -> str:
        return self._create("campaign", params)

    def create_ad_set(self, ad_account_id: str, params: dict[str, Any]) -> str:
        return self._create("adset", params)

    def create_ad_creative(self, ad_account_id: str, params: dict[str, Any]) -> str:
        return self._create("creative", params)

    def create_ad(self, ad_account_id: str, params: dict[str, Any]) -> str:
        return self._create("ad", params)

    def upload_image(self, ad_account_id: str, file_path: str) -> UploadedImage:
        with open(file_path, "rb") as fh:
            digest = hashlib.md5(fh.read()).hexdigest()
        return UploadedImage(
            hash=digest, url=f"https://dry-run.example.com/images/{digest}.png"
        )

    def lookup_post_id(self, post_url: str) -> str | None:
        # No URL index offline; the resolver falls back to its pattern matchers
        return None

    def get_post(self, object_story_id: str) -> dict[str, Any]:
        return {"id": object_story_id, "is_published": True}

    def get_page_access_token(self, page_id: str) -> str | None:
        return None

    def publish_photo(self, page_id: str, file_path: str, caption: str) -> str:
        self.created.append(("photo", {"page_id": page_id, "caption": caption}))
        return f"{page_id}_{uuid.uuid4().int % 10**15}"

    def list_campaigns(self, ad_account_id: str) -> list[dict[str, Any]]:
        return []
