from __future__ import annotations

import copy
import io
from typing import Any

import pytest
from PIL import Image

from provisioner.platforms.base import AdPlatformClient, UploadedImage


# ---------------------------------------------------------------------------
# Fake platform client
# ---------------------------------------------------------------------------


class FakeAdsClient(AdPlatformClient):
    """Deterministic in-memory platform client for tests.

    Every call is appended to ``calls`` as ``(method, token, args)``; the log
    is shared with clients derived through ``with_token``.  Set
    ``failures[method]`` to an exception to make that method raise it.
    """

    def __init__(self, access_token: str = "user-token") -> None:
        self.access_token = access_token
        self.calls: list[tuple[str, str, tuple[Any, ...]]] = []
        self.failures: dict[str, Exception] = {}
        self.lookup_result: str | None = None
        self.post_data: dict[str, Any] | None = None
        self.page_token: str | None = "page-token"
        self.remote_campaigns: list[dict[str, Any]] = []
        self.published_story_id = "123_555000"

    def with_token(self, access_token: str) -> FakeAdsClient:
        clone = copy.copy(self)
        clone.access_token = access_token
        return clone

    def _record(self, method: str, *args: Any) -> None:
        self.calls.append((method, self.access_token, args))
        if method in self.failures:
            raise self.failures[method]

    def methods(self) -> list[str]:
        return [c[0] for c in self.calls]

    def create_campaign(self, ad_account_id: str, params: dict[str, Any]) -> str:
        self._record("create_campaign", ad_account_id, params)
        return "cmp_1"

    def create_ad_set(self, ad_account_id: str, params: dict[str, Any]) -> str:
        self._record("create_ad_set", ad_account_id, params)
        return "adset_1"

    def create_ad_creative(self, ad_account_id: str, params: dict[str, Any]) -> str:
        self._record("create_ad_creative", ad_account_id, params)
        return "creative_1"

    def create_ad(self, ad_account_id: str, params: dict[str, Any]) -> str:
        self._record("create_ad", ad_account_id, params)
        return "ad_1"

    def upload_image(self, ad_account_id: str, file_path: str) -> UploadedImage:
        self._record("upload_image", ad_account_id, file_path)
        return UploadedImage(hash="img_hash_1", url="https://cdn.example.com/img.png")

    def lookup_post_id(self, post_url: str) -> str | None:
        self._record("lookup_post_id", post_url)
        return self.lookup_result

    def get_post(self, object_story_id: str) -> dict[str, Any]:
        self._record("get_post", object_story_id)
        if self.post_data is not None:
            return self.post_data
        return {"id": object_story_id, "is_published": True}

    def get_page_access_token(self, page_id: str) -> str | None:
        self._record("get_page_access_token", page_id)
        return self.page_token

    def publish_photo(self, page_id: str, file_path: str, caption: str) -> str:
        self._record("publish_photo", page_id, file_path, caption)
        return self.published_story_id

    def list_campaigns(self, ad_account_id: str) -> list[dict[str, Any]]:
        self._record("list_campaigns", ad_account_id)
        return list(self.remote_campaigns)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def _make_image(width: int = 800, height: int = 800, fmt: str = "PNG") -> bytes:
    img = Image.new("RGB", (width, height), color=(200, 80, 40))
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def fake_client() -> FakeAdsClient:
    return FakeAdsClient()


@pytest.fixture
def png_bytes() -> bytes:
    return _make_image()


@pytest.fixture
def image_file(tmp_path, png_bytes) -> str:
    """A valid PNG on disk, as the HTTP layer would stage it."""
    path = tmp_path / "upload.png"
    path.write_bytes(png_bytes)
    return str(path)


@pytest.fixture
def base_form() -> dict[str, Any]:
    return {
        "adAccountId": "act_1234567890",
        "pageId": "123",
        "campaignName": "Pizza Night",
        "weeklyBudget": "700",
        "startDate": "2024-06-01T10:00:00",
        "callToAction": "ORDER_NOW",
        "description": "Two pizzas for the price of one",
        "title": "Pizza Night",
        "location": {"latitude": -23.56, "longitude": -46.64, "radius": 5},
    }
