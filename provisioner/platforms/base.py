from __future__ import annotations

import enum
from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Platform constants
# ---------------------------------------------------------------------------

# Every campaign is created with this objective, whatever the client asked for.
EFFECTIVE_OBJECTIVE = "OUTCOME_TRAFFIC"

DEFAULT_CALL_TO_ACTION = "LEARN_MORE"

ALLOWED_CALLS_TO_ACTION: frozenset[str] = frozenset(
    {
        "LEARN_MORE",
        "SHOP_NOW",
        "ORDER_NOW",
        "BOOK_TRAVEL",
        "CONTACT_US",
        "GET_QUOTE",
        "SEND_MESSAGE",
        "WHATSAPP_MESSAGE",
        "SIGN_UP",
        "DOWNLOAD",
    }
)

BILLING_EVENT = "IMPRESSIONS"
OPTIMIZATION_GOAL = "LINK_CLICKS"
BID_STRATEGY = "LOWEST_COST_WITHOUT_CAP"
LIVE_STATUS = "ACTIVE"


class PipelineState(str, enum.Enum):
    START = "start"
    CAMPAIGN_CREATED = "campaign_created"
    ADSET_CREATED = "adset_created"
    CREATIVE_READY = "creative_ready"
    AD_CREATED = "ad_created"
    FAILED = "failed"


class Stage(str, enum.Enum):
    CAMPAIGN = "campaign"
    ADSET = "adset"
    CREATIVE = "creative"
    AD = "ad"


# ---------------------------------------------------------------------------
# Request model
# ---------------------------------------------------------------------------


class GeoLocation(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float
    radius_km: float


class ImageSource(BaseModel):
    """A new image creative, either a local (temp) file or a remote URL."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["image"] = "image"
    file_path: str | None = None
    image_url: str | None = None


class ExistingPostSource(BaseModel):
    """Promote a post that already exists on the page."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["post"] = "post"
    post_url: str


class PublishedPhotoSource(BaseModel):
    """Publish a photo on the page first, then promote the resulting post."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["published_photo"] = "published_photo"
    file_path: str
    caption: str


CreativeSource = Annotated[
    Union[ImageSource, ExistingPostSource, PublishedPhotoSource],
    Field(discriminator="kind"),
]


class ProvisioningRequest(BaseModel):
    """Normalised, validated input to the provisioning pipeline."""

    model_config = ConfigDict(frozen=True)

    ad_account_id: str  # without the "act_" prefix
    page_id: str
    campaign_name: str
    weekly_budget: float = Field(ge=0, allow_inf_nan=False)
    daily_budget_minor_units: int = Field(ge=0)
    start_time: datetime
    end_time: datetime | None = None
    location: GeoLocation
    creative_source: CreativeSource
    ad_description: str = ""
    ad_title: str | None = None
    link_url: str | None = None
    call_to_action: str = DEFAULT_CALL_TO_ACTION
    # The client-supplied objective is recorded but never sent upstream.
    requested_objective: str | None = None
    effective_objective: str = EFFECTIVE_OBJECTIVE

    @property
    def account_path(self) -> str:
        return f"act_{self.ad_account_id}"


# ---------------------------------------------------------------------------
# Pipeline outputs
# ---------------------------------------------------------------------------


class ResolvedPostReference(BaseModel):
    model_config = ConfigDict(frozen=True)

    page_id: str
    post_id: str
    source: Literal["lookup", "pattern"]
    warnings: tuple[str, ...] = ()

    @property
    def object_story_id(self) -> str:
        return f"{self.page_id}_{self.post_id}"


class UploadedImage(BaseModel):
    hash: str
    url: str | None = None


class CreativePayload(BaseModel):
    """Params for the AdCreative create call, plus what the preparer learned."""

    params: dict[str, Any]
    image_hash: str | None = None
    object_story_id: str | None = None


class PipelineResult(BaseModel):
    """Ids of the platform objects created so far."""

    state: PipelineState = PipelineState.START
    failed_stage: Stage | None = None
    campaign_id: str | None = None
    ad_set_id: str | None = None
    creative_id: str | None = None
    ad_id: str | None = None
    image_hash: str | None = None
    object_story_id: str | None = None
    warnings: list[str] = Field(default_factory=list)

    def created_ids(self) -> dict[str, str]:
        ids = {
            "campaignId": self.campaign_id,
            "adSetId": self.ad_set_id,
            "creativeId": self.creative_id,
            "adId": self.ad_id,
        }
        return {k: v for k, v in ids.items() if v is not None}


# ---------------------------------------------------------------------------
# Platform client interface
# ---------------------------------------------------------------------------


class AdPlatformClient:
    """Blocking, stateless caller for the ad platform.

    One instance is bound to one access token.  The pipeline never talks to
    the platform except through this interface, so the real Meta client and
    the dry-run client are interchangeable.
    """

    def with_token(self, access_token: str) -> AdPlatformClient:
        """Return a client of the same kind bound to another token."""
        raise NotImplementedError

    # Creation endpoints -- each returns the new object id
    def create_campaign(self, ad_account_id: str, params: dict[str, Any]) -> str:
        raise NotImplementedError

    def create_ad_set(self, ad_account_id: str, params: dict[str, Any]) -> str:
        raise NotImplementedError

    def create_ad_creative(self, ad_account_id: str, params: dict[str, Any]) -> str:
        raise NotImplementedError

    def create_ad(self, ad_account_id: str, params: dict[str, Any]) -> str:
        raise NotImplementedError

    # Auxiliary endpoints
    def upload_image(self, ad_account_id: str, file_path: str) -> UploadedImage:
        raise NotImplementedError

    def lookup_post_id(self, post_url: str) -> str | None:
        raise NotImplementedError

    def get_post(self, object_story_id: str) -> dict[str, Any]:
        raise NotImplementedError

    def get_page_access_token(self, page_id: str) -> str | None:
        raise NotImplementedError

    def publish_photo(self, page_id: str, file_path: str, caption: str) -> str:
        """Publish a photo on the page and return its object story id."""
        raise NotImplementedError

    def list_campaigns(self, ad_account_id: str) -> list[dict[str, Any]]:
        raise NotImplementedError
