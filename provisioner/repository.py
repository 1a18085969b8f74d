"""Local cache of provisioned campaigns.

Entries are appended after a successful provisioning so that new campaigns
show up in listings before the platform's own listing catches up.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field

from provisioner.platforms.base import (
    LIVE_STATUS,
    GeoLocation,
    PipelineResult,
    ProvisioningRequest,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CampaignRecord(BaseModel):
    id: str
    name: str
    ad_account_id: str
    page_id: str
    campaign_id: str
    ad_set_id: str
    creative_id: str
    ad_id: str
    weekly_budget: float
    daily_budget: float  # major units, as listed
    start_time: datetime
    end_time: datetime | None = None
    location: GeoLocation
    call_to_action: str
    objective: str
    status: str = LIVE_STATUS
    type: Literal["image", "post", "published_photo"]
    object_story_id: str | None = None
    image_hash: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def from_result(
        cls, request: ProvisioningRequest, result: PipelineResult
    ) -> CampaignRecord:
        return cls(
            id=result.campaign_id,
            name=request.campaign_name,
            ad_account_id=request.ad_account_id,
            page_id=request.page_id,
            campaign_id=result.campaign_id,
            ad_set_id=result.ad_set_id,
            creative_id=result.creative_id,
            ad_id=result.ad_id,
            weekly_budget=request.weekly_budget,
            daily_budget=request.daily_budget_minor_units / 100,
            start_time=request.start_time,
            end_time=request.end_time,
            location=request.location,
            call_to_action=request.call_to_action,
            objective=request.effective_objective,
            type=request.creative_source.kind,
            object_story_id=result.object_story_id,
            image_hash=result.image_hash,
        )

    def to_listing(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status,
            "objective": self.objective,
            "adAccountId": self.ad_account_id,
            "pageId": self.page_id,
            "adSetId": self.ad_set_id,
            "creativeId": self.creative_id,
            "adId": self.ad_id,
            "weeklyBudget": self.weekly_budget,
            "dailyBudget": self.daily_budget,
            "startTime": self.start_time.isoformat(),
            "endTime": self.end_time.isoformat() if self.end_time else None,
            "location": self.location.model_dump(),
            "callToAction": self.call_to_action,
            "type": self.type,
            "objectStoryId": self.object_story_id,
            "imageHash": self.image_hash,
            "createdAt": self.created_at.isoformat(),
            "source": "local",
        }


class CampaignRepository:
    """Append-only store of created campaigns, keyed by ad account."""

    def append(self, ad_account_id: str, record: CampaignRecord) -> None:
        raise NotImplementedError

    def list(self, ad_account_id: str) -> list[CampaignRecord]:
        raise NotImplementedError


class InMemoryCampaignRepository(CampaignRepository):
    """Process-local repository; newest entries first."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, list[CampaignRecord]] = {}

    def append(self, ad_account_id: str, record: CampaignRecord) -> None:
        with self._lock:
            self._records.setdefault(ad_account_id, []).insert(0, record)

    def list(self, ad_account_id: str) -> list[CampaignRecord]:
        with self._lock:
            return list(self._records.get(ad_account_id, []))
