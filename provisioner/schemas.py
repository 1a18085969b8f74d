from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CampaignFromPostIn(BaseModel):
    """JSON body of ``POST /campaigns/from-post``.

    Everything is optional here; the normalizer reports missing and invalid
    fields together.
    """

    model_config = ConfigDict(extra="allow")

    adAccountId: Any = None
    pageId: Any = None
    campaignName: Any = None
    weeklyBudget: Any = None
    startDate: Any = None
    endDate: Any = None
    location: Any = None
    postUrl: Any = None
    callToAction: Any = None
    objective: Any = None
    title: Any = None
    description: Any = None
    linkUrl: Any = None


class ProvisionOut(BaseModel):
    success: bool = True
    message: str
    campaignId: str
    adSetId: str
    creativeId: str
    adId: str
    status: str
    objectStoryId: Any = None
    imageHash: Any = None
    warnings: list[str] = Field(default_factory=list)


class CampaignListOut(BaseModel):
    adAccountId: str
    campaigns: list[dict[str, Any]]
    upstreamError: Any = None


class HealthOut(BaseModel):
    status: str
    dryRun: bool
    apiVersion: str
