"""Campaign provisioning pipeline.

One request becomes four platform objects, created strictly in order:

    START -> CAMPAIGN_CREATED -> ADSET_CREATED -> CREATIVE_READY -> AD_CREATED

Any stage may fail, moving the result to FAILED.  Objects created by earlier
stages are left live on the platform (there is no rollback); their ids travel
with the raised :class:`PipelineError` so they can be cleaned up by hand.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, TypeVar

from provisioner.platforms.base import (
    BID_STRATEGY,
    BILLING_EVENT,
    LIVE_STATUS,
    OPTIMIZATION_GOAL,
    AdPlatformClient,
    ExistingPostSource,
    PipelineResult,
    PipelineState,
    ProvisioningRequest,
    ResolvedPostReference,
    Stage,
)
from provisioner.platforms.exceptions import (
    MetaAPIError,
    PipelineError,
    PlatformError,
    UpstreamError,
)
from provisioner.services.creative_preparer import CreativePreparer
from provisioner.services.post_resolver import PostReferenceResolver
from provisioner.settings import settings
from provisioner.tokens import TokenStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Stage payloads
# ---------------------------------------------------------------------------


def campaign_params(request: ProvisioningRequest) -> dict[str, Any]:
    return {
        "name": request.campaign_name,
        "objective": request.effective_objective,
        "status": LIVE_STATUS,
        "special_ad_categories": [],
    }


def ad_set_params(request: ProvisioningRequest, campaign_id: str) -> dict[str, Any]:
    location = request.location
    params: dict[str, Any] = {
        "name": f"{request.campaign_name} - Ad Set",
        "campaign_id": campaign_id,
        "daily_budget": request.daily_budget_minor_units,
        "billing_event": BILLING_EVENT,
        "optimization_goal": OPTIMIZATION_GOAL,
        "bid_strategy": BID_STRATEGY,
        "targeting": {
            "geo_locations": {
                "custom_locations": [
                    {
                        "latitude": location.latitude,
                        "longitude": location.longitude,
                        "radius": location.radius_km,
                        "distance_unit": "kilometer",
                    }
                ]
            }
        },
        "start_time": request.start_time.isoformat(),
        "status": LIVE_STATUS,
    }
    if request.end_time is not None:
        params["end_time"] = request.end_time.isoformat()
    return params


def ad_params(request: ProvisioningRequest, ad_set_id: str, creative_id: str) -> dict[str, Any]:
    return {
        "name": f"{request.campaign_name} - Ad",
        "adset_id": ad_set_id,
        "creative": {"creative_id": creative_id},
        "status": LIVE_STATUS,
    }


# ---------------------------------------------------------------------------
# CampaignPipeline
# ---------------------------------------------------------------------------


class CampaignPipeline:
    """Runs the four creation stages for one request.

    ``client`` is bound to the caller's user token; a page-scoped client is
    derived from it for the creative stage.
    """

    def __init__(
        self,
        client: AdPlatformClient,
        tokens: TokenStore,
        *,
        preparer: CreativePreparer | None = None,
        resolver: PostReferenceResolver | None = None,
    ) -> None:
        self.client = client
        self.tokens = tokens
        self.preparer = preparer or CreativePreparer()
        self.resolver = resolver or PostReferenceResolver(
            client, verify=settings.VERIFY_POST_EXISTENCE
        )

    async def provision(self, request: ProvisioningRequest) -> PipelineResult:
        """Provision *request* without blocking the event loop."""
        return await asyncio.to_thread(self.run, request)

    def run(self, request: ProvisioningRequest) -> PipelineResult:
        """Blocking pipeline body.

        Raises :class:`ResolutionError` or :class:`PreparationError` from the
        pre-flight checks (nothing created yet), and :class:`PipelineError`
        (:class:`UpstreamError` for platform failures) from the stages.
        """
        post = self.preflight(request)

        result = PipelineResult()
        if post is not None:
            result.object_story_id = post.object_story_id
            result.warnings.extend(post.warnings)

        logger.info(
            "Provisioning campaign %r on act_%s (source=%s)",
            request.campaign_name,
            request.ad_account_id,
            request.creative_source.kind,
        )
        if request.requested_objective and request.requested_objective != request.effective_objective:
            logger.info(
                "Ignoring requested objective %s, using %s",
                request.requested_objective,
                request.effective_objective,
            )

        result.campaign_id = self._stage(
            Stage.CAMPAIGN,
            result,
            self.client.create_campaign,
            request.ad_account_id,
            campaign_params(request),
        )
        result.state = PipelineState.CAMPAIGN_CREATED

        result.ad_set_id = self._stage(
            Stage.ADSET,
            result,
            self.client.create_ad_set,
            request.ad_account_id,
            ad_set_params(request, result.campaign_id),
        )
        result.state = PipelineState.ADSET_CREATED

        result.creative_id = self._stage(
            Stage.CREATIVE, result, self._create_creative, request, post, result
        )
        result.state = PipelineState.CREATIVE_READY

        result.ad_id = self._stage(
            Stage.AD,
            result,
            self.client.create_ad,
            request.ad_account_id,
            ad_params(request, result.ad_set_id, result.creative_id),
        )
        result.state = PipelineState.AD_CREATED

        logger.info(
            "Campaign %s provisioned: adset=%s creative=%s ad=%s",
            result.campaign_id,
            result.ad_set_id,
            result.creative_id,
            result.ad_id,
        )
        return result

    def preflight(self, request: ProvisioningRequest) -> ResolvedPostReference | None:
        """Checks that must pass before anything is created upstream."""
        source = request.creative_source
        if isinstance(source, ExistingPostSource):
            return self.resolver.resolve(request.page_id, source.post_url)
        self.preparer.check(request)
        return None

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _create_creative(
        self,
        request: ProvisioningRequest,
        post: ResolvedPostReference | None,
        result: PipelineResult,
    ) -> str:
        page_client = self.client.with_token(
            self.tokens.page_token(request.page_id, self.client)
        )
        payload = self.preparer.prepare(request, self.client, page_client, post=post)
        result.image_hash = payload.image_hash
        result.object_story_id = payload.object_story_id or result.object_story_id
        return page_client.create_ad_creative(request.ad_account_id, payload.params)

    def _stage(
        self,
        stage: Stage,
        result: PipelineResult,
        func: Callable[..., T],
        *args: Any,
    ) -> T:
        logger.info("Stage %s started", stage.value)
        try:
            value = func(*args)
        except MetaAPIError as exc:
            self._fail(stage, result, exc)
            raise UpstreamError(stage.value, exc, result) from exc
        except PlatformError as exc:
            self._fail(stage, result, exc)
            raise PipelineError(stage.value, exc, result) from exc
        except Exception as exc:
            logger.exception("Unexpected error in stage %s", stage.value)
            cause = PlatformError(str(exc) or type(exc).__name__)
            self._fail(stage, result, cause)
            raise PipelineError(stage.value, cause, result) from exc
        logger.info("Stage %s done: %s", stage.value, value)
        return value

    @staticmethod
    def _fail(stage: Stage, result: PipelineResult, exc: PlatformError) -> None:
        result.state = PipelineState.FAILED
        result.failed_stage = stage
        logger.error(
            "Stage %s failed: %s (already created: %s)",
            stage.value,
            exc.message,
            result.created_ids() or "nothing",
        )
