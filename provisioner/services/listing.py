from __future__ import annotations

import asyncio
import logging
from typing import Any

from provisioner.platforms.base import AdPlatformClient
from provisioner.platforms.exceptions import MetaAPIError
from provisioner.repository import CampaignRepository

logger = logging.getLogger(__name__)


def merge_campaigns(
    local: list[dict[str, Any]], remote: list[dict[str, Any]]
) -> list[dict[str, Any]]:
    """Local entries first; remote entries only when their id is new."""
    merged = list(local)
    seen = {c.get("id") for c in local}
    for campaign in remote:
        if campaign.get("id") in seen:
            continue
        seen.add(campaign.get("id"))
        merged.append({**campaign, "source": "platform"})
    return merged


async def list_campaigns(
    ad_account_id: str,
    repository: CampaignRepository,
    client: AdPlatformClient,
) -> tuple[list[dict[str, Any]], str | None]:
    """Return ``(campaigns, upstream_error)`` for one ad account.

    A failing platform listing does not fail the call; the local entries are
    returned with the error message.
    """
    local = [r.to_listing() for r in repository.list(ad_account_id)]
    try:
        remote = await asyncio.to_thread(client.list_campaigns, ad_account_id)
    except MetaAPIError as exc:
        logger.warning("Live campaign listing for act_%s failed: %s", ad_account_id, exc.message)
        return local, exc.message
    return merge_campaigns(local, remote), None
