from __future__ import annotations

from fastapi import Depends, Header, Request

from provisioner.platforms.base import AdPlatformClient
from provisioner.platforms.exceptions import AuthenticationError
from provisioner.platforms.factory import get_ads_client
from provisioner.repository import CampaignRepository
from provisioner.settings import settings
from provisioner.tokens import TokenStore


def _bearer(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_token_store(
    authorization: str | None = Header(None),
    x_page_access_token: str | None = Header(None),
) -> TokenStore:
    user_token = _bearer(authorization) or settings.META_ACCESS_TOKEN
    if not user_token:
        raise AuthenticationError(
            "Meta access token not found. Connect your Meta Ads account and try again."
        )
    return TokenStore(user_token, page_token=x_page_access_token)


def get_platform_client(tokens: TokenStore = Depends(get_token_store)) -> AdPlatformClient:
    return get_ads_client(tokens.user_token)


def get_campaign_repository(request: Request) -> CampaignRepository:
    return request.app.state.campaign_repository
