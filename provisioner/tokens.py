from __future__ import annotations

import logging

from provisioner.platforms.base import AdPlatformClient
from provisioner.platforms.exceptions import MetaAPIError

logger = logging.getLogger(__name__)


class TokenStore:
    """Access tokens for one request.

    The user token authorises ad account calls.  Page-scoped calls (creative
    creation, photo publishing) prefer a page token: the one the caller sent,
    else one looked up through the Graph API, else the user token itself.
    """

    def __init__(self, user_token: str, page_token: str | None = None) -> None:
        self.user_token = user_token
        self._page_tokens: dict[str, str] = {}
        self._explicit_page_token = page_token

    def page_token(self, page_id: str, client: AdPlatformClient) -> str:
        if self._explicit_page_token:
            return self._explicit_page_token
        if page_id in self._page_tokens:
            return self._page_tokens[page_id]

        token: str | None = None
        try:
            token = client.get_page_access_token(page_id)
        except MetaAPIError as exc:
            logger.warning("Page token lookup for %s failed: %s", page_id, exc.message)

        if not token:
            logger.warning("No page token for page %s, using the user token", page_id)
            token = self.user_token
        self._page_tokens[page_id] = token
        return token
