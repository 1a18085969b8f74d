"""Post reference resolver.

Maps a pasted Facebook post URL to a ``(page_id, post_id)`` pair.  The Graph
API URL lookup is tried first; when it fails or yields nothing, a fixed,
ordered list of pure URL matchers takes over.  The first matcher that returns
an id wins.
"""

from __future__ import annotations

import logging
import re
from typing import Callable
from urllib.parse import parse_qs, urlsplit

from provisioner.platforms.base import AdPlatformClient, ResolvedPostReference
from provisioner.platforms.exceptions import MetaAPIError, ResolutionError

logger = logging.getLogger(__name__)

Matcher = Callable[[str], "str | None"]

_POSTS_RE = re.compile(r"/posts/([A-Za-z0-9]+)")
_PHOTOS_RE = re.compile(r"/photos/(?:a\.[0-9.]+/)?([0-9]+)")
_PHOTO_PATH_RE = re.compile(r"/photo(?:/|\.php)$")
_PFBID_RE = re.compile(r"(pfbid[0-9A-Za-z]+)")
_NUMERIC_RE = re.compile(r"^[0-9]+$")


# ---------------------------------------------------------------------------
# Matchers
# ---------------------------------------------------------------------------


def _query_param(url: str, name: str) -> str | None:
    values = parse_qs(urlsplit(url).query).get(name)
    return values[0] if values else None


def match_posts_path(url: str) -> str | None:
    m = _POSTS_RE.search(urlsplit(url).path)
    return m.group(1) if m else None


def match_photos_path(url: str) -> str | None:
    m = _PHOTOS_RE.search(urlsplit(url).path)
    return m.group(1) if m else None


def match_photo_fbid(url: str) -> str | None:
    """``/photo/?fbid=<id>`` and ``/photo.php?fbid=<id>``."""
    if not _PHOTO_PATH_RE.search(urlsplit(url).path):
        return None
    return _query_param(url, "fbid")


def match_permalink(url: str) -> str | None:
    if not urlsplit(url).path.endswith("/permalink.php"):
        return None
    return _query_param(url, "story_fbid")


def match_pfbid(url: str) -> str | None:
    m = _PFBID_RE.search(url)
    return m.group(1) if m else None


def match_numeric_segment(url: str) -> str | None:
    segments = [s for s in urlsplit(url).path.split("/") if s]
    for segment in reversed(segments):
        if _NUMERIC_RE.match(segment):
            return segment
    return None


def match_query_params(url: str) -> str | None:
    for name in ("fbid", "id", "post_id", "story_fbid"):
        value = _query_param(url, name)
        if value:
            return value
    return None


# Order matters: specific shapes before the generic fallbacks.
MATCHERS: tuple[Matcher, ...] = (
    match_posts_path,
    match_photos_path,
    match_photo_fbid,
    match_permalink,
    match_pfbid,
    match_numeric_segment,
    match_query_params,
)


def match_post_id(url: str) -> str | None:
    """Run the matchers in order and return the first id found."""
    for matcher in MATCHERS:
        post_id = matcher(url)
        if post_id:
            return post_id
    return None


def _post_part(node_id: str) -> str:
    # Composite ids look like "<page_id>_<post_id>"
    return node_id.split("_", 1)[1] if "_" in node_id else node_id


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class PostReferenceResolver:
    def __init__(self, client: AdPlatformClient, *, verify: bool = True) -> None:
        self.client = client
        self.verify = verify

    def resolve(self, page_id: str, post_url: str) -> ResolvedPostReference:
        """Resolve *post_url* to a post on *page_id*.

        Raises :class:`ResolutionError` when no strategy yields an id.
        """
        post_url = post_url.strip()
        post_id: str | None = None
        source = "lookup"

        try:
            looked_up = self.client.lookup_post_id(post_url)
        except MetaAPIError as exc:
            logger.info("Post URL lookup failed, falling back to patterns: %s", exc.message)
            looked_up = None
        if looked_up:
            post_id = _post_part(looked_up)

        if not post_id:
            source = "pattern"
            post_id = match_post_id(post_url)
        if not post_id:
            raise ResolutionError(post_url)

        reference = ResolvedPostReference(page_id=page_id, post_id=post_id, source=source)
        logger.info(
            "Resolved post URL to %s (via %s)", reference.object_story_id, source
        )
        if self.verify:
            reference = self._verify(reference)
        return reference

    def _verify(self, reference: ResolvedPostReference) -> ResolvedPostReference:
        """Confirm the post exists.  Failures only add warnings."""
        try:
            post = self.client.get_post(reference.object_story_id)
        except MetaAPIError as exc:
            if exc.is_permission_error:
                warning = f"post could not be verified (permission denied): {exc.message}"
            else:
                warning = f"post could not be verified: {exc.message}"
            logger.warning("%s", warning)
            return reference.model_copy(update={"warnings": reference.warnings + (warning,)})

        update: dict = {}
        canonical = str(post.get("id") or "")
        if "_" in canonical:
            page_part, post_part = canonical.split("_", 1)
            if (page_part, post_part) != (reference.page_id, reference.post_id):
                logger.info(
                    "Post %s is canonically %s", reference.object_story_id, canonical
                )
            update.update(page_id=page_part, post_id=post_part)

        if post.get("is_published") is False:
            warning = "post is not published"
            logger.warning("Post %s is not published", canonical or reference.object_story_id)
            update["warnings"] = reference.warnings + (warning,)

        return reference.model_copy(update=update) if update else reference
