"""Creative preparer.

Builds the AdCreative payload for one of the three creative sources:

- ``ImageSource``: upload the image to the ad account, then a ``link_data``
  story spec pointing at the returned hash.
- ``ExistingPostSource``: promote an already resolved post by its
  ``object_story_id``.
- ``PublishedPhotoSource``: publish the photo on the page first, then promote
  the new post.

Staged image files are deleted on every exit path.
"""

from __future__ import annotations

import logging
from typing import Any

from provisioner.platforms.base import (
    AdPlatformClient,
    CreativePayload,
    ExistingPostSource,
    ImageSource,
    ProvisioningRequest,
    PublishedPhotoSource,
    ResolvedPostReference,
    UploadedImage,
)
from provisioner.platforms.exceptions import ImageValidationError, PreparationError
from provisioner.settings import settings
from provisioner.utils.image_utils import ImageProcessor

logger = logging.getLogger(__name__)


def creative_name(request: ProvisioningRequest) -> str:
    return f"{request.campaign_name} - Creative"


def link_data_params(
    request: ProvisioningRequest, image: UploadedImage
) -> dict[str, Any]:
    link = request.link_url or image.url or settings.DEFAULT_LINK_URL
    return {
        "name": creative_name(request),
        "object_story_spec": {
            "page_id": request.page_id,
            "link_data": {
                "image_hash": image.hash,
                "link": link,
                "message": request.ad_description,
                "name": request.ad_title or request.campaign_name,
                "call_to_action": {
                    "type": request.call_to_action,
                    "value": {"link": link},
                },
            },
        },
    }


def object_story_params(request: ProvisioningRequest, object_story_id: str) -> dict[str, Any]:
    # object_story_id and object_story_spec are mutually exclusive upstream
    return {"name": creative_name(request), "object_story_id": object_story_id}


class CreativePreparer:
    def __init__(self, image_processor: ImageProcessor | None = None) -> None:
        self.images = image_processor or ImageProcessor()

    # ------------------------------------------------------------------
    # pre-flight
    # ------------------------------------------------------------------

    def check(self, request: ProvisioningRequest) -> None:
        """Validate a local image file before anything is created upstream.

        Remote image URLs are only checked once downloaded in :meth:`prepare`.
        Raises :class:`ImageValidationError`.
        """
        source = request.creative_source
        file_path = getattr(source, "file_path", None)
        if file_path is None:
            return
        info = self.images.ensure_valid(self.images.read_file(file_path))
        logger.debug(
            "Image %s ok: %sx%s %s", file_path, info["width"], info["height"], info["format"]
        )

    # ------------------------------------------------------------------
    # prepare
    # ------------------------------------------------------------------

    def prepare(
        self,
        request: ProvisioningRequest,
        client: AdPlatformClient,
        page_client: AdPlatformClient,
        *,
        post: ResolvedPostReference | None = None,
    ) -> CreativePayload:
        """Return the creative payload for *request*.

        *client* is bound to the user token (image library uploads) and
        *page_client* to the page token (photo publishing).
        Raises :class:`PreparationError` subclasses.
        """
        source = request.creative_source
        if isinstance(source, ImageSource):
            return self._prepare_image(request, source, client)
        if isinstance(source, ExistingPostSource):
            if post is None:
                raise PreparationError(
                    "Existing post creative requires a resolved post reference",
                    details={"post_url": source.post_url},
                )
            return CreativePayload(
                params=object_story_params(request, post.object_story_id),
                object_story_id=post.object_story_id,
            )
        if isinstance(source, PublishedPhotoSource):
            return self._prepare_published_photo(request, source, page_client)
        raise PreparationError(f"Unsupported creative source: {source!r}")

    def _prepare_image(
        self,
        request: ProvisioningRequest,
        source: ImageSource,
        client: AdPlatformClient,
    ) -> CreativePayload:
        path = source.file_path
        try:
            if path is None:
                if not source.image_url:
                    raise ImageValidationError("Image source has neither a file nor a URL")
                data = self.images.download_image_sync(source.image_url)
                info = self.images.ensure_valid(data)
                path = self.images.save_to_tempfile(
                    data, suffix=self.images.suffix_for(info["format"])
                )
                logger.info("Downloaded image %s (%s bytes)", source.image_url, len(data))
            else:
                self.images.ensure_valid(self.images.read_file(path))

            uploaded = client.upload_image(request.ad_account_id, path)
            logger.info("Uploaded image to act_%s, hash=%s", request.ad_account_id, uploaded.hash)
        finally:
            self.images.discard(path)

        return CreativePayload(
            params=link_data_params(request, uploaded), image_hash=uploaded.hash
        )

    def _prepare_published_photo(
        self,
        request: ProvisioningRequest,
        source: PublishedPhotoSource,
        page_client: AdPlatformClient,
    ) -> CreativePayload:
        try:
            object_story_id = page_client.publish_photo(
                request.page_id, source.file_path, source.caption
            )
        finally:
            self.images.discard(source.file_path)

        logger.info("Published photo on page %s as %s", request.page_id, object_story_id)
        return CreativePayload(
            params=object_story_params(request, object_story_id),
            object_story_id=object_story_id,
        )
