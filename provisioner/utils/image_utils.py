"""Image handling for ad creatives.

Downloads, validates and stages images on disk before they are uploaded to
the ad account's image library or published on a page.
"""

from __future__ import annotations

import contextlib
import io
import logging
import os
import tempfile
from typing import Any

import httpx
from PIL import Image

from provisioner.platforms.exceptions import ImageDownloadError, ImageValidationError
from provisioner.settings import settings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants (Meta image requirements)
# ---------------------------------------------------------------------------

META_RECOMMENDED_MIN_DIMENSION: int = 600  # pixels
META_SUPPORTED_FORMATS: set[str] = {"JPEG", "PNG", "BMP", "TIFF", "GIF", "WEBP"}

_FORMAT_SUFFIXES: dict[str, str] = {
    "JPEG": ".jpg",
    "PNG": ".png",
    "BMP": ".bmp",
    "TIFF": ".tiff",
    "GIF": ".gif",
    "WEBP": ".webp",
}

# ---------------------------------------------------------------------------
# ImageProcessor
# ---------------------------------------------------------------------------


class ImageProcessor:
    """Download, validate and stage images for ad creatives."""

    def __init__(self, *, max_size_bytes: int | None = None) -> None:
        self.max_size_bytes = max_size_bytes or settings.MAX_UPLOAD_BYTES

    # ------------------------------------------------------------------
    # download
    # ------------------------------------------------------------------

    def download_image_sync(self, url: str, *, timeout: float | None = None) -> bytes:
        """Download an image from *url* and return its bytes.

        Runs inside the pipeline's worker thread.  Validates that the
        response content-type starts with ``image/``.
        Raises :class:`ImageDownloadError` on failure.
        """
        timeout = timeout or settings.META_HTTP_TIMEOUT_SECONDS
        try:
            with httpx.Client(follow_redirects=True) as client:
                response = client.get(url, timeout=timeout)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ImageDownloadError(
                f"Failed to download image from {url}: {exc}",
                details={"url": url, "error": str(exc)},
            ) from exc

        content_type = response.headers.get("content-type", "")
        if not content_type.startswith("image/"):
            raise ImageDownloadError(
                f"URL did not return an image (content-type: {content_type})",
                details={"url": url, "content_type": content_type},
            )

        return response.content

    # ------------------------------------------------------------------
    # validate
    # ------------------------------------------------------------------

    def validate_image(self, data: bytes) -> dict[str, Any]:
        """Validate image bytes against platform requirements.

        Returns a dict with ``is_valid``, ``format``, ``width``, ``height``,
        ``size_bytes``, ``issues`` (blocking problems) and ``warnings``
        (accepted by Meta but likely to render poorly).

        Raises :class:`ImageValidationError` for corrupt or empty data.
        """
        if not data:
            raise ImageValidationError(
                "Image data is empty",
                details={"size_bytes": 0},
            )

        try:
            img = Image.open(io.BytesIO(data))
            img.verify()
            # verify() leaves the image unusable; reopen for metadata
            img = Image.open(io.BytesIO(data))
        except Exception as exc:
            raise ImageValidationError(
                f"Image data is corrupt or unreadable: {exc}",
                details={"error": str(exc)},
            ) from exc

        fmt = img.format or "UNKNOWN"
        width, height = img.size
        size_bytes = len(data)
        issues: list[str] = []
        warnings: list[str] = []

        if fmt not in META_SUPPORTED_FORMATS:
            issues.append(
                f"Unsupported format '{fmt}'. Supported: {', '.join(sorted(META_SUPPORTED_FORMATS))}"
            )

        if size_bytes > self.max_size_bytes:
            issues.append(
                f"Image size {size_bytes:,} bytes exceeds maximum "
                f"{self.max_size_bytes:,} bytes"
            )

        if width < META_RECOMMENDED_MIN_DIMENSION or height < META_RECOMMENDED_MIN_DIMENSION:
            warnings.append(
                f"Image dimensions {width}x{height} are below the recommended "
                f"{META_RECOMMENDED_MIN_DIMENSION}x{META_RECOMMENDED_MIN_DIMENSION}"
            )

        return {
            "format": fmt,
            "width": width,
            "height": height,
            "size_bytes": size_bytes,
            "is_valid": len(issues) == 0,
            "issues": issues,
            "warnings": warnings,
        }

    def ensure_valid(self, data: bytes) -> dict[str, Any]:
        """Like :meth:`validate_image` but raise on blocking issues."""
        info = self.validate_image(data)
        if not info["is_valid"]:
            raise ImageValidationError(
                f"Image failed validation: {'; '.join(info['issues'])}",
                details=info,
            )
        for warning in info["warnings"]:
            logger.warning("Image accepted with warning: %s", warning)
        return info

    # ------------------------------------------------------------------
    # files
    # ------------------------------------------------------------------

    def read_file(self, path: str) -> bytes:
        try:
            with open(path, "rb") as fh:
                return fh.read()
        except OSError as exc:
            raise ImageValidationError(
                f"Image file could not be read: {exc}",
                details={"file_path": path, "error": str(exc)},
            ) from exc

    @staticmethod
    def suffix_for(fmt: str) -> str:
        return _FORMAT_SUFFIXES.get(fmt.upper(), ".img")

    @staticmethod
    def save_to_tempfile(data: bytes, *, suffix: str = ".png") -> str:
        """Write *data* to a named temporary file and return the path.

        The caller is responsible for calling :meth:`discard` when done.
        """
        fd, path = tempfile.mkstemp(suffix=suffix)
        try:
            os.write(fd, data)
        finally:
            os.close(fd)
        return path

    @staticmethod
    def discard(path: str | None) -> None:
        """Delete a staged file; deleting twice is a no-op."""
        if not path:
            return
        with contextlib.suppress(FileNotFoundError):
            os.unlink(path)
