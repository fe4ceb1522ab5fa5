"""Image download capability used for fingerprinting and classification."""

from __future__ import annotations

import io
import logging
import threading
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Optional
from urllib.parse import urlparse

import requests
from PIL import Image, UnidentifiedImageError

from logic.errors import ImageFetchError, InvalidInputError
from tools.observability import instrument_call

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "image/jpeg"


def _validate_url(url: str) -> None:
    if not url or not url.strip():
        raise InvalidInputError("Image URL is required and must be a non-empty string")
    parsed = urlparse(url)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise InvalidInputError(f"Unsupported or invalid image URL: {url}")


def guess_mime_type(image_bytes: bytes) -> str:
    """Sniff the image format, defaulting to JPEG for unknown payloads."""

    try:
        with Image.open(io.BytesIO(image_bytes)) as image:
            return Image.MIME.get(image.format or "", DEFAULT_MIME_TYPE)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError):
        return DEFAULT_MIME_TYPE


class ImageStore(ABC):
    """Abstract source of image bytes."""

    @abstractmethod
    def fetch(self, url: str) -> bytes:
        """Return the raw bytes behind ``url`` or raise :class:`ImageFetchError`."""


class HttpImageStore(ImageStore):
    """Fetch images over HTTP(S) with requests."""

    def __init__(self, timeout_seconds: Optional[float] = 10.0, session: requests.Session | None = None) -> None:
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()

    @instrument_call("image_store.fetch")
    def fetch(self, url: str) -> bytes:
        """Download an image.

        Raises:
            InvalidInputError: If the URL is empty or not HTTP/HTTPS.
            ImageFetchError: For network issues or non-2xx responses.
        """

        _validate_url(url)
        try:
            response = self.session.get(url, timeout=self.timeout_seconds)
        except requests.RequestException as exc:
            logger.error("Network error fetching image", extra={"url": url, "error": str(exc)})
            raise ImageFetchError(f"Network error fetching {url}: {exc}") from exc

        if not 200 <= response.status_code < 300:
            logger.warning(
                "Non-success status when fetching image",
                extra={"url": url, "status_code": response.status_code},
            )
            raise ImageFetchError(f"Failed to fetch image {url}: HTTP {response.status_code}")

        logger.debug(
            "Fetched image successfully",
            extra={"url": url, "status_code": response.status_code, "length": len(response.content)},
        )
        return response.content


class CachingImageStore(ImageStore):
    """Keep the most recently fetched images in memory.

    One candidate is fetched for fingerprinting and again for analysis, and
    classifier retries fetch once per attempt. Sharing this store between the
    merge engine and the classifier downloads each image once. Failures are
    not cached.
    """

    def __init__(self, inner: ImageStore, max_entries: int = 16) -> None:
        if max_entries < 1:
            raise InvalidInputError("max_entries must be at least 1")
        self.inner = inner
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, bytes]" = OrderedDict()
        self._lock = threading.Lock()

    def fetch(self, url: str) -> bytes:
        with self._lock:
            if url in self._entries:
                self._entries.move_to_end(url)
                return self._entries[url]

        content = self.inner.fetch(url)
        with self._lock:
            self._entries[url] = content
            self._entries.move_to_end(url)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)
        return content


__all__ = ["CachingImageStore", "DEFAULT_MIME_TYPE", "HttpImageStore", "ImageStore", "guess_mime_type"]
