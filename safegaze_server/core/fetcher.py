"""Download source images for the detection pipeline."""

import base64
import binascii
import logging
from typing import Optional

import requests

from .errors import ImageFetchError

logger = logging.getLogger(__name__)


class ImageFetcher:
    """Fetch raw image bytes from http(s) URLs or inline ``data:`` URLs.

    Handles the URL shapes page scripts hand over:
    - https://host/image.jpg
    - //host/image.jpg and ://host/image.jpg (protocol-relative)
    - data:image/png;base64,....
    """

    def __init__(self, timeout: float = 10.0, session: Optional[requests.Session] = None):
        """Initialize fetcher.

        Args:
            timeout: Seconds to wait for a download
            session: Optional requests session (connection reuse, tests)
        """
        self.timeout = timeout
        self.session = session or requests.Session()

    @staticmethod
    def normalize_url(url: str) -> str:
        url = url.strip()
        if url.startswith("://"):
            return "https" + url
        if url.startswith("//"):
            return "https:" + url
        return url

    def fetch(self, url: str) -> bytes:
        """Return the bytes behind ``url``.

        Raises:
            ImageFetchError: On network errors, non-2xx status, empty body or
                malformed data URLs
        """
        if not url:
            raise ImageFetchError("Empty image URL")

        url = self.normalize_url(url)
        if url.startswith("data:"):
            return self._decode_data_url(url)

        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise ImageFetchError(f"Error downloading image {url}: {e}") from e

        if not response.content:
            raise ImageFetchError(f"No data downloaded from {url}")

        logger.debug(f"Downloaded {len(response.content)} bytes from {url}")
        return response.content

    @staticmethod
    def _decode_data_url(url: str) -> bytes:
        header, sep, payload = url.partition(",")
        if not sep:
            raise ImageFetchError("Malformed data URL")
        if not header.endswith(";base64"):
            raise ImageFetchError("Only base64 data URLs are supported")
        try:
            data = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ImageFetchError(f"Invalid base64 in data URL: {e}") from e
        if not data:
            raise ImageFetchError("Empty data URL")
        return data
