"""
Image Fetcher
Downloads a job's input images in parallel with httpx.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import httpx

from app.core.config import settings
from app.core.exceptions import FetchError

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "image/jpeg"


@dataclass
class FetchedImage:
    """Container for a fetched image"""
    url: str
    data: bytes
    mime_type: str = DEFAULT_MIME_TYPE


class ImageFetcher:
    """Fetches input images; any single failure fails the whole batch."""

    def __init__(self, timeout: Optional[float] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout if timeout is not None else settings.IMAGE_FETCH_TIMEOUT
        self.transport = transport

    async def fetch_all(self, urls: Sequence[str]) -> List[FetchedImage]:
        """Fetch every URL concurrently, preserving input order."""
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            return list(await asyncio.gather(*(self._fetch_one(client, url) for url in urls)))

    async def _fetch_one(self, client: httpx.AsyncClient, url: str) -> FetchedImage:
        try:
            response = await client.get(url)
        except httpx.HTTPError as e:
            raise FetchError(f"Failed to fetch image: {url}", details={"url": url}, cause=e) from e

        if not response.is_success:
            raise FetchError(
                f"Failed to fetch image: {url}",
                details={"url": url, "status_code": response.status_code},
            )

        mime_type = response.headers.get("content-type", DEFAULT_MIME_TYPE).split(";")[0].strip()
        logger.debug(f"Fetched {len(response.content)} bytes ({mime_type}) from {url}")
        return FetchedImage(url=url, data=response.content, mime_type=mime_type or DEFAULT_MIME_TYPE)
