"""
Remote image fetching for pipeline and detector sources.

All downloads share one pooled httpx client. Transient failures are retried
with exponential backoff plus jitter; the final failure is reported as an
ImageDecodeError carrying the role the image was meant to play.
"""
import asyncio
import random

import httpx
import structlog
from PIL import Image

from product_studio.config import settings
from product_studio.core.errors import ImageDecodeError
from product_studio.core.imaging import ImageRole, ImageSource, is_path, is_remote, open_image

log = structlog.get_logger(__name__)

_client = httpx.AsyncClient(
    timeout=settings.DOWNLOAD_TIMEOUT,
    follow_redirects=True,
    limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
    headers={"User-Agent": "product-studio/1.0"},
)


class ImageDownloader:
    """Resolves image sources, fetching http(s) URLs over the shared client."""

    def __init__(
        self,
        max_retries: int = settings.DOWNLOAD_RETRIES,
        initial_backoff: float = 1.0,
        allow_paths: bool = True,
    ):
        self.max_retries = max(1, max_retries)
        self.initial_backoff = initial_backoff
        # Filesystem paths are for in-process callers; the HTTP layer disables them.
        self.allow_paths = allow_paths

    def _delay(self, attempt: int) -> float:
        base = self.initial_backoff * 2 ** attempt
        return base + base * random.uniform(0.1, 0.5)

    async def _get(self, url: str) -> bytes:
        response = await _client.get(url)
        response.raise_for_status()
        return response.content

    async def download(self, url: str, role: ImageRole = ImageRole.SOURCE) -> Image.Image:
        """
        Fetch and decode ``url``.

        Raises:
            ImageDecodeError: naming ``role``, once every attempt has failed or
                as soon as a fetched payload is not a decodable image.
        """
        role = ImageRole(role)
        reason = "no attempt made"

        for attempt in range(1, self.max_retries + 1):
            try:
                payload = await self._get(url)
            except httpx.HTTPStatusError as e:
                reason = f"HTTP {e.response.status_code}"
            except httpx.RequestError as e:
                reason = str(e) or type(e).__name__
            else:
                # Decode failures are not transient.
                try:
                    image = open_image(payload, role)
                except ImageDecodeError as e:
                    raise ImageDecodeError(role.value, e.reason, url) from e
                log.info("Fetched remote image", url=url, role=role.value, size=image.size, attempt=attempt)
                return image

            log.warning("Remote image fetch failed", url=url, role=role.value, attempt=attempt, reason=reason)
            if attempt < self.max_retries:
                await asyncio.sleep(self._delay(attempt - 1))

        log.error("Giving up on remote image", url=url, role=role.value, attempts=self.max_retries)
        raise ImageDecodeError(role.value, f"{reason} after {self.max_retries} attempts", url)

    async def fetch(self, source: ImageSource, role: ImageRole = ImageRole.SOURCE) -> Image.Image:
        """Remote URLs are downloaded; every other source is decoded in place."""
        if is_remote(source):
            return await self.download(source, role)
        if not self.allow_paths and is_path(source):
            role = ImageRole(role)
            log.warning("Rejected filesystem image source", role=role.value)
            raise ImageDecodeError(role.value, "only http(s) and data URLs are accepted")
        return open_image(source, role)

    async def close(self):
        if not _client.is_closed:
            await _client.aclose()
            log.info("HTTP client closed")
