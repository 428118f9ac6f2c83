"""Loading report images from URLs or local paths."""

from __future__ import annotations

import asyncio
import io
from pathlib import Path

import httpx
import structlog
from PIL import Image, UnidentifiedImageError

from lostfound.core.errors import ImageLoadError

logger = structlog.get_logger("lostfound.vision.images")


def decode_image(data: bytes, image_ref: str) -> Image.Image:
    """Decode image bytes into an RGB Pillow image.

    Raises:
        ImageLoadError: If the bytes are not a readable image
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            return img.convert("RGB")
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ImageLoadError(f"Cannot decode image: {e}", image_ref=image_ref) from e


class ImageLoader:
    """Fetch report images over HTTP(S) or from the local filesystem.

    The loader owns its httpx client unless one is injected; call aclose()
    (or use it as an async context manager) when done.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        max_bytes: int = 10 * 1024 * 1024,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.timeout = timeout
        self.max_bytes = max_bytes
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> ImageLoader:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def fetch_bytes(self, image_ref: str) -> bytes:
        """Return the raw bytes behind an image reference.

        Raises:
            ImageLoadError: On HTTP errors, missing files or oversized images
        """
        ref = image_ref.strip()
        if ref.startswith(("http://", "https://")):
            data = await self._fetch_remote(ref)
        else:
            data = await self._read_local(ref)

        if len(data) > self.max_bytes:
            raise self._oversized(len(data), ref)
        return data

    async def load(self, image_ref: str) -> Image.Image:
        """Fetch and decode an image."""
        data = await self.fetch_bytes(image_ref)
        return decode_image(data, image_ref)

    async def _fetch_remote(self, url: str) -> bytes:
        try:
            async with self.client.stream("GET", url) as response:
                response.raise_for_status()
                declared = response.headers.get("content-length")
                if declared is not None and declared.isdigit() and int(declared) > self.max_bytes:
                    raise self._oversized(int(declared), url)

                buffer = bytearray()
                async for chunk in response.aiter_bytes():
                    buffer.extend(chunk)
                    if len(buffer) > self.max_bytes:
                        raise self._oversized(len(buffer), url)
        except httpx.HTTPStatusError as e:
            raise ImageLoadError(
                f"Failed to load image: HTTP {e.response.status_code}", image_ref=url
            ) from e
        except httpx.HTTPError as e:
            raise ImageLoadError(f"Failed to load image: {e}", image_ref=url) from e

        logger.debug("Fetched image", url=url, size=len(buffer))
        return bytes(buffer)

    def _oversized(self, size: int, image_ref: str) -> ImageLoadError:
        # size is a lower bound when a stream is cut short
        return ImageLoadError(
            f"Image is {size} bytes, limit is {self.max_bytes}", image_ref=image_ref
        )

    async def _read_local(self, ref: str) -> bytes:
        path = Path(ref.removeprefix("file://"))
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise ImageLoadError(f"Failed to load image: {e}", image_ref=ref) from e
