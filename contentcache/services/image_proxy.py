"""
ImageProxy - Fetches images for the proxy endpoint, through ImageCache
for upstream-hosted URLs.
"""

import asyncio
from dataclasses import dataclass

import httpx
from loguru import logger

from contentcache.services.image_cache import ImageCache, ResolutionConfig

PROXY_USER_AGENT = "Mozilla/5.0 (compatible; ImageProxy/1.0)"


@dataclass
class ProxiedImage:
    """Image bytes ready to answer with."""

    buffer: bytes
    content_type: str
    etag: str | None = None
    from_cache: bool = False


class ImageProxy:
    """
    Resolves an image URL to bytes.

    Upstream-hosted URLs get resolution parameters appended and are
    cached per rendition; every other URL is fetched as-is, uncached.
    Returns ``None`` on any failure so the caller can answer with the
    placeholder.
    """

    def __init__(
        self,
        image_cache: ImageCache,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.image_cache = image_cache
        self._timeout = timeout
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
                transport=self._transport,
                headers={"User-Agent": PROXY_USER_AGENT},
            )
        return self._http_client

    async def fetch(
        self, url: str, resolution: ResolutionConfig | None = None
    ) -> ProxiedImage | None:
        if not self.image_cache.is_upstream_hosted(url):
            return await self._fetch_remote(url)

        cached = self.image_cache.get(url, resolution)
        if cached is not None:
            key = self.image_cache.key_for(url, resolution)
            return ProxiedImage(
                buffer=cached.buffer,
                content_type=cached.content_type,
                etag=key.etag(),
                from_cache=True,
            )

        image = await self._fetch_remote(
            self.image_cache.with_resolution(url, resolution)
        )
        if image is None:
            return None

        key = self.image_cache.set(url, image.buffer, image.content_type, resolution)
        image.etag = key.etag()
        return image

    async def preload(self, urls: list[str]) -> dict[str, object]:
        """Fetch every uncached URL concurrently and summarize the outcome."""

        async def preload_one(url: str) -> dict[str, object]:
            try:
                if self.image_cache.get(url) is not None:
                    return {"url": url, "status": "cached", "cached": True}
                image = await self.fetch(url)
            except Exception as e:
                logger.error(f"Preload failed for {url[:80]}: {e}")
                image = None
            status = "success" if image is not None else "failed"
            return {"url": url, "status": status, "cached": False}

        details = await asyncio.gather(*(preload_one(url) for url in urls))

        summary = {"preloaded": 0, "alreadyCached": 0, "failed": 0}
        for item in details:
            if item["cached"]:
                summary["alreadyCached"] += 1
            elif item["status"] == "success":
                summary["preloaded"] += 1
            else:
                summary["failed"] += 1

        logger.info(f"Batch preload completed: {summary}")
        return {"summary": summary, "details": list(details)}

    async def _fetch_remote(self, url: str) -> ProxiedImage | None:
        client = await self._get_http_client()
        try:
            response = await client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error(f"Image fetch failed for {url[:80]}: {e}")
            return None

        if response.is_error:
            logger.error(
                f"Failed to fetch image: {response.status_code} {response.reason_phrase}"
            )
            return None

        return ProxiedImage(
            buffer=response.content,
            content_type=response.headers.get("Content-Type", "image/jpeg"),
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
