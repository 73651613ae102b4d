"""
ImageCache - Resolution-aware binary cache for upstream-hosted images.

Upstream image URLs carry expiring signatures in their query string, so
entries are keyed by the URL with its query stripped plus the requested
width, height and (bucketed) quality.
"""

import hashlib
import time
from dataclasses import dataclass, field
from urllib.parse import urlencode, urlsplit, urlunsplit

from fastapi import Response
from loguru import logger

from contentcache.services.cache import TTLCache

IMAGE_CACHE_TTL = 7 * 24 * 60 * 60  # 7 days
IMAGE_KEY_PREFIX = "image:"
DEFAULT_QUALITY = 85
AUTO = "auto"

UPSTREAM_IMAGE_HOSTS = ("notion.so", "notion-static.com")
UPSTREAM_S3_MARKER = "prod-files-secure.s3."


def normalize_quality(quality: int | None) -> int:
    """Bucket quality to 95/85/75/65 so near-identical requests share entries."""
    q = quality or DEFAULT_QUALITY
    if q >= 95:
        return 95
    if q >= 85:
        return 85
    if q >= 75:
        return 75
    return 65


def canonical_url(url: str) -> str:
    """Scheme, host and path of ``url``; query and fragment dropped."""
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return url.strip()
    if not parts.scheme or not parts.netloc:
        return url.strip()
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), parts.path, "", ""))


@dataclass(frozen=True)
class ResolutionConfig:
    """Requested output size. ``None`` means "leave as is"."""

    width: int | None = None
    height: int | None = None
    quality: int | None = None

    def to_params(self) -> dict[str, int]:
        """Query parameters understood by the upstream image host."""
        params: dict[str, int] = {}
        if self.width:
            params["width"] = self.width
        if self.height:
            params["height"] = self.height
        if self.width or self.height or self.quality:
            params["quality"] = normalize_quality(self.quality)
        return params


@dataclass(frozen=True)
class ImageCacheKey:
    """Identity of one cached image rendition."""

    canonical_url: str
    width: str = AUTO
    height: str = AUTO
    quality: int = DEFAULT_QUALITY

    @classmethod
    def derive(
        cls, url: str, resolution: ResolutionConfig | None = None
    ) -> "ImageCacheKey":
        resolution = resolution or ResolutionConfig()
        return cls(
            canonical_url=canonical_url(url),
            width=str(resolution.width) if resolution.width else AUTO,
            height=str(resolution.height) if resolution.height else AUTO,
            quality=normalize_quality(resolution.quality),
        )

    @property
    def image_id(self) -> str:
        return hashlib.sha256(self.canonical_url.encode()).hexdigest()[:16]

    @property
    def suffix(self) -> str:
        return f"{self.width}x{self.height}:q{self.quality}"

    def __str__(self) -> str:
        return f"{IMAGE_KEY_PREFIX}{self.image_id}:{self.suffix}"

    def etag(self) -> str:
        """Stable ETag for this rendition."""
        config_hash = hashlib.md5(self.suffix.encode()).hexdigest()[:8]
        return f'"{self.image_id}-{config_hash}"'


@dataclass(frozen=True)
class CachedImage:
    """Raw image bytes and their content type."""

    buffer: bytes
    content_type: str
    stored_at: float = field(default_factory=time.time)

    @property
    def size(self) -> int:
        return len(self.buffer)


class ImageCache:
    """
    Image specialization of :class:`TTLCache`.

    Entries never auto-refresh and are never served stale: an expired
    image is a miss and gets re-fetched.
    """

    def __init__(self, cache: TTLCache, ttl_seconds: float = IMAGE_CACHE_TTL):
        self._cache = cache
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def key_for(url: str, resolution: ResolutionConfig | None = None) -> ImageCacheKey:
        return ImageCacheKey.derive(url, resolution)

    def get(
        self, url: str, resolution: ResolutionConfig | None = None
    ) -> CachedImage | None:
        """Get a cached image, or ``None`` if absent or expired."""
        return self._cache.get(str(self.key_for(url, resolution)))

    def set(
        self,
        url: str,
        buffer: bytes,
        content_type: str,
        resolution: ResolutionConfig | None = None,
    ) -> ImageCacheKey:
        """Cache an image rendition for the image TTL."""
        key = self.key_for(url, resolution)
        self._cache.set(
            str(key),
            CachedImage(buffer=buffer, content_type=content_type),
            self.ttl_seconds,
        )
        logger.info(
            f"Cached image ({key.suffix}): {key} | Size: {len(buffer) / 1024:.1f}KB"
        )
        return key

    def keys(self) -> list[str]:
        """Keys of all cached images."""
        return self._cache.keys(IMAGE_KEY_PREFIX)

    def clear(self) -> int:
        """Drop every cached image. Returns count removed."""
        return self._cache.delete_by_prefix(IMAGE_KEY_PREFIX)

    @staticmethod
    def is_upstream_hosted(url: str) -> bool:
        """Check if ``url`` is served by the upstream content host."""
        try:
            host = (urlsplit(url).hostname or "").lower()
        except ValueError:
            return False
        if not host:
            return False
        if host.startswith(UPSTREAM_S3_MARKER):
            return True
        return any(host == h or host.endswith(f".{h}") for h in UPSTREAM_IMAGE_HOSTS)

    @staticmethod
    def with_resolution(url: str, resolution: ResolutionConfig | None) -> str:
        """Append resolution parameters to ``url``, keeping its own query."""
        params = resolution.to_params() if resolution else {}
        if not params:
            return url
        parts = urlsplit(url)
        extra = urlencode(params)
        query = f"{parts.query}&{extra}" if parts.query else extra
        return urlunsplit(parts._replace(query=query))

    @staticmethod
    def generate_placeholder_svg(width: int = 320, height: int = 320) -> str:
        return (
            f'<svg width="{width}" height="{height}" xmlns="http://www.w3.org/2000/svg">'
            '<rect width="100%" height="100%" fill="#f3f4f6"/>'
            f'<g transform="translate({width / 2:g}, {height / 2:g})">'
            '<rect x="-40" y="-40" width="80" height="80" fill="#e5e7eb" rx="8"/>'
            '<path d="M-24 -16L-8 0L-24 16M8 -16L24 0L8 16" stroke="#9ca3af" '
            'stroke-width="2" fill="none" stroke-linecap="round" stroke-linejoin="round"/>'
            '<circle cx="0" cy="0" r="4" fill="#9ca3af"/>'
            "</g>"
            '<text x="50%" y="85%" text-anchor="middle" fill="#9ca3af" '
            'font-family="Arial, sans-serif" font-size="14">Image unavailable</text>'
            "</svg>"
        )

    @classmethod
    def placeholder_response(cls) -> Response:
        """Fallback image answered whenever nothing cached or fetchable exists."""
        return Response(
            content=PLACEHOLDER_SVG,
            status_code=200,
            media_type="image/svg+xml",
            headers={"Cache-Control": "public, max-age=86400"},
        )


PLACEHOLDER_SVG = ImageCache.generate_placeholder_svg().encode()
