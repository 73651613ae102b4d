"""
Service layer infrastructure - caching and resilience for upstream calls.

Provides:
- TTLCache: In-process TTL cache with stale reads and auto-refresh
- ResilientClient: Upstream client with timeout, retry and classified backoff
- ImageCache: Resolution-aware binary cache for upstream-hosted images
- ImageProxy: Image fetching through ImageCache
"""

from contentcache.services.errors import (
    ServiceError,
    CacheError,
    ConfigurationError,
    UpstreamStatusError,
    UpstreamPayloadError,
    RequestTimeoutError,
    RetryExhaustedError,
)
from contentcache.services.cache import TTLCache, CacheEntry, CacheStats, RefreshBinding
from contentcache.services.client import ResilientClient, RetryState, is_connection_error
from contentcache.services.image_cache import (
    ImageCache,
    ImageCacheKey,
    CachedImage,
    ResolutionConfig,
)
from contentcache.services.image_proxy import ImageProxy, ProxiedImage

__all__ = [
    # Errors
    "ServiceError",
    "CacheError",
    "ConfigurationError",
    "UpstreamStatusError",
    "UpstreamPayloadError",
    "RequestTimeoutError",
    "RetryExhaustedError",
    # Cache
    "TTLCache",
    "CacheEntry",
    "CacheStats",
    "RefreshBinding",
    # Client
    "ResilientClient",
    "RetryState",
    "is_connection_error",
    # Images
    "ImageCache",
    "ImageCacheKey",
    "CachedImage",
    "ResolutionConfig",
    "ImageProxy",
    "ProxiedImage",
]
