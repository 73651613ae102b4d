"""
TTLCache - In-process key/value cache with per-entry expiry and auto-refresh.

Features:
- TTL (Time To Live) for cache entries
- Opt-in stale reads for degrade-on-error call sites
- Background auto-refresh bound to a key, owned by the cache instance
- Prefix invalidation for coarse "everything about X" deletes
- Thread-safe: every map access happens under one lock and never suspends
"""

import asyncio
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, TypeVar

from loguru import logger

from contentcache.services.errors import CacheError

T = TypeVar("T")

RefreshFunction = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A single cache entry. Never mutated; a refresh replaces it."""

    value: T
    stored_at: float
    ttl: float

    def is_fresh(self, now: float) -> bool:
        """Check if entry is within its TTL."""
        return (now - self.stored_at) <= self.ttl

    def expired_for(self, now: float) -> float:
        """Seconds since the entry expired (0 while still fresh)."""
        return max(0.0, now - self.stored_at - self.ttl)


@dataclass
class RefreshBinding:
    """Scheduled refresh for one key."""

    key: str
    interval: float
    refresh_fn: RefreshFunction
    generation: int
    task: asyncio.Task[None] | None = None
    loop: asyncio.AbstractEventLoop | None = None

    def cancel(self) -> None:
        """Cancel the refresh task from whichever thread we are on."""
        if self.task is None or self.task.done():
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if self.loop is not None and self.loop.is_closed():
            return
        if self.loop is None or running is self.loop or not self.loop.is_running():
            self.task.cancel()
        else:
            self.loop.call_soon_threadsafe(self.task.cancel)


@dataclass
class CacheStats:
    """Cache statistics."""

    size: int = 0
    keys: list[str] = field(default_factory=list)
    hits: int = 0
    misses: int = 0
    stale_hits: int = 0
    refreshes: int = 0
    refresh_failures: int = 0
    bindings: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.stale_hits + self.misses
        if total == 0:
            return 0.0
        return (self.hits + self.stale_hits) / total

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "size": self.size,
            "keys": list(self.keys),
            "hits": self.hits,
            "misses": self.misses,
            "stale_hits": self.stale_hits,
            "refreshes": self.refreshes,
            "refresh_failures": self.refresh_failures,
            "bindings": self.bindings,
            "hit_rate": f"{self.hit_rate:.2%}",
        }


class TTLCache:
    """
    In-process TTL cache with stale reads and auto-refresh.

    Usage:
        cache = TTLCache()

        value = cache.get("my_key")
        if value is None:
            value = await fetch_data()
            cache.set_with_auto_refresh("my_key", value, 60, fetch_data)

        # On upstream failure
        stale = cache.get("my_key", allow_stale=True)

    A strict read evicts an expired entry from the live map, but the entry
    is kept aside for ``allow_stale`` reads until the key is deleted,
    overwritten or pruned.

    ``None`` is the "absent" marker, so ``None`` itself cannot be cached.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        debug: bool = False,
    ):
        self._entries: dict[str, CacheEntry[Any]] = {}
        self._evicted: dict[str, CacheEntry[Any]] = {}
        self._bindings: dict[str, RefreshBinding] = {}
        self._generation = 0
        self._clock = clock
        self._debug = debug
        self._lock = threading.RLock()
        self._counters = CacheStats()

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        """
        Store a value, replacing any entry and canceling any refresh binding.

        Args:
            key: Cache key
            value: Data to cache (owned by the cache from now on)
            ttl_seconds: Time to live
        """
        with self._lock:
            self._cancel_binding(key)
            self._store(key, value, ttl_seconds)
        self._log(f"SET: {key[:50]} (TTL: {ttl_seconds}s)")

    def set_with_auto_refresh(
        self,
        key: str,
        value: Any,
        ttl_seconds: float,
        refresh_fn: RefreshFunction,
    ) -> None:
        """
        Store a value and refresh it in the background once per TTL.

        A failed refresh is logged and leaves the current entry alone;
        the binding keeps firing. Must be called with a running event
        loop for the refresh to be scheduled.
        """
        self._check_ttl(ttl_seconds)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        with self._lock:
            self._cancel_binding(key)
            self._store(key, value, ttl_seconds)

            if loop is None:
                logger.warning(
                    f"[TTLCache] No running event loop, auto-refresh disabled for {key}"
                )
                return

            self._generation += 1
            binding = RefreshBinding(
                key=key,
                interval=ttl_seconds,
                refresh_fn=refresh_fn,
                generation=self._generation,
                loop=loop,
            )
            binding.task = loop.create_task(
                self._refresh_loop(binding), name=f"cache-refresh:{key}"
            )
            self._bindings[key] = binding

        self._log(f"SET+REFRESH: {key[:50]} (every {ttl_seconds}s)")

    def get(self, key: str, allow_stale: bool = False) -> Any | None:
        """
        Get value from cache.

        Returns the value if fresh. An expired entry is evicted and
        ``None`` returned, unless ``allow_stale`` is set, in which case the
        expired value is returned.
        """
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)

            if entry is not None and entry.is_fresh(now):
                self._counters.hits += 1
                return entry.value

            if allow_stale:
                stale = entry or self._evicted.get(key)
                if stale is not None:
                    self._counters.stale_hits += 1
                    self._log(f"STALE HIT: {key[:50]}")
                    return stale.value

            elif entry is not None:
                # The binding (if any) stays so the next tick can repopulate the key
                self._evicted[key] = self._entries.pop(key)
                self._log(f"EXPIRED: {key[:50]}")

            self._counters.misses += 1
            return None

    def delete(self, key: str) -> bool:
        """Delete a key and cancel its refresh. Returns whether an entry existed."""
        with self._lock:
            self._cancel_binding(key)
            existed = self._entries.pop(key, None) is not None
            existed = self._evicted.pop(key, None) is not None or existed
        if existed:
            self._log(f"DELETE: {key[:50]}")
        return existed

    def delete_by_prefix(self, prefix: str) -> int:
        """
        Delete all keys starting with ``prefix``.

        Returns:
            Number of entries removed
        """
        with self._lock:
            keys = {k for k in (*self._entries, *self._evicted) if k.startswith(prefix)}
            for key in keys:
                self._entries.pop(key, None)
                self._evicted.pop(key, None)
            for key in [k for k in self._bindings if k.startswith(prefix)]:
                self._cancel_binding(key)

        if keys:
            self._log(f"INVALIDATE: {len(keys)} entries with prefix '{prefix}'")
        return len(keys)

    def clear(self) -> None:
        """Remove every entry and cancel every refresh."""
        with self._lock:
            count = len(self._entries)
            for key in list(self._bindings):
                self._cancel_binding(key)
            self._entries.clear()
            self._evicted.clear()
        self._log(f"CLEAR: {count} entries removed")

    def prune_expired(self, grace_seconds: float = 0.0) -> int:
        """
        Remove entries expired for longer than ``grace_seconds`` that have
        no refresh binding. Returns count of removed entries.
        """
        now = self._clock()
        keys: list[str] = []
        with self._lock:
            for store in (self._entries, self._evicted):
                dead = [
                    k
                    for k, entry in store.items()
                    if k not in self._bindings
                    and entry.expired_for(now) > grace_seconds
                ]
                for key in dead:
                    del store[key]
                keys.extend(dead)

        if keys:
            self._log(f"PRUNE: {len(keys)} expired entries removed")
        return len(keys)

    def keys(self, prefix: str = "", include_evicted: bool = False) -> list[str]:
        """Live keys starting with ``prefix``; optionally stale-only keys too."""
        with self._lock:
            keys = [k for k in self._entries if k.startswith(prefix)]
            if include_evicted:
                keys.extend(k for k in self._evicted if k.startswith(prefix))
        return keys

    def has_binding(self, key: str) -> bool:
        """Whether ``key`` currently has an active auto-refresh."""
        with self._lock:
            return key in self._bindings

    def stats(self) -> dict[str, Any]:
        """Size and keys. No side effects."""
        with self._lock:
            keys = list(self._entries.keys())
        return {"size": len(keys), "keys": keys}

    def get_stats(self) -> CacheStats:
        """Get full cache statistics."""
        with self._lock:
            self._counters.keys = list(self._entries.keys())
            self._counters.size = len(self._counters.keys)
            self._counters.bindings = len(self._bindings)
            return CacheStats(**vars(self._counters))

    async def _refresh_loop(self, binding: RefreshBinding) -> None:
        """Run ``binding.refresh_fn`` every interval until canceled."""
        key = binding.key
        while True:
            await asyncio.sleep(binding.interval)

            if not self._is_current(binding):
                return

            self._log(f"REFRESH: {key[:50]}")
            try:
                value = await binding.refresh_fn()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                with self._lock:
                    self._counters.refresh_failures += 1
                logger.error(f"[TTLCache] Failed to refresh cache for key {key}: {e}")
                continue

            with self._lock:
                # Deleted or re-bound while the refresh was in flight
                if self._bindings.get(key) is not binding:
                    self._log(f"DISCARD: stale refresh result for {key[:50]}")
                    return
                if value is None:
                    logger.warning(
                        f"[TTLCache] Refresh for {key} returned None, keeping old entry"
                    )
                    continue
                self._store(key, value, binding.interval)
                self._counters.refreshes += 1
            self._log(f"REFRESHED: {key[:50]}")

    def _is_current(self, binding: RefreshBinding) -> bool:
        with self._lock:
            current = self._bindings.get(binding.key)
            return current is not None and current.generation == binding.generation

    def _store(self, key: str, value: Any, ttl_seconds: float) -> None:
        """Write an entry. Caller holds the lock."""
        if value is None:
            raise CacheError(f"Cannot cache None for key '{key}'")
        self._evicted.pop(key, None)
        self._entries[key] = CacheEntry(
            value=value,
            stored_at=self._clock(),
            ttl=ttl_seconds,
        )

    def _cancel_binding(self, key: str) -> None:
        """Drop and cancel the binding for ``key``. Caller holds the lock."""
        binding = self._bindings.pop(key, None)
        if binding is not None:
            binding.cancel()
            self._log(f"UNBIND: {key[:50]}")

    @staticmethod
    def _check_ttl(ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            raise CacheError(f"Refresh interval must be positive, got {ttl_seconds}")

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[TTLCache] {message}")
