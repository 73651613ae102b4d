"""
Generic read-through accessor for one upstream content collection.

One implementation serves every collection; what differs (database id,
query body, record transform, natural key, hidden-record rule) lives in
:class:`CollectionConfig`.

Errors stop here: list reads degrade to the stale copy and then to an
empty list, detail reads degrade to ``None``.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, TypeVar

from loguru import logger

from contentcache.datasource.records import ContentRecord
from contentcache.services.cache import TTLCache
from contentcache.services.client import ResilientClient, is_connection_error

T = TypeVar("T", bound=ContentRecord)

LIST_TTL = 60
DETAIL_TTL = 300

# Reserved for id-keyed detail entries
ID_INFIX = "id-"


@dataclass(frozen=True)
class CollectionConfig(Generic[T]):
    """Identity and schema of one upstream collection."""

    name: str  # cache key prefix
    database_id: str
    parse: Callable[[dict[str, Any]], T]
    query: dict[str, Any] = field(default_factory=dict)
    is_hidden: Callable[[T], bool] | None = None
    list_ttl: float = LIST_TTL
    detail_ttl: float = DETAIL_TTL

    @property
    def is_configured(self) -> bool:
        return bool(self.database_id)


class ContentCollection(Generic[T]):
    """
    Cached accessor for one collection.

    Usage:
        chargers = ContentCollection(charger_config, client, cache)

        all_chargers = await chargers.list_all()
        one = await chargers.get_by_key("A1234")
    """

    def __init__(
        self,
        config: CollectionConfig[T],
        client: ResilientClient,
        cache: TTLCache,
    ):
        self.config = config
        self.client = client
        self.cache = cache

    @property
    def name(self) -> str:
        return self.config.name

    # Cache keys

    @property
    def list_key(self) -> str:
        return f"{self.name}-list"

    @property
    def item_prefix(self) -> str:
        return f"{self.name}-item-"

    def item_key(self, natural_key: str) -> str | None:
        """Detail key for ``natural_key``; ``None`` when it would land in the id namespace."""
        if natural_key.startswith(ID_INFIX):
            return None
        return f"{self.item_prefix}{natural_key}"

    def item_id_key(self, record_id: str) -> str:
        return f"{self.item_prefix}{ID_INFIX}{record_id}"

    # Reads

    async def list_all(self) -> list[T]:
        """All visible records. Never raises; worst case an empty list."""
        cached = self.cache.get(self.list_key)
        if cached is not None:
            logger.debug(f"Serving {self.name} from cache")
            return self._visible(cached)

        try:
            logger.info(f"Fetching {self.name} from upstream")
            return self._visible(await self.reload())

        except Exception as e:
            logger.error(f"Error fetching {self.name} from upstream: {e}")
            if is_connection_error(getattr(e, "last_error", None) or e):
                logger.error(
                    "Network connectivity issue detected - this may be a temporary problem"
                )

            stale = self.cache.get(self.list_key, allow_stale=True)
            if stale is not None:
                logger.warning(f"Serving stale {self.name} due to upstream error")
                return self._visible(stale)

            logger.error(f"No cache available for {self.name} - returning empty list")
            return []

    async def list_by_tag(self, tag: str) -> list[T]:
        """Visible records carrying ``tag``."""
        return [r for r in await self.list_all() if tag in r.tags]

    async def get_by_key(self, natural_key: str) -> T | None:
        """Full record by natural key, or ``None`` when missing or unreachable."""
        cache_key = self.item_key(natural_key)
        try:
            cached = self.cache.get(cache_key) if cache_key else None
            if cached is not None:
                logger.debug(f"Serving {self.name} {natural_key} from cache")
                return cached

            found = next(
                (r for r in await self.list_all() if r.key == natural_key), None
            )
            if found is None:
                return None

            logger.info(f"Fetching {self.name} {natural_key} details from upstream")
            detail = await self.fetch_detail(found.id)
            if cache_key:
                self.cache.set(cache_key, detail, self.config.detail_ttl)
            return detail

        except Exception as e:
            logger.error(f"Error fetching {self.name} by key {natural_key}: {e}")
            return None

    async def get_by_id(self, record_id: str) -> T | None:
        """Full record by upstream id; falls back to a stale copy on error."""
        cache_key = self.item_id_key(record_id)
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug(f"Serving {self.name} {record_id} from cache")
            return cached

        try:
            logger.info(f"Fetching {self.name} {record_id} from upstream")
            detail = await self.fetch_detail(record_id)
            self.cache.set(cache_key, detail, self.config.detail_ttl)
            return detail

        except Exception as e:
            logger.error(f"Error fetching {self.name} by id {record_id}: {e}")
            stale = self.cache.get(cache_key, allow_stale=True)
            if stale is not None:
                logger.warning(f"Serving stale {self.name} {record_id} due to upstream error")
            return stale

    async def reload(self) -> list[T]:
        """
        Fetch the list and (re)bind it with auto-refresh.

        Raises on upstream failure, leaving any existing entry untouched.
        """
        records = await self.fetch_all()
        self.cache.set_with_auto_refresh(
            self.list_key,
            records,
            self.config.list_ttl,
            self.fetch_all,
        )
        return records

    # Upstream (uncached)

    async def fetch_all(self) -> list[T]:
        """Query every page of the collection and transform it."""
        if not self.config.is_configured:
            logger.warning(f"{self.name} database id not configured, returning empty list")
            return []

        path = f"/databases/{self.config.database_id}/query"
        body = dict(self.config.query)
        pages: list[dict[str, Any]] = []

        while True:
            response = await self.client.post(path, json_data=body)
            pages.extend(response.get("results") or [])
            cursor = response.get("next_cursor")
            if not response.get("has_more") or not cursor:
                break
            body = {**self.config.query, "start_cursor": cursor}

        records = [self.config.parse(page) for page in pages]
        logger.info(f"Fetched {len(records)} {self.name}")
        return records

    async def fetch_detail(self, record_id: str) -> T:
        """Page record with its content blocks attached."""
        page, blocks = await asyncio.gather(
            self.client.get(f"/pages/{record_id}"),
            self.fetch_blocks(record_id),
        )
        record = self.config.parse(page)
        return record.model_copy(update={"blocks": blocks})

    async def fetch_blocks(self, block_id: str) -> list[dict[str, Any]]:
        """Child blocks of ``block_id``, nested children filled in recursively."""
        try:
            blocks: list[dict[str, Any]] = []
            params: dict[str, Any] | None = None
            while True:
                response = await self.client.get(
                    f"/blocks/{block_id}/children", params=params
                )
                blocks.extend(response.get("results") or [])
                cursor = response.get("next_cursor")
                if not response.get("has_more") or not cursor:
                    break
                params = {"start_cursor": cursor}

            for block in blocks:
                if block.get("has_children"):
                    block["children"] = await self.fetch_blocks(block["id"])
            return blocks

        except Exception as e:
            logger.error(f"Error fetching {self.name} page blocks for {block_id}: {e}")
            return []

    # Invalidation

    def invalidate_page(self, page_id: str) -> int:
        """Drop every entry that holds ``page_id``, plus the list."""
        removed = 0
        if self.cache.delete(self.item_id_key(page_id)):
            removed += 1

        for key in self.cache.keys(self.item_prefix, include_evicted=True):
            record = self.cache.get(key, allow_stale=True)
            if record is not None and getattr(record, "id", None) == page_id:
                if self.cache.delete(key):
                    removed += 1

        if self.cache.delete(self.list_key):
            removed += 1
        return removed

    def invalidate_all(self) -> int:
        """Drop the list and every item of this collection."""
        return self.cache.delete_by_prefix(f"{self.name}-")

    def _visible(self, records: list[T]) -> list[T]:
        if self.config.is_hidden is None:
            return list(records)
        return [r for r in records if not self.config.is_hidden(r)]
