"""
CollectionRegistry - owns the per-collection accessors and fans out
invalidation across them.
"""

from loguru import logger

from contentcache.datasource.collection import CollectionConfig, ContentCollection
from contentcache.services.cache import TTLCache
from contentcache.services.client import ResilientClient


class CollectionRegistry:
    """
    Registry of content collections sharing one client and one cache.

    Usage:
        registry = CollectionRegistry(client, cache, default_configs(settings))
        chargers = registry.get("chargers")
    """

    def __init__(
        self,
        client: ResilientClient,
        cache: TTLCache,
        configs: list[CollectionConfig] | None = None,
    ):
        self.client = client
        self.cache = cache
        self._collections: dict[str, ContentCollection] = {}
        for config in configs or []:
            self.register(config)

    def register(self, config: CollectionConfig) -> ContentCollection:
        """Register a collection, replacing any with the same name."""
        collection = ContentCollection(config, self.client, self.cache)
        self._collections[config.name] = collection
        logger.debug(f"Registered collection: {config.name}")
        return collection

    def get(self, name: str) -> ContentCollection | None:
        return self._collections.get(name)

    def names(self) -> list[str]:
        return list(self._collections)

    def __iter__(self):
        return iter(self._collections.values())

    def invalidate_page(self, page_id: str) -> int:
        """Page content or properties changed upstream."""
        removed = sum(c.invalidate_page(page_id) for c in self)
        logger.info(f"Page {page_id} updated, cleared {removed} cache entries")
        return removed

    def invalidate_schema(self) -> int:
        """A database schema changed upstream; drop everything collection-related."""
        removed = sum(c.invalidate_all() for c in self)
        logger.info(f"Schema updated, cleared {removed} cache entries")
        return removed

    async def refresh(self, name: str) -> int | None:
        """
        Refetch a collection's list now. Returns the new size, or ``None``
        for an unknown collection. Upstream errors propagate and the old
        entry stays.
        """
        collection = self.get(name)
        if collection is None:
            return None
        return len(await collection.reload())
