"""
Application wiring.

``AppContainer`` owns the process-wide cache, upstream client, collection
registry, image proxy and janitor. It is created once per app, started
on startup and torn down (every refresh task canceled, HTTP clients
closed) on shutdown.
"""

from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from loguru import logger

from contentcache.datasource.collections import default_configs
from contentcache.datasource.registry import CollectionRegistry
from contentcache.datasource.scheduler import CacheJanitor
from contentcache.services.cache import TTLCache
from contentcache.services.client import ResilientClient
from contentcache.services.image_cache import ImageCache
from contentcache.services.image_proxy import ImageProxy
from contentcache.settings import Settings, global_settings


class AppContainer:
    """Owner of every long-lived component."""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        image_transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or global_settings
        self.cache = TTLCache(debug=self.settings.cache_debug)
        self.client = ResilientClient.from_settings(self.settings, transport=transport)
        self.registry = CollectionRegistry(
            self.client, self.cache, default_configs(self.settings)
        )
        self.image_cache = ImageCache(self.cache, ttl_seconds=self.settings.image_ttl)
        self.image_proxy = ImageProxy(
            self.image_cache,
            timeout=self.settings.image_fetch_timeout,
            transport=image_transport,
        )
        self.janitor = CacheJanitor(
            self.cache,
            interval_minutes=self.settings.janitor_interval_minutes,
            grace_seconds=self.settings.janitor_grace,
        )

    async def startup(self) -> None:
        logger.info("Starting content cache...")
        self.janitor.start()
        logger.info(f"Collections: {', '.join(self.registry.names())}")

    async def shutdown(self) -> None:
        logger.info("Shutting down content cache...")
        if self.janitor.is_running():
            self.janitor.stop()
        self.cache.clear()
        await self.client.close()
        await self.image_proxy.close()
        logger.info("Content cache stopped")


def get_container(request: Request) -> AppContainer:
    """FastAPI dependency returning the app's container."""
    return request.app.state.container


def create_app(container: AppContainer | None = None) -> FastAPI:
    """Create the FastAPI app around ``container`` (a new one by default)."""
    from contentcache.api import cache, collections, images, webhook

    container = container or AppContainer()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await container.startup()
        try:
            yield
        finally:
            await container.shutdown()

    app = FastAPI(title="Content Cache", lifespan=lifespan)
    app.state.container = container

    app.include_router(collections.router)
    app.include_router(cache.router)
    app.include_router(images.router)
    app.include_router(webhook.router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "ok", "service": "content-cache"}

    return app
