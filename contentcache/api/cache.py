"""Cache administration endpoints."""

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel

from contentcache.app import AppContainer, get_container
from contentcache.exceptions import BadRequestError, NotFoundError

router = APIRouter(prefix="/api/cache", tags=["cache"])

ACTIONS = ("stats", "clear", "refresh", "images", "clear-images")


class CacheDeleteRequest(BaseModel):
    """Delete one key, or every key under a prefix."""

    key: str | None = None
    prefix: str | None = None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("")
async def cache_action(
    action: str | None = None,
    collection: str | None = None,
    container: AppContainer = Depends(get_container),
) -> Any:
    cache = container.cache

    if action == "stats":
        return {
            "success": True,
            "data": {**cache.stats(), "details": cache.get_stats().to_dict()},
            "timestamp": _now(),
        }

    if action == "clear":
        cache.clear()
        return {
            "success": True,
            "message": "Cache cleared successfully",
            "timestamp": _now(),
        }

    if action == "refresh":
        names = [collection] if collection else container.registry.names()
        if collection and container.registry.get(collection) is None:
            raise NotFoundError(f"Unknown collection '{collection}'")

        refreshed: dict[str, int] = {}
        try:
            for name in names:
                refreshed[name] = await container.registry.refresh(name)
        except Exception as e:
            logger.error(f"Cache refresh failed: {e}")
            return JSONResponse(
                status_code=500,
                content={
                    "success": False,
                    "error": "Failed to refresh cache",
                    "refreshed": refreshed,
                    "timestamp": _now(),
                },
            )
        return {
            "success": True,
            "message": "Cache refreshed successfully",
            "refreshed": refreshed,
            "timestamp": _now(),
        }

    if action == "images":
        image_keys = container.image_cache.keys()
        return {
            "success": True,
            "data": {
                "total": cache.stats()["size"],
                "images": len(image_keys),
                "imageKeys": image_keys[:10],
            },
            "timestamp": _now(),
        }

    if action == "clear-images":
        removed = container.image_cache.clear()
        return {
            "success": True,
            "message": f"Cleared {removed} image cache entries",
            "timestamp": _now(),
        }

    raise BadRequestError(
        f"Invalid action. Supported actions: {', '.join(ACTIONS)}"
    )


@router.post("")
async def delete_cache_entry(
    body: CacheDeleteRequest,
    container: AppContainer = Depends(get_container),
) -> dict[str, Any]:
    if body.key:
        container.cache.delete(body.key)
        message = f'Cache key "{body.key}" deleted successfully'
    elif body.prefix:
        removed = container.cache.delete_by_prefix(body.prefix)
        message = f'Deleted {removed} cache keys with prefix "{body.prefix}"'
    else:
        raise BadRequestError("Cache key or prefix is required")

    return {"success": True, "message": message, "timestamp": _now()}
