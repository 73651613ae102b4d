"""Read endpoints over the cached collections."""

from typing import Any

from fastapi import APIRouter, Depends

from contentcache.app import AppContainer, get_container
from contentcache.datasource.collection import ContentCollection
from contentcache.exceptions import NotFoundError

router = APIRouter(prefix="/api/collections", tags=["collections"])


def _collection(name: str, container: AppContainer) -> ContentCollection:
    collection = container.registry.get(name)
    if collection is None:
        raise NotFoundError(f"Unknown collection '{name}'")
    return collection


@router.get("")
async def list_collections(container: AppContainer = Depends(get_container)):
    return {"collections": container.registry.names()}


@router.get("/{name}")
async def list_records(
    name: str,
    tag: str | None = None,
    container: AppContainer = Depends(get_container),
) -> dict[str, Any]:
    collection = _collection(name, container)
    records = await (collection.list_by_tag(tag) if tag else collection.list_all())
    return {
        "collection": name,
        "count": len(records),
        "items": [r.model_dump(exclude={"properties", "blocks"}) for r in records],
    }


@router.get("/{name}/items/{key}")
async def get_record(
    name: str,
    key: str,
    container: AppContainer = Depends(get_container),
) -> dict[str, Any]:
    record = await _collection(name, container).get_by_key(key)
    if record is None:
        raise NotFoundError(f"{name} '{key}' not found")
    return record.model_dump()


@router.get("/{name}/ids/{record_id}")
async def get_record_by_id(
    name: str,
    record_id: str,
    container: AppContainer = Depends(get_container),
) -> dict[str, Any]:
    record = await _collection(name, container).get_by_id(record_id)
    if record is None:
        raise NotFoundError(f"{name} '{record_id}' not found")
    return record.model_dump()
