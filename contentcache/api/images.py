"""Image proxy and preload endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, Header, Query, Response
from loguru import logger
from pydantic import BaseModel, Field

from contentcache.app import AppContainer, get_container
from contentcache.exceptions import BadRequestError
from contentcache.services.image_cache import ImageCache, ResolutionConfig

router = APIRouter(prefix="/api", tags=["images"])

IMAGE_CACHE_CONTROL = "public, max-age=86400, s-maxage=86400"


class PreloadRequest(BaseModel):
    image_urls: list[str] = Field(alias="imageUrls")


@router.get("/image-proxy")
async def image_proxy(
    url: str | None = None,
    w: int | None = Query(default=None, gt=0, le=4096),
    h: int | None = Query(default=None, gt=0, le=4096),
    q: int | None = Query(default=None, gt=0, le=100),
    if_none_match: str | None = Header(default=None),
    container: AppContainer = Depends(get_container),
) -> Response:
    if not url:
        raise BadRequestError("Missing image URL parameter")

    resolution = ResolutionConfig(width=w, height=h, quality=q)

    if if_none_match and ImageCache.is_upstream_hosted(url):
        etag = ImageCache.key_for(url, resolution).etag()
        if if_none_match == etag and container.image_cache.get(url, resolution):
            return Response(status_code=304, headers={"ETag": etag})

    try:
        image = await container.image_proxy.fetch(url, resolution)
    except Exception as e:
        logger.error(f"Image proxy error: {e}")
        image = None

    if image is None:
        return ImageCache.placeholder_response()

    headers = {"Cache-Control": IMAGE_CACHE_CONTROL}
    if image.etag:
        headers["ETag"] = image.etag
    headers["X-Cache"] = "HIT" if image.from_cache else "MISS"
    return Response(
        content=image.buffer,
        media_type=image.content_type,
        headers=headers,
    )


@router.post("/preload-images")
async def preload_images(
    body: PreloadRequest,
    container: AppContainer = Depends(get_container),
) -> dict[str, Any]:
    if not body.image_urls:
        raise BadRequestError("Invalid imageUrls array")

    logger.info(f"Starting batch preload for {len(body.image_urls)} images")
    result = await container.image_proxy.preload(body.image_urls)
    return {"success": True, **result}
