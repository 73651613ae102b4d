"""
Unit tests for ImageCache and ImageProxy.
"""

import httpx
import pytest

from contentcache.services.image_cache import (
    PLACEHOLDER_SVG,
    ImageCache,
    ImageCacheKey,
    ResolutionConfig,
    canonical_url,
    normalize_quality,
)
from contentcache.services.image_proxy import ImageProxy

SIGNED_URL = (
    "https://prod-files-secure.s3.us-west-2.amazonaws.com/ws/img.png"
    "?X-Amz-Signature=abc&X-Amz-Expires=3600"
)
RESIGNED_URL = (
    "https://prod-files-secure.s3.us-west-2.amazonaws.com/ws/img.png"
    "?X-Amz-Signature=xyz&X-Amz-Expires=3600"
)


@pytest.fixture
def image_cache(cache):
    return ImageCache(cache, ttl_seconds=600)


class TestImageKeys:
    """Key derivation."""

    def test_quality_buckets(self):
        assert normalize_quality(100) == 95
        assert normalize_quality(90) == 85
        assert normalize_quality(80) == 75
        assert normalize_quality(10) == 65
        assert normalize_quality(None) == 85

    def test_canonical_url_drops_query_and_fragment(self):
        assert (
            canonical_url("HTTPS://Example.COM/a/b.png?sig=1#frag")
            == "https://example.com/a/b.png"
        )

    def test_rotating_signature_maps_to_same_key(self):
        assert str(ImageCache.key_for(SIGNED_URL)) == str(
            ImageCache.key_for(RESIGNED_URL)
        )

    def test_key_format(self):
        key = ImageCacheKey.derive(SIGNED_URL, ResolutionConfig(width=400, quality=90))

        assert str(key).startswith("image:")
        assert str(key).endswith(":400xauto:q85")
        assert len(key.image_id) == 16

    def test_no_resolution_equals_empty_resolution(self):
        assert ImageCache.key_for(SIGNED_URL) == ImageCache.key_for(
            SIGNED_URL, ResolutionConfig()
        )

    def test_resolutions_are_distinct(self):
        small = ImageCache.key_for(SIGNED_URL, ResolutionConfig(width=200))
        large = ImageCache.key_for(SIGNED_URL, ResolutionConfig(width=800))

        assert str(small) != str(large)
        assert small.etag() != large.etag()

    def test_to_params(self):
        assert ResolutionConfig().to_params() == {}
        assert ResolutionConfig(width=300).to_params() == {"width": 300, "quality": 85}

    def test_with_resolution_keeps_signature(self):
        url = ImageCache.with_resolution(SIGNED_URL, ResolutionConfig(width=300, quality=70))

        assert "X-Amz-Signature=abc" in url
        assert url.endswith("&width=300&quality=65")

    def test_upstream_host_detection(self):
        assert ImageCache.is_upstream_hosted(SIGNED_URL)
        assert ImageCache.is_upstream_hosted("https://www.notion.so/image/x.png")
        assert ImageCache.is_upstream_hosted("https://s3.notion-static.com/x.png")
        assert not ImageCache.is_upstream_hosted("https://example.com/x.png")
        assert not ImageCache.is_upstream_hosted("https://notion.so.evil.com/x.png")
        assert not ImageCache.is_upstream_hosted("not a url")

    def test_unparseable_url_is_not_upstream(self):
        assert not ImageCache.is_upstream_hosted("https://[bad")
        assert canonical_url("https://[bad") == "https://[bad"
        assert str(ImageCache.key_for("https://[bad")).startswith("image:")


class TestImageCache:
    def test_set_then_get_across_signatures(self, image_cache):
        image_cache.set(SIGNED_URL, b"\x89PNG", "image/png")

        cached = image_cache.get(RESIGNED_URL)

        assert cached.buffer == b"\x89PNG"
        assert cached.content_type == "image/png"

    def test_expired_image_is_a_miss(self, image_cache, clock):
        image_cache.set(SIGNED_URL, b"data", "image/png")
        clock.advance(601)

        assert image_cache.get(SIGNED_URL) is None

    def test_keys_and_clear_only_touch_images(self, image_cache, cache):
        image_cache.set(SIGNED_URL, b"a", "image/png", ResolutionConfig(width=100))
        image_cache.set(SIGNED_URL, b"b", "image/png", ResolutionConfig(width=200))
        cache.set("chargers-list", ["x"], 60)

        assert len(image_cache.keys()) == 2
        assert image_cache.clear() == 2
        assert image_cache.keys() == []
        assert cache.get("chargers-list") == ["x"]

    def test_placeholder_response(self):
        response = ImageCache.placeholder_response()

        assert response.status_code == 200
        assert response.media_type == "image/svg+xml"
        assert response.body == PLACEHOLDER_SVG
        assert response.headers["Cache-Control"] == "public, max-age=86400"


class TestImageProxy:
    """Fetching through the cache with a mocked image host."""

    @pytest.fixture
    def requests(self):
        return []

    @pytest.fixture
    def proxy(self, image_cache, requests):
        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if "missing" in request.url.path:
                return httpx.Response(404)
            return httpx.Response(
                200, content=b"img-bytes", headers={"Content-Type": "image/webp"}
            )

        return ImageProxy(image_cache, transport=httpx.MockTransport(handler))

    @pytest.mark.asyncio
    async def test_upstream_image_cached_after_first_fetch(self, proxy, requests):
        resolution = ResolutionConfig(width=300)

        first = await proxy.fetch(SIGNED_URL, resolution)
        second = await proxy.fetch(RESIGNED_URL, resolution)

        assert first.buffer == b"img-bytes"
        assert first.content_type == "image/webp"
        assert not first.from_cache
        assert second.from_cache
        assert first.etag == second.etag
        assert len(requests) == 1
        assert requests[0].url.params["width"] == "300"
        await proxy.close()

    @pytest.mark.asyncio
    async def test_external_image_not_cached(self, proxy, requests, image_cache):
        url = "https://example.com/photo.jpg"

        await proxy.fetch(url)
        await proxy.fetch(url)

        assert len(requests) == 2
        assert image_cache.keys() == []
        await proxy.close()

    @pytest.mark.asyncio
    async def test_unparseable_url_returns_none(self, proxy, requests):
        assert await proxy.fetch("https://[bad") is None
        assert requests == []
        await proxy.close()

    @pytest.mark.asyncio
    async def test_failed_fetch_returns_none(self, proxy, image_cache):
        url = "https://www.notion.so/images/missing.png"

        assert await proxy.fetch(url) is None
        assert image_cache.keys() == []
        await proxy.close()

    @pytest.mark.asyncio
    async def test_preload_summary(self, proxy, image_cache):
        image_cache.set(SIGNED_URL, b"cached", "image/png")
        urls = [
            SIGNED_URL,
            "https://www.notion.so/images/new.png",
            "https://www.notion.so/images/missing.png",
        ]

        result = await proxy.preload(urls)

        assert result["summary"] == {"preloaded": 1, "alreadyCached": 1, "failed": 1}
        assert [d["status"] for d in result["details"]] == ["cached", "success", "failed"]
        await proxy.close()
