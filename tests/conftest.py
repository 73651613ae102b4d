"""
Shared fixtures.
"""

from typing import Any

import pytest

from contentcache.services.cache import TTLCache


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_page(
    page_id: str,
    title: str,
    tags: list[str] | None = None,
    model: str | None = None,
) -> dict[str, Any]:
    """Minimal upstream page payload."""
    properties: dict[str, Any] = {
        "Title": {"title": [{"text": {"content": title}}]},
        "Tags": {"multi_select": [{"name": t} for t in (tags or ["review"])]},
        "Price": {"number": 99},
    }
    if model is not None:
        properties["Model"] = {"rich_text": [{"text": {"content": model}}]}
    return {"id": page_id, "properties": properties}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    cache = TTLCache(clock=clock, debug=True)
    yield cache
    cache.clear()
