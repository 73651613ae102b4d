"""
Readers for upstream page properties.

Every reader takes the raw property dict (or ``None``) and returns a plain
value, never raising on missing or oddly-shaped data.
"""

import re
from typing import Any

Property = dict[str, Any] | None


def _first(items: Any) -> dict[str, Any]:
    if isinstance(items, list) and items and isinstance(items[0], dict):
        return items[0]
    return {}


def get_text(prop: Property) -> str:
    """Title or rich-text content."""
    if not prop:
        return ""
    for kind in ("title", "rich_text"):
        content = (_first(prop.get(kind)).get("text") or {}).get("content")
        if content:
            return content
    return ""


def get_rich_text(prop: Property) -> str:
    if not prop:
        return ""
    return (_first(prop.get("rich_text")).get("text") or {}).get("content") or ""


def get_select(prop: Property) -> str:
    if not prop:
        return ""
    return (prop.get("select") or {}).get("name") or ""


def get_multi_select(prop: Property) -> list[str]:
    if not prop:
        return []
    return [item["name"] for item in prop.get("multi_select") or [] if item.get("name")]


def get_number(prop: Property) -> float | None:
    """Plain number, falling back to a numeric formula result."""
    if not prop:
        return None
    if prop.get("number") is not None:
        return prop["number"]
    formula = prop.get("formula") or {}
    if formula.get("type") == "number" and formula.get("number") is not None:
        return formula["number"]
    return None


def get_date(prop: Property) -> str:
    if not prop:
        return ""
    return (prop.get("date") or {}).get("start") or ""


def get_url(prop: Property) -> str:
    if not prop:
        return ""
    return prop.get("url") or ""


def get_file(prop: Property) -> str:
    """URL of the first file, external or upstream-hosted."""
    if not prop:
        return ""
    first = _first(prop.get("files"))
    return (first.get("external") or {}).get("url") or (first.get("file") or {}).get(
        "url"
    ) or ""


def get_cover(page: dict[str, Any]) -> str:
    cover = page.get("cover") or {}
    return (cover.get("external") or {}).get("url") or (cover.get("file") or {}).get(
        "url"
    ) or ""


def parse_list(text: str) -> list[str]:
    """Split newline- or comma-separated text into trimmed, non-empty items."""
    if not text:
        return []
    return [item.strip() for item in re.split(r"[\n,]", text) if item.strip()]
