"""
Domain records built from upstream pages.
"""

from typing import Any

from pydantic import BaseModel, Field

from contentcache.datasource.properties import (
    get_cover,
    get_date,
    get_file,
    get_multi_select,
    get_number,
    get_rich_text,
    get_select,
    get_text,
    get_url,
    parse_list,
)

UNKNOWN = "Unknown"


class ContentRecord(BaseModel):
    """Fields every collection shares."""

    id: str
    title: str = UNKNOWN
    subtitle: str = ""
    display_name: str = ""
    tags: list[str] = Field(default_factory=list)
    price: float = 0
    release_date: str = ""
    overall_rating: float = 0
    performance_rating: float = 0
    experience_rating: float = 0
    advantages: list[str] = Field(default_factory=list)
    disadvantages: list[str] = Field(default_factory=list)
    image_url: str = ""
    final_image_url: str = ""
    created_at: str = ""
    updated_at: str = ""
    properties: dict[str, Any] = Field(default_factory=dict)
    blocks: list[dict[str, Any]] = Field(default_factory=list)

    @property
    def key(self) -> str:
        """Natural key used in detail routes."""
        return self.title


class ChargeBaby(ContentRecord):
    """Power bank review record."""

    model: str = UNKNOWN
    energy: float = 0
    portability: float = 0
    self_charging_capability: float = 0
    output_capability: float = 0

    @property
    def key(self) -> str:
        return self.model


class Charger(ContentRecord):
    """Wall charger review record."""

    brand: str = ""
    protocols: list[str] = Field(default_factory=list)
    product_source: str = ""
    taobao_link: str = ""
    jd_link: str = ""


class Cable(ContentRecord):
    """Charging cable review record."""

    brand: str = ""
    product_source: str = ""


def common_fields(page: dict[str, Any]) -> dict[str, Any]:
    """Fields shared by every collection's transform."""
    props = page.get("properties") or {}
    return {
        "id": page["id"],
        "title": get_text(props.get("Title")) or get_text(props.get("Name")) or UNKNOWN,
        "subtitle": get_text(props.get("Subtitle")),
        "display_name": get_text(props.get("DisplayName")),
        "tags": get_multi_select(props.get("Tags")),
        "price": get_number(props.get("Price")) or 0,
        "release_date": get_date(props.get("ReleaseDate")),
        "advantages": parse_list(get_rich_text(props.get("Advantages"))),
        "disadvantages": parse_list(get_rich_text(props.get("Disadvantages"))),
        "image_url": get_file(props.get("Image")) or get_cover(page),
        "created_at": get_date(props.get("CreatedAt")) or page.get("created_time", ""),
        "updated_at": get_date(props.get("UpdatedAt"))
        or page.get("last_edited_time", ""),
        "properties": props,
    }


def parse_charge_baby(page: dict[str, Any]) -> ChargeBaby:
    props = page.get("properties") or {}
    fields = common_fields(page)
    return ChargeBaby(
        **fields,
        model=get_text(props.get("Model")) or get_text(props.get("Name")) or UNKNOWN,
        overall_rating=get_number(props.get("OverallRating")) or 0,
        performance_rating=get_number(props.get("PerformanceRating")) or 0,
        experience_rating=get_number(props.get("ExperienceRating")) or 0,
        energy=get_number(props.get("Energy")) or 0,
        portability=get_number(props.get("Portability")) or 0,
        self_charging_capability=get_number(props.get("SelfChargingCapability")) or 0,
        output_capability=get_number(props.get("OutputCapability")) or 0,
        final_image_url=get_file(props.get("FinalImage"))
        or get_file(props.get("Poster"))
        or get_file(props.get("ShareImage")),
    )


def parse_charger(page: dict[str, Any]) -> Charger:
    props = page.get("properties") or {}
    fields = common_fields(page)
    return Charger(
        **fields,
        brand=get_text(props.get("品牌")),
        protocols=get_multi_select(props.get("协议")),
        overall_rating=get_number(props.get("综合评分")) or 0,
        performance_rating=get_number(props.get("性能评分")) or 0,
        experience_rating=get_number(props.get("体验评分")) or 0,
        final_image_url=get_file(props.get("Image")),
        product_source=get_select(props.get("ProductSource")),
        taobao_link=get_url(props.get("TaobaoLink")),
        jd_link=get_url(props.get("JDLink")),
    )


def parse_cable(page: dict[str, Any]) -> Cable:
    props = page.get("properties") or {}
    fields = common_fields(page)
    return Cable(
        **fields,
        brand=get_text(props.get("品牌")),
        overall_rating=get_number(props.get("综合评分")) or 0,
        performance_rating=get_number(props.get("性能评分")) or 0,
        experience_rating=get_number(props.get("体验评分")) or 0,
        final_image_url=get_file(props.get("Image")),
        product_source=get_select(props.get("ProductSource")),
    )
