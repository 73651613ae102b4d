"""
The three content collections served by the cache.
"""

from contentcache.datasource.collection import CollectionConfig
from contentcache.datasource.records import (
    UNKNOWN,
    Cable,
    ChargeBaby,
    Charger,
    ContentRecord,
    parse_cable,
    parse_charge_baby,
    parse_charger,
)
from contentcache.settings import Settings

CHARGE_BABIES = "charge-babies"
CHARGERS = "chargers"
CABLES = "cables"


def is_placeholder(record: ContentRecord) -> bool:
    """Rows without a usable natural key cannot be routed to; keep them out of lists."""
    return not record.key or record.key == UNKNOWN


def tagged_query(sort_property: str) -> dict:
    return {
        "filter": {"property": "Tags", "multi_select": {"is_not_empty": True}},
        "sorts": [{"property": sort_property, "direction": "descending"}],
    }


def charge_baby_config(settings: Settings) -> CollectionConfig[ChargeBaby]:
    return CollectionConfig(
        name=CHARGE_BABIES,
        database_id=settings.product_database_id,
        parse=parse_charge_baby,
        query={"sorts": [{"property": "Title", "direction": "ascending"}]},
        is_hidden=is_placeholder,
        list_ttl=settings.list_ttl,
        detail_ttl=settings.detail_ttl,
    )


def charger_config(settings: Settings) -> CollectionConfig[Charger]:
    return CollectionConfig(
        name=CHARGERS,
        database_id=settings.charger_database_id,
        parse=parse_charger,
        query=tagged_query("UpdatedAt"),
        is_hidden=is_placeholder,
        list_ttl=settings.list_ttl,
        detail_ttl=settings.detail_ttl,
    )


def cable_config(settings: Settings) -> CollectionConfig[Cable]:
    return CollectionConfig(
        name=CABLES,
        database_id=settings.cable_database_id,
        parse=parse_cable,
        query=tagged_query("更新日期"),
        is_hidden=is_placeholder,
        list_ttl=settings.list_ttl,
        detail_ttl=settings.detail_ttl,
    )


def default_configs(settings: Settings) -> list[CollectionConfig]:
    return [
        charge_baby_config(settings),
        charger_config(settings),
        cable_config(settings),
    ]
