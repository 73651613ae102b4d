"""
Property readers and record transforms.
"""

from contentcache.datasource.collections import is_placeholder
from contentcache.datasource.properties import (
    get_file,
    get_multi_select,
    get_number,
    get_text,
    parse_list,
)
from contentcache.datasource.records import parse_charge_baby, parse_charger
from tests.conftest import make_page


class TestPropertyReaders:
    def test_missing_properties_are_empty(self):
        assert get_text(None) == ""
        assert get_multi_select(None) == []
        assert get_number(None) is None
        assert get_file({"files": []}) == ""

    def test_text_with_null_text_object(self):
        assert get_text({"title": [{"text": None}]}) == ""

    def test_number_formula_fallback(self):
        prop = {"number": None, "formula": {"type": "number", "number": 4.5}}

        assert get_number(prop) == 4.5

    def test_file_prefers_external(self):
        prop = {"files": [{"external": {"url": "https://e/x.png"}}]}

        assert get_file(prop) == "https://e/x.png"

    def test_parse_list(self):
        assert parse_list("fast, small\n light ,") == ["fast", "small", "light"]


class TestRecords:
    def test_charge_baby_keyed_by_model(self):
        record = parse_charge_baby(make_page("id1", "Power Bank", model="PB-20"))

        assert record.key == "PB-20"
        assert record.title == "Power Bank"
        assert record.price == 99

    def test_charger_keyed_by_title(self):
        page = make_page("id2", "65W GaN", tags=["gan", "usb-c"])
        page["properties"]["协议"] = {"multi_select": [{"name": "PD"}, {"name": "QC"}]}

        record = parse_charger(page)

        assert record.key == "65W GaN"
        assert record.tags == ["gan", "usb-c"]
        assert record.protocols == ["PD", "QC"]

    def test_placeholder_rows_hidden(self):
        assert is_placeholder(parse_charger({"id": "x", "properties": {}}))
        assert is_placeholder(parse_charge_baby(make_page("y", "Named")))
        assert not is_placeholder(parse_charger(make_page("z", "Real")))
