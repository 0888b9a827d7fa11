import pytest

from zaffa.models.entities import NAME_MAX_LENGTH
from zaffa.services.importer import (
    ColumnMapping,
    ImportMappingError,
    normalize_price_range,
    parse_csv,
    parse_price,
)

MAPPING = ColumnMapping(section="Room", category="Group", name="Item", min_price="Min", max_price="Max")


def test_parse_price_falls_back_to_zero():
    assert parse_price("12.5") == 12.5
    assert parse_price(" 7 ") == 7
    assert parse_price("abc") == 0
    assert parse_price("-4") == 0
    assert parse_price("nan") == 0
    assert parse_price(None) == 0


def test_inverted_range_is_swapped():
    assert normalize_price_range(300, 100) == (100, 300)
    assert normalize_price_range(1, 2) == (1, 2)


def test_parse_csv_maps_columns_and_counts_skipped_rows():
    text = (
        "\ufeffRoom,Group,Item,Min,Max\n"
        "Kitchen,Appliances,Fridge,300,100\n"
        "Kitchen,,Spoon,1,2\n"
        "\n"
        "Bedroom,Furniture,Bed,oops,500\n"
    )
    rows, skipped = parse_csv(text, MAPPING)
    assert skipped == 1
    assert [(r.section, r.category, r.name) for r in rows] == [
        ("Kitchen", "Appliances", "Fridge"),
        ("Bedroom", "Furniture", "Bed"),
    ]
    assert (rows[0].min_price, rows[0].max_price) == (100, 300)
    assert (rows[1].min_price, rows[1].max_price) == (0, 500)


def test_optional_price_columns():
    mapping = ColumnMapping(section="Room", category="Group", name="Item")
    rows, skipped = parse_csv("Room,Group,Item\nHall,Lights,Lamp\n", mapping)
    assert skipped == 0
    assert (rows[0].min_price, rows[0].max_price) == (0, 0)


def test_unknown_column_raises():
    with pytest.raises(ImportMappingError):
        parse_csv("Room,Group,Name\nA,B,C\n", MAPPING)


def test_empty_file_raises():
    with pytest.raises(ImportMappingError):
        parse_csv("", MAPPING)


def test_long_names_are_cut_to_column_length():
    long_name = "Sofa " + "x" * 300
    text = f"Room,Group,Item\nLiving {'y' * 200},Seating,{long_name}\n"
    rows, skipped = parse_csv(text, ColumnMapping(section="Room", category="Group", name="Item"))
    assert skipped == 0
    assert len(rows[0].section) == NAME_MAX_LENGTH
    assert rows[0].name == long_name[:NAME_MAX_LENGTH]
    assert rows[0].category == "Seating"
