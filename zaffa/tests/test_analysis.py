import uuid
from types import SimpleNamespace

from zaffa.services import analysis, category_tree
from zaffa.services.analysis import (
    analysis_items,
    compute_stats,
    expand_category_ids,
    featured_analyses,
    items_by_section,
    progress_percentage,
)

KITCHEN = uuid.uuid4()
APPLIANCES = uuid.uuid4()
SMALL = uuid.uuid4()
BEDROOM = uuid.uuid4()

CATEGORIES = [
    SimpleNamespace(id=KITCHEN, name="Kitchen", parent_id=None),
    SimpleNamespace(id=APPLIANCES, name="Appliances", parent_id=KITCHEN),
    SimpleNamespace(id=SMALL, name="Small", parent_id=APPLIANCES),
    SimpleNamespace(id=BEDROOM, name="Bedroom", parent_id=None),
]


def _item(name, category_id, min_price=0.0, max_price=0.0, purchased=False, final_price=None):
    return SimpleNamespace(
        name=name,
        category_id=category_id,
        min_price=min_price,
        max_price=max_price,
        is_purchased=purchased,
        final_price=final_price,
    )


ITEMS = [
    _item("Fridge", APPLIANCES, 900, 1100, purchased=True, final_price=950),
    _item("Kettle", SMALL, 20, 40),
    _item("Bed", BEDROOM, 300, 500),
]


def test_progress_for_zero_items_is_zero():
    assert progress_percentage(0, 0) == 0
    assert compute_stats([]).progress == 0


def test_selecting_section_includes_descendants():
    assert expand_category_ids(CATEGORIES, [KITCHEN]) == {KITCHEN, APPLIANCES, SMALL}
    names = [item.name for item in analysis_items(CATEGORIES, ITEMS, [KITCHEN])]
    assert names == ["Fridge", "Kettle"]


def test_string_ids_and_unknown_ids():
    assert expand_category_ids(CATEGORIES, [str(APPLIANCES), str(uuid.uuid4())]) == {APPLIANCES, SMALL}


def test_compute_stats_counts_expected_for_every_item():
    stats = compute_stats(analysis_items(CATEGORIES, ITEMS, [KITCHEN]))
    assert stats.total_items == 2
    assert stats.purchased_items == 1
    assert stats.total_expected == 1000 + 30
    assert stats.total_paid == 950
    assert stats.progress == 50


def test_featured_analyses_only_featured():
    analyses = [
        SimpleNamespace(title="Kitchen", category_ids=[str(KITCHEN)], is_featured=True),
        SimpleNamespace(title="Bedroom", category_ids=[str(BEDROOM)], is_featured=False),
    ]
    featured = featured_analyses(analyses, CATEGORIES, ITEMS)
    assert len(featured) == 1
    assert featured[0].analysis.title == "Kitchen"
    assert featured[0].total_count == 2
    assert featured[0].purchased_count == 1


def test_items_grouped_by_section_in_name_order():
    grouped = items_by_section(CATEGORIES, ITEMS)
    assert [section.name for section, _ in grouped] == ["Bedroom", "Kitchen"]
    assert [item.name for item in grouped[1][1]] == ["Fridge", "Kettle"]


def test_items_by_section_indexes_categories_once(monkeypatch):
    calls = []
    original = category_tree.index_by_id

    def counting_index(categories):
        calls.append(1)
        return original(categories)

    monkeypatch.setattr(category_tree, "index_by_id", counting_index)
    monkeypatch.setattr(analysis, "index_by_id", counting_index)
    items = [_item(f"Spoon {n}", SMALL) for n in range(50)] + [_item("Lamp", BEDROOM)]

    grouped = items_by_section(CATEGORIES + [SimpleNamespace(id=uuid.uuid4(), name="Garage", parent_id=None)], items)
    assert len(calls) == 1
    assert [(section.name, len(section_items)) for section, section_items in grouped] == [
        ("Bedroom", 1),
        ("Kitchen", 50),
    ]
