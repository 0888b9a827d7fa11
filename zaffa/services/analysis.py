from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, Iterable, List, Sequence

from zaffa.services.category_tree import children_map, descendant_ids, index_by_id, name_sort_key, section_of


@dataclass
class AnalysisStats:
    total_expected: float
    total_paid: float
    total_items: int
    purchased_items: int
    progress: float


@dataclass
class FeaturedAnalysis:
    analysis: Any
    total_count: int
    purchased_count: int
    items: List[Any] = field(default_factory=list)


def progress_percentage(purchased: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return purchased / total * 100


def expand_category_ids(categories: Sequence[Any], selected_ids: Iterable[Hashable]) -> set[Hashable]:
    """Selected categories plus all their descendants.

    Ids are matched by their string form so values read back from a JSON
    column line up with ORM keys; ids of categories that no longer exist are
    ignored.
    """
    children = children_map(categories)
    known = {str(category.id): category.id for category in categories}
    expanded: set[Hashable] = set()
    for selected in selected_ids:
        category_id = known.get(str(selected))
        if category_id is None or category_id in expanded:
            continue
        expanded.update(descendant_ids(categories, category_id, children))
    return expanded


def analysis_items(
    categories: Sequence[Any],
    items: Iterable[Any],
    selected_ids: Iterable[Hashable],
) -> List[Any]:
    relevant = expand_category_ids(categories, selected_ids)
    return [item for item in items if item.category_id in relevant]


def compute_stats(items: Iterable[Any]) -> AnalysisStats:
    """Summarise a set of items.

    ``total_expected`` is the midpoint estimate of every item in the set,
    bought or not, so it can be compared with ``total_paid``.
    """
    total_items = 0
    purchased_items = 0
    total_expected = 0.0
    total_paid = 0.0
    for item in items:
        total_items += 1
        total_expected += (item.min_price + item.max_price) / 2
        if item.is_purchased:
            purchased_items += 1
            total_paid += item.final_price or 0.0
    return AnalysisStats(
        total_expected=total_expected,
        total_paid=total_paid,
        total_items=total_items,
        purchased_items=purchased_items,
        progress=progress_percentage(purchased_items, total_items),
    )


def featured_analyses(
    analyses: Iterable[Any],
    categories: Sequence[Any],
    items: Sequence[Any],
) -> List[FeaturedAnalysis]:
    results: List[FeaturedAnalysis] = []
    for analysis in analyses:
        if not analysis.is_featured:
            continue
        relevant = analysis_items(categories, items, analysis.category_ids)
        results.append(
            FeaturedAnalysis(
                analysis=analysis,
                total_count=len(relevant),
                purchased_count=sum(1 for item in relevant if item.is_purchased),
                items=relevant,
            )
        )
    return results


def items_by_section(categories: Sequence[Any], items: Iterable[Any]) -> List[tuple[Any, List[Any]]]:
    """Group items under their top-level section, sections ordered by name."""
    by_id = index_by_id(categories)
    section_ids: Dict[Hashable, Hashable] = {}
    grouped: Dict[Hashable, List[Any]] = defaultdict(list)
    for item in items:
        if item.category_id not in by_id:
            continue
        if item.category_id not in section_ids:
            section_ids[item.category_id] = section_of(categories, item.category_id, by_id).id
        grouped[section_ids[item.category_id]].append(item)
    ordered = sorted((by_id[section_id] for section_id in grouped), key=name_sort_key)
    return [(section, grouped[section.id]) for section in ordered]
