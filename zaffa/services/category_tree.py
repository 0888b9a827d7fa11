"""Category hierarchy helpers.

Categories form a forest: a category whose ``parent_id`` is ``None`` is a
*section*, everything else is a sub-category. The helpers here work on any
objects exposing ``id``, ``parent_id`` and ``name`` (ORM rows in the API,
plain objects in tests), and items exposing ``category_id``, ``min_price``,
``max_price``, ``is_purchased`` and ``final_price``.

Nothing in the store prevents a cycle from being written by two concurrent
parent changes, so every traversal tracks the nodes it has visited and raises
``CategoryCycleError`` instead of recursing forever.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, Iterable, List, Optional, Sequence

UNKNOWN_CATEGORY_LABEL = "Unknown category"
MAX_CATEGORY_DEPTH = 32


class CategoryCycleError(ValueError):
    """Raised when a parent chain loops back onto itself."""


class CategoryDepthError(ValueError):
    """Raised when a category would sit deeper than ``MAX_CATEGORY_DEPTH`` levels."""


@dataclass
class CategoryTotals:
    expected_total: float = 0.0
    paid_total: float = 0.0
    item_count: int = 0
    purchased_count: int = 0

    def add_item(self, item: Any) -> None:
        self.item_count += 1
        if item.is_purchased:
            self.purchased_count += 1
            self.paid_total += item.final_price or 0.0
        else:
            self.expected_total += (item.min_price + item.max_price) / 2

    def merge(self, other: CategoryTotals) -> None:
        self.expected_total += other.expected_total
        self.paid_total += other.paid_total
        self.item_count += other.item_count
        self.purchased_count += other.purchased_count

    @property
    def is_empty(self) -> bool:
        return self.item_count == 0


@dataclass
class CategoryNode:
    category: Any
    depth: int
    totals: CategoryTotals
    items: List[Any] = field(default_factory=list)
    children: List[CategoryNode] = field(default_factory=list)


def name_sort_key(category: Any) -> tuple[str, str]:
    return (category.name.casefold(), category.name)


def index_by_id(categories: Iterable[Any]) -> Dict[Hashable, Any]:
    return {category.id: category for category in categories}


def children_map(categories: Iterable[Any]) -> Dict[Optional[Hashable], List[Any]]:
    """Group categories by parent id, each sibling list sorted by name."""
    grouped: Dict[Optional[Hashable], List[Any]] = defaultdict(list)
    for category in categories:
        grouped[category.parent_id].append(category)
    for siblings in grouped.values():
        siblings.sort(key=name_sort_key)
    return grouped


def sections(categories: Iterable[Any]) -> List[Any]:
    return sorted((c for c in categories if c.parent_id is None), key=name_sort_key)


def descendant_ids(
    categories: Sequence[Any],
    category_id: Hashable,
    children: Optional[Dict[Optional[Hashable], List[Any]]] = None,
) -> List[Hashable]:
    """Return ``category_id`` followed by the ids of all its descendants."""
    if children is None:
        children = children_map(categories)
    ordered: List[Hashable] = []
    seen: set[Hashable] = set()
    stack = [category_id]
    while stack:
        current = stack.pop()
        if current in seen:
            raise CategoryCycleError(f"Category {current} appears twice below {category_id}")
        seen.add(current)
        ordered.append(current)
        stack.extend(child.id for child in reversed(children.get(current, [])))
    return ordered


def compute_totals(categories: Sequence[Any], items: Iterable[Any]) -> Dict[Hashable, CategoryTotals]:
    """Roll up item totals for every category, including all descendants.

    Items pointing at unknown categories are ignored. Uses an explicit
    post-order stack rather than recursion.
    """
    children = children_map(categories)
    direct: Dict[Hashable, List[Any]] = defaultdict(list)
    for item in items:
        direct[item.category_id].append(item)

    totals: Dict[Hashable, CategoryTotals] = {}
    visiting: set[Hashable] = set()
    for category in categories:
        stack: List[tuple[Hashable, bool]] = [(category.id, False)]
        while stack:
            category_id, expanded = stack.pop()
            if expanded:
                result = CategoryTotals()
                for item in direct.get(category_id, []):
                    result.add_item(item)
                for child in children.get(category_id, []):
                    result.merge(totals[child.id])
                visiting.discard(category_id)
                totals[category_id] = result
                continue
            if category_id in totals:
                continue
            if category_id in visiting:
                raise CategoryCycleError(f"Category {category_id} is its own ancestor")
            visiting.add(category_id)
            stack.append((category_id, True))
            stack.extend((child.id, False) for child in children.get(category_id, []))
    return totals


def build_tree(
    categories: Sequence[Any],
    items: Iterable[Any] = (),
    include_empty: bool = True,
) -> List[CategoryNode]:
    """Build the nested section tree with per-node totals and direct items.

    With ``include_empty=False`` sections that hold no items anywhere below
    them are dropped, matching what the checklist renders.
    """
    items = list(items)
    children = children_map(categories)
    totals = compute_totals(categories, items)
    direct: Dict[Hashable, List[Any]] = defaultdict(list)
    for item in items:
        direct[item.category_id].append(item)

    roots: List[CategoryNode] = []
    stack: List[tuple[Any, int, Optional[CategoryNode]]] = [
        (section, 0, None) for section in reversed(children.get(None, []))
    ]
    while stack:
        category, depth, parent = stack.pop()
        node = CategoryNode(
            category=category,
            depth=depth,
            totals=totals[category.id],
            items=direct.get(category.id, []),
        )
        (parent.children if parent is not None else roots).append(node)
        stack.extend((child, depth + 1, node) for child in reversed(children.get(category.id, [])))
    if not include_empty:
        roots = [node for node in roots if not node.totals.is_empty]
    return roots


def flatten_tree(categories: Sequence[Any]) -> List[tuple[Any, int]]:
    """Depth-ordered (pre-order) sequence of ``(category, depth)`` pairs.

    Sections have depth 0 and siblings are visited in name order. Categories
    that cannot be reached from a section are left out.
    """
    children = children_map(categories)
    rows: List[tuple[Any, int]] = []
    seen: set[Hashable] = set()
    stack: List[tuple[Any, int]] = [(section, 0) for section in reversed(children.get(None, []))]
    while stack:
        category, depth = stack.pop()
        if category.id in seen:
            raise CategoryCycleError(f"Category {category.id} reached twice")
        seen.add(category.id)
        rows.append((category, depth))
        stack.extend((child, depth + 1) for child in reversed(children.get(category.id, [])))
    return rows


def _ancestors(by_id: Dict[Hashable, Any], category_id: Hashable) -> List[Any]:
    chain: List[Any] = []
    current = by_id.get(category_id)
    while current is not None:
        if len(chain) > len(by_id):
            raise CategoryCycleError(f"Parent chain of {category_id} does not terminate")
        chain.append(current)
        current = by_id.get(current.parent_id) if current.parent_id is not None else None
    return chain


def category_path(categories: Sequence[Any], category_id: Hashable, separator: str = " / ") -> str:
    by_id = index_by_id(categories)
    chain = _ancestors(by_id, category_id)
    if not chain:
        return UNKNOWN_CATEGORY_LABEL
    return separator.join(category.name for category in reversed(chain))


def section_of(
    categories: Sequence[Any],
    category_id: Hashable,
    by_id: Optional[Dict[Hashable, Any]] = None,
) -> Optional[Any]:
    if by_id is None:
        by_id = index_by_id(categories)
    chain = _ancestors(by_id, category_id)
    return chain[-1] if chain else None


def validate_parent_change(
    categories: Sequence[Any],
    category_id: Hashable,
    new_parent_id: Optional[Hashable],
) -> None:
    """Reject a parent change that would make ``category_id`` its own ancestor.

    Walks upward from the proposed parent, comparing every step with the
    category being moved.
    """
    by_id = index_by_id(categories)
    current = new_parent_id
    steps = 0
    while current is not None:
        if current == category_id:
            raise CategoryCycleError("A category cannot be placed under itself or its descendants")
        steps += 1
        if steps > len(by_id):
            raise CategoryCycleError("Existing parent chain contains a cycle")
        parent = by_id.get(current)
        current = parent.parent_id if parent is not None else None


def section_summaries(
    categories: Sequence[Any],
    items: Iterable[Any] = (),
    include_empty: bool = True,
) -> List[tuple[Any, CategoryTotals]]:
    """Top-level sections in name order, each with its aggregate totals."""
    totals = compute_totals(categories, items)
    rows = [(section, totals[section.id]) for section in sections(categories)]
    if not include_empty:
        rows = [(section, section_totals) for section, section_totals in rows if not section_totals.is_empty]
    return rows


def subtree_height(
    categories: Sequence[Any],
    category_id: Hashable,
    children: Optional[Dict[Optional[Hashable], List[Any]]] = None,
) -> int:
    """Levels below ``category_id``; 0 for a leaf."""
    if children is None:
        children = children_map(categories)
    height = 0
    seen: set[Hashable] = set()
    stack: List[tuple[Hashable, int]] = [(category_id, 0)]
    while stack:
        current, level = stack.pop()
        if current in seen:
            raise CategoryCycleError(f"Category {current} appears twice below {category_id}")
        seen.add(current)
        height = max(height, level)
        stack.extend((child.id, level + 1) for child in children.get(current, []))
    return height


def check_depth(
    categories: Sequence[Any],
    new_parent_id: Optional[Hashable],
    category_id: Optional[Hashable] = None,
) -> None:
    """Reject placing a category (and its subtree) under ``new_parent_id`` past the depth limit.

    ``category_id`` is the category being moved, ``None`` for a new one.
    """
    depth = 0
    if new_parent_id is not None:
        depth = len(_ancestors(index_by_id(categories), new_parent_id))
    height = subtree_height(categories, category_id) if category_id is not None else 0
    if depth + height >= MAX_CATEGORY_DEPTH:
        raise CategoryDepthError(f"Categories can be nested at most {MAX_CATEGORY_DEPTH} levels deep")
