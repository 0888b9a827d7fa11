from __future__ import annotations

import csv
import io
import math
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from zaffa.models.entities import NAME_MAX_LENGTH, Category, ChecklistItem

REQUIRED_COLUMNS = ("section", "category", "name")
OPTIONAL_COLUMNS = ("min_price", "max_price")


class ImportMappingError(ValueError):
    """Raised when the CSV header does not contain a mapped column."""


@dataclass
class ColumnMapping:
    section: str
    category: str
    name: str
    min_price: Optional[str] = None
    max_price: Optional[str] = None


@dataclass
class ImportRow:
    section: str
    category: str
    name: str
    min_price: float
    max_price: float


@dataclass
class ImportResult:
    imported: int
    skipped: int
    created_categories: int


def parse_price(raw: Optional[str]) -> float:
    if raw is None:
        return 0.0
    try:
        value = float(raw.strip())
    except ValueError:
        return 0.0
    if math.isnan(value) or math.isinf(value) or value < 0:
        return 0.0
    return value


def normalize_price_range(min_price: float, max_price: float) -> Tuple[float, float]:
    if min_price > max_price:
        return max_price, min_price
    return min_price, max_price


def _column_index(header: List[str], column: Optional[str]) -> Optional[int]:
    if column is None:
        return None
    wanted = column.strip()
    for index, cell in enumerate(header):
        if cell == wanted:
            return index
    raise ImportMappingError(f"Column '{wanted}' not found in header")


def _cell(row: List[str], index: Optional[int]) -> Optional[str]:
    if index is None or index >= len(row):
        return None
    return row[index]


def _name_cell(row: List[str], index: Optional[int]) -> str:
    """Stripped cell text cut to the stored name length."""
    return (_cell(row, index) or "").strip()[:NAME_MAX_LENGTH].rstrip()


def parse_csv(text: str, mapping: ColumnMapping) -> Tuple[List[ImportRow], int]:
    """Parse ``text`` into import rows using the header-based ``mapping``.

    Returns the usable rows and the number of data rows skipped for missing
    section, category or name. Blank lines are ignored.
    """
    reader = csv.reader(io.StringIO(text.lstrip("\ufeff")))
    try:
        header = [cell.strip() for cell in next(reader)]
    except StopIteration:
        raise ImportMappingError("CSV file is empty") from None
    indexes: Dict[str, Optional[int]] = {
        field_name: _column_index(header, getattr(mapping, field_name))
        for field_name in REQUIRED_COLUMNS + OPTIONAL_COLUMNS
    }

    rows: List[ImportRow] = []
    skipped = 0
    for raw in reader:
        if not any(cell.strip() for cell in raw):
            continue
        section = _name_cell(raw, indexes["section"])
        category = _name_cell(raw, indexes["category"])
        name = _name_cell(raw, indexes["name"])
        if not section or not category or not name:
            skipped += 1
            continue
        min_price, max_price = normalize_price_range(
            parse_price(_cell(raw, indexes["min_price"])),
            parse_price(_cell(raw, indexes["max_price"])),
        )
        rows.append(
            ImportRow(
                section=section,
                category=category,
                name=name,
                min_price=min_price,
                max_price=max_price,
            )
        )
    return rows, skipped


def apply_import(session: Session, household_id: uuid.UUID, rows: List[ImportRow]) -> Tuple[int, int]:
    """Add imported rows to the household, creating missing categories.

    Returns ``(items_created, categories_created)``. Caller commits.
    """
    existing = session.execute(select(Category).where(Category.household_id == household_id)).scalars().all()
    lookup: Dict[Tuple[str, Optional[uuid.UUID]], Category] = {
        (category.name.casefold(), category.parent_id): category for category in existing
    }
    created_categories = 0

    def _get_or_create(name: str, parent_id: Optional[uuid.UUID]) -> Category:
        nonlocal created_categories
        key = (name.casefold(), parent_id)
        category = lookup.get(key)
        if category is None:
            category = Category(household_id=household_id, name=name, parent_id=parent_id)
            session.add(category)
            session.flush()
            lookup[key] = category
            created_categories += 1
        return category

    for row in rows:
        section = _get_or_create(row.section, None)
        category = _get_or_create(row.category, section.id)
        session.add(
            ChecklistItem(
                household_id=household_id,
                category_id=category.id,
                name=row.name,
                min_price=row.min_price,
                max_price=row.max_price,
                is_purchased=False,
                priority="medium",
            )
        )
    session.flush()
    return len(rows), created_categories


def import_csv(session: Session, household_id: uuid.UUID, text: str, mapping: ColumnMapping) -> ImportResult:
    rows, skipped = parse_csv(text, mapping)
    imported, created_categories = apply_import(session, household_id, rows)
    return ImportResult(imported=imported, skipped=skipped, created_categories=created_categories)
