from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from zaffa.api.v1.deps.auth import get_current_user, require_household_access
from zaffa.db.session import get_session
from zaffa.models.entities import Category, ChecklistItem, Household, User
from zaffa.schemas.base import CategorySchema, ItemSchema, TotalsSchema, strip_text
from zaffa.services import activity
from zaffa.services.category_tree import (
    CategoryCycleError,
    CategoryDepthError,
    CategoryNode,
    build_tree,
    category_path,
    check_depth,
    flatten_tree,
    section_summaries,
    validate_parent_change,
)
from zaffa.services.households import load_categories, load_items

router = APIRouter()


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    parent_id: Optional[UUID] = None

    @field_validator("name", mode="before")
    def strip_name(cls, value: Any) -> Any:
        return strip_text(value)


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=128)
    parent_id: Optional[UUID] = None

    @field_validator("name", mode="before")
    def strip_name(cls, value: Any) -> Any:
        return strip_text(value)


class CategoryRow(CategorySchema):
    depth: int


class CategoryTreeNode(BaseModel):
    category: CategorySchema
    depth: int
    totals: TotalsSchema
    items: list[ItemSchema]
    children: list[CategoryTreeNode]


CategoryTreeNode.model_rebuild()


class SectionSummary(BaseModel):
    section: CategorySchema
    totals: TotalsSchema


def _node_out(root: CategoryNode) -> CategoryTreeNode:
    order: list[CategoryNode] = []
    stack = [root]
    while stack:
        node = stack.pop()
        order.append(node)
        stack.extend(node.children)
    built: dict[int, CategoryTreeNode] = {}
    for node in reversed(order):
        built[id(node)] = CategoryTreeNode(
            category=CategorySchema.model_validate(node.category),
            depth=node.depth,
            totals=TotalsSchema.model_validate(node.totals),
            items=[ItemSchema.model_validate(item) for item in node.items],
            children=[built[id(child)] for child in node.children],
        )
    return built[id(root)]


def _tree_conflict(exc: ValueError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))


def get_household_category(session: Session, household_id: UUID, category_id: UUID) -> Category:
    category = session.execute(
        select(Category).where(Category.id == category_id, Category.household_id == household_id)
    ).scalar_one_or_none()
    if not category:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
    return category


def _ensure_unique_name(
    session: Session,
    household_id: UUID,
    parent_id: Optional[UUID],
    name: str,
    exclude_id: Optional[UUID] = None,
) -> None:
    filters = [
        Category.household_id == household_id,
        func.lower(Category.name) == name.lower(),
        Category.parent_id.is_(None) if parent_id is None else Category.parent_id == parent_id,
    ]
    if exclude_id is not None:
        filters.append(Category.id != exclude_id)
    if session.execute(select(Category.id).where(*filters)).first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f'A category named "{name}" already exists here',
        )


@router.post(
    "/households/{household_id}/categories",
    response_model=CategorySchema,
    status_code=status.HTTP_201_CREATED,
)
def create_category(
    household_id: UUID,
    payload: CategoryCreate,
    household: Household = Depends(require_household_access),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> Category:
    name = payload.name
    if payload.parent_id is not None:
        get_household_category(session, household_id, payload.parent_id)
        try:
            check_depth(load_categories(session, household_id), payload.parent_id)
        except (CategoryCycleError, CategoryDepthError) as exc:
            raise _tree_conflict(exc) from exc
    _ensure_unique_name(session, household_id, payload.parent_id, name)
    category = Category(household_id=household_id, parent_id=payload.parent_id, name=name)
    session.add(category)
    session.flush()
    if category.is_section:
        activity.log_activity(session, household_id, user, activity.CREATE_SECTION, f'Created section "{name}"')
    else:
        path = category_path(load_categories(session, household_id), category.id)
        activity.log_activity(session, household_id, user, activity.CREATE_CATEGORY, f'Created category "{path}"')
    session.commit()
    session.refresh(category)
    return category


@router.get("/households/{household_id}/categories", response_model=list[CategoryRow])
def list_categories(
    household_id: UUID,
    household: Household = Depends(require_household_access),
    session: Session = Depends(get_session),
) -> list[CategoryRow]:
    try:
        rows = flatten_tree(load_categories(session, household_id))
    except CategoryCycleError as exc:
        raise _tree_conflict(exc) from exc
    return [
        CategoryRow(**CategorySchema.model_validate(category).model_dump(), depth=depth)
        for category, depth in rows
    ]


@router.get("/households/{household_id}/categories/tree", response_model=list[CategoryTreeNode])
def category_tree(
    household_id: UUID,
    household: Household = Depends(require_household_access),
    session: Session = Depends(get_session),
    include_empty: bool = Query(True),
) -> list[CategoryTreeNode]:
    try:
        roots = build_tree(
            load_categories(session, household_id),
            load_items(session, household_id),
            include_empty=include_empty,
        )
    except CategoryCycleError as exc:
        raise _tree_conflict(exc) from exc
    return [_node_out(node) for node in roots]


@router.get("/households/{household_id}/sections", response_model=list[SectionSummary])
def list_sections(
    household_id: UUID,
    household: Household = Depends(require_household_access),
    session: Session = Depends(get_session),
    include_empty: bool = Query(True),
) -> list[SectionSummary]:
    try:
        rows = section_summaries(
            load_categories(session, household_id),
            load_items(session, household_id),
            include_empty=include_empty,
        )
    except CategoryCycleError as exc:
        raise _tree_conflict(exc) from exc
    return [
        SectionSummary(
            section=CategorySchema.model_validate(section),
            totals=TotalsSchema.model_validate(totals),
        )
        for section, totals in rows
    ]


@router.patch("/households/{household_id}/categories/{category_id}", response_model=CategorySchema)
def update_category(
    household_id: UUID,
    category_id: UUID,
    payload: CategoryUpdate,
    household: Household = Depends(require_household_access),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> Category:
    category = get_household_category(session, household_id, category_id)
    previous_name = category.name
    new_name = payload.name if payload.name is not None else category.name
    new_parent = category.parent_id
    if "parent_id" in payload.model_fields_set:
        new_parent = payload.parent_id
        if new_parent is not None:
            get_household_category(session, household_id, new_parent)
        try:
            categories = load_categories(session, household_id)
            validate_parent_change(categories, category.id, new_parent)
            check_depth(categories, new_parent, category.id)
        except (CategoryCycleError, CategoryDepthError) as exc:
            raise _tree_conflict(exc) from exc
    if new_name.lower() != category.name.lower() or new_parent != category.parent_id:
        _ensure_unique_name(session, household_id, new_parent, new_name, exclude_id=category.id)
    category.name = new_name
    category.parent_id = new_parent
    session.add(category)
    session.flush()
    details = f'Updated category "{previous_name}"'
    if new_name != previous_name:
        details = f'Renamed category "{previous_name}" to "{new_name}"'
    activity.log_activity(session, household_id, user, activity.UPDATE_CATEGORY, details)
    session.commit()
    session.refresh(category)
    return category


@router.delete(
    "/households/{household_id}/categories/{category_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_category(
    household_id: UUID,
    category_id: UUID,
    household: Household = Depends(require_household_access),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> Response:
    category = get_household_category(session, household_id, category_id)
    has_children = session.execute(select(Category.id).where(Category.parent_id == category.id)).first()
    if has_children:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Category has sub-categories; delete them first",
        )
    has_items = session.execute(select(ChecklistItem.id).where(ChecklistItem.category_id == category.id)).first()
    if has_items:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Category still has items; move or delete them first",
        )
    path = category_path(load_categories(session, household_id), category.id)
    session.delete(category)
    activity.log_activity(session, household_id, user, activity.DELETE_CATEGORY, f'Deleted category "{path}"')
    session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
