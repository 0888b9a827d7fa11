from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, Field, field_validator, model_validator
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from zaffa.api.v1.deps.auth import get_current_user, require_household_access
from zaffa.api.v1.routes.categories import get_household_category
from zaffa.db.session import get_session
from zaffa.models.entities import ChecklistItem, Household, User
from zaffa.schemas.base import ItemSchema, strip_text
from zaffa.services import activity
from zaffa.services.category_tree import CategoryCycleError, category_path, descendant_ids
from zaffa.services.households import load_categories

router = APIRouter()

PRIORITY_PATTERN = "^(low|medium|high)$"


class ItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    category_id: UUID
    min_price: float = Field(0.0, ge=0)
    max_price: float = Field(0.0, ge=0)
    priority: str = Field("medium", pattern=PRIORITY_PATTERN)

    @field_validator("name", mode="before")
    def strip_name(cls, value: Any) -> Any:
        return strip_text(value)

    @model_validator(mode="after")
    def check_price_range(self) -> "ItemCreate":
        if self.max_price < self.min_price:
            raise ValueError("max_price must be greater than or equal to min_price")
        return self


class ItemUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=128)
    category_id: Optional[UUID] = None
    min_price: Optional[float] = Field(None, ge=0)
    max_price: Optional[float] = Field(None, ge=0)
    priority: Optional[str] = Field(None, pattern=PRIORITY_PATTERN)

    @field_validator("name", mode="before")
    def strip_name(cls, value: Any) -> Any:
        return strip_text(value)


class PurchasePayload(BaseModel):
    final_price: Optional[float] = Field(None, ge=0)


class ItemListOut(BaseModel):
    items: list[ItemSchema]
    total: int
    limit: int
    offset: int


def _get_household_item(session: Session, household_id: UUID, item_id: UUID) -> ChecklistItem:
    item = session.execute(
        select(ChecklistItem).where(ChecklistItem.id == item_id, ChecklistItem.household_id == household_id)
    ).scalar_one_or_none()
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")
    return item


def _item_label(session: Session, item: ChecklistItem) -> str:
    path = category_path(load_categories(session, item.household_id), item.category_id)
    return f'"{item.name}" in "{path}"'


def _build_item_filters(
    session: Session,
    household_id: UUID,
    category_id: Optional[UUID],
    purchased: Optional[bool],
    priority: Optional[str],
) -> list[Any]:
    filters = [ChecklistItem.household_id == household_id]
    if category_id:
        get_household_category(session, household_id, category_id)
        try:
            ids = descendant_ids(load_categories(session, household_id), category_id)
        except CategoryCycleError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        filters.append(ChecklistItem.category_id.in_(ids))
    if purchased is not None:
        filters.append(ChecklistItem.is_purchased == purchased)
    if priority:
        filters.append(ChecklistItem.priority == priority)
    return filters


@router.post("/households/{household_id}/items", response_model=ItemSchema, status_code=status.HTTP_201_CREATED)
def create_item(
    household_id: UUID,
    payload: ItemCreate,
    household: Household = Depends(require_household_access),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> ChecklistItem:
    get_household_category(session, household_id, payload.category_id)
    item = ChecklistItem(
        household_id=household_id,
        category_id=payload.category_id,
        name=payload.name,
        min_price=payload.min_price,
        max_price=payload.max_price,
        priority=payload.priority,
        is_purchased=False,
    )
    session.add(item)
    session.flush()
    activity.log_activity(
        session,
        household_id,
        user,
        activity.CREATE_ITEM,
        f"Added {_item_label(session, item)}",
        payload={"item_id": str(item.id)},
    )
    session.commit()
    session.refresh(item)
    return item


@router.get("/households/{household_id}/items", response_model=ItemListOut)
def list_items(
    household_id: UUID,
    household: Household = Depends(require_household_access),
    session: Session = Depends(get_session),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    category_id: Optional[UUID] = Query(None),
    purchased: Optional[bool] = Query(None),
    priority: Optional[str] = Query(None, pattern=PRIORITY_PATTERN),
) -> ItemListOut:
    filters = _build_item_filters(session, household_id, category_id, purchased, priority)
    total = session.execute(select(func.count()).select_from(ChecklistItem).where(*filters)).scalar_one()
    rows = session.execute(
        select(ChecklistItem)
        .where(*filters)
        .order_by(ChecklistItem.created_at, ChecklistItem.name)
        .limit(limit)
        .offset(offset)
    ).scalars().all()
    return ItemListOut(
        items=[ItemSchema.model_validate(row) for row in rows],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/households/{household_id}/items/{item_id}", response_model=ItemSchema)
def get_item(
    household_id: UUID,
    item_id: UUID,
    household: Household = Depends(require_household_access),
    session: Session = Depends(get_session),
) -> ChecklistItem:
    return _get_household_item(session, household_id, item_id)


@router.patch("/households/{household_id}/items/{item_id}", response_model=ItemSchema)
def update_item(
    household_id: UUID,
    item_id: UUID,
    payload: ItemUpdate,
    household: Household = Depends(require_household_access),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> ChecklistItem:
    item = _get_household_item(session, household_id, item_id)
    min_price = payload.min_price if payload.min_price is not None else item.min_price
    max_price = payload.max_price if payload.max_price is not None else item.max_price
    if max_price < min_price:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="max_price must be greater than or equal to min_price",
        )
    if payload.category_id is not None:
        get_household_category(session, household_id, payload.category_id)
        item.category_id = payload.category_id
    if payload.name is not None:
        item.name = payload.name
    if payload.priority is not None:
        item.priority = payload.priority
    item.min_price = min_price
    item.max_price = max_price
    session.add(item)
    session.flush()
    activity.log_activity(
        session,
        household_id,
        user,
        activity.UPDATE_ITEM,
        f"Updated {_item_label(session, item)}",
        payload={"item_id": str(item.id), "fields": sorted(payload.model_fields_set)},
    )
    session.commit()
    session.refresh(item)
    return item


@router.post("/households/{household_id}/items/{item_id}/purchase", response_model=ItemSchema)
def purchase_item(
    household_id: UUID,
    item_id: UUID,
    payload: PurchasePayload,
    household: Household = Depends(require_household_access),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> ChecklistItem:
    item = _get_household_item(session, household_id, item_id)
    final_price = payload.final_price if payload.final_price is not None else item.max_price
    item.is_purchased = True
    item.final_price = final_price
    session.add(item)
    activity.log_activity(
        session,
        household_id,
        user,
        activity.PURCHASE_ITEM,
        f"Purchased {_item_label(session, item)} for {final_price:.2f}",
        payload={"item_id": str(item.id), "final_price": final_price},
    )
    session.commit()
    session.refresh(item)
    return item


@router.post("/households/{household_id}/items/{item_id}/unpurchase", response_model=ItemSchema)
def unpurchase_item(
    household_id: UUID,
    item_id: UUID,
    household: Household = Depends(require_household_access),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> ChecklistItem:
    item = _get_household_item(session, household_id, item_id)
    item.is_purchased = False
    item.final_price = None
    session.add(item)
    activity.log_activity(
        session,
        household_id,
        user,
        activity.UNPURCHASE_ITEM,
        f"Marked {_item_label(session, item)} as not purchased",
        payload={"item_id": str(item.id)},
    )
    session.commit()
    session.refresh(item)
    return item


@router.delete("/households/{household_id}/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_item(
    household_id: UUID,
    item_id: UUID,
    household: Household = Depends(require_household_access),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> Response:
    item = _get_household_item(session, household_id, item_id)
    label = _item_label(session, item)
    snapshot = activity.item_snapshot(item)
    session.delete(item)
    activity.log_activity(
        session,
        household_id,
        user,
        activity.DELETE_ITEM,
        f"Deleted {label}",
        payload=snapshot,
    )
    session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
