from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from zaffa.api.v1.deps.auth import get_current_user, require_household_access
from zaffa.db.session import get_session
from zaffa.models.entities import PRIORITIES, ActivityLog, Category, ChecklistItem, Household, User
from zaffa.observability import iso_utc, now_utc
from zaffa.schemas.base import ActivitySchema, ItemSchema
from zaffa.services import activity
from zaffa.services.category_tree import category_path
from zaffa.services.households import load_categories

router = APIRouter()


class ActivityListOut(BaseModel):
    items: list[ActivitySchema]
    total: int
    limit: int
    offset: int
    next_cursor: Optional[str]


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_datetime(value: str) -> datetime:
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Invalid datetime filter",
        ) from exc
    return _as_utc(dt)


def activity_out(entry: ActivityLog) -> ActivitySchema:
    return ActivitySchema(
        id=entry.id,
        household_id=entry.household_id,
        user_id=entry.user_id,
        user_name=entry.user_name,
        action=entry.action,
        details=entry.details,
        payload=activity.parse_payload(entry.payload_json),
        timestamp=_as_utc(entry.timestamp),
        reverted_at=_as_utc(entry.reverted_at),
        revertible=entry.action in activity.REVERTIBLE_ACTIONS and entry.reverted_at is None,
    )


@router.get("/households/{household_id}/activity", response_model=ActivityListOut)
def list_activity(
    household_id: UUID,
    household: Household = Depends(require_household_access),
    session: Session = Depends(get_session),
    since: Optional[str] = Query(None, description="Only entries strictly newer than this ISO timestamp"),
    action: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> ActivityListOut:
    """Activity log, newest first.

    With ``since`` the endpoint acts as a change feed: entries come oldest
    first and ``next_cursor`` is the value to pass on the next poll.
    """
    filters = [ActivityLog.household_id == household_id]
    since_dt = _parse_datetime(since) if since else None
    if since_dt is not None:
        filters.append(ActivityLog.timestamp > since_dt)
    if action:
        filters.append(ActivityLog.action == action)
    total = session.execute(select(func.count()).select_from(ActivityLog).where(*filters)).scalar_one()
    if since_dt is not None:
        ordering = (ActivityLog.timestamp.asc(), ActivityLog.id.asc())
    else:
        ordering = (ActivityLog.timestamp.desc(), ActivityLog.id.desc())
    rows = session.execute(
        select(ActivityLog).where(*filters).order_by(*ordering).limit(limit).offset(offset)
    ).scalars().all()
    items = [activity_out(row) for row in rows]

    next_cursor = iso_utc(since_dt) if since_dt is not None else None
    if items:
        newest = max(item.timestamp for item in items)
        next_cursor = iso_utc(newest)
    return ActivityListOut(items=items, total=total, limit=limit, offset=offset, next_cursor=next_cursor)


@router.post(
    "/households/{household_id}/activity/{entry_id}/revert",
    response_model=ItemSchema,
    status_code=status.HTTP_201_CREATED,
)
def revert_activity(
    household_id: UUID,
    entry_id: UUID,
    household: Household = Depends(require_household_access),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> ChecklistItem:
    """Restore the item removed by a ``delete_item`` entry. Each entry can be reverted once."""
    entry = session.execute(
        select(ActivityLog).where(ActivityLog.id == entry_id, ActivityLog.household_id == household_id)
    ).scalar_one_or_none()
    if not entry:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Activity entry not found")
    if entry.action not in activity.REVERTIBLE_ACTIONS:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Only deleted items can be restored")
    if entry.reverted_at is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Entry was already reverted")
    snapshot = activity.parse_payload(entry.payload_json)
    if not snapshot or not snapshot.get("category_id") or not snapshot.get("name"):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Entry has no item data to restore")
    try:
        category_id = UUID(str(snapshot["category_id"]))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Entry has no item data to restore") from exc
    category = session.execute(
        select(Category).where(Category.id == category_id, Category.household_id == household_id)
    ).scalar_one_or_none()
    if category is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="The item's category no longer exists",
        )

    claimed = session.execute(
        update(ActivityLog)
        .where(ActivityLog.id == entry.id, ActivityLog.reverted_at.is_(None))
        .values(reverted_at=now_utc())
        .execution_options(synchronize_session=False)
    )
    if claimed.rowcount != 1:
        session.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Entry was already reverted")

    min_price = float(snapshot.get("min_price") or 0.0)
    max_price = float(snapshot.get("max_price") or 0.0)
    priority = snapshot.get("priority")
    item = ChecklistItem(
        household_id=household_id,
        category_id=category.id,
        name=str(snapshot["name"]),
        min_price=min(min_price, max_price),
        max_price=max(min_price, max_price),
        priority=priority if priority in PRIORITIES else "medium",
        is_purchased=False,
    )
    session.add(item)
    session.flush()
    path = category_path(load_categories(session, household_id), category.id)
    activity.log_activity(
        session,
        household_id,
        user,
        activity.RESTORE_ITEM,
        f'Restored "{item.name}" in "{path}"',
        payload={"item_id": str(item.id), "reverted_entry_id": str(entry.id)},
    )
    session.commit()
    session.refresh(item)
    return item
