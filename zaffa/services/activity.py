from __future__ import annotations

import json
import uuid
from typing import Any, Optional

from sqlalchemy.orm import Session

from zaffa.models.entities import ActivityLog, User

CREATE_ITEM = "create_item"
UPDATE_ITEM = "update_item"
PURCHASE_ITEM = "purchase_item"
UNPURCHASE_ITEM = "unpurchase_item"
DELETE_ITEM = "delete_item"
RESTORE_ITEM = "restore_item"
CREATE_SECTION = "create_section"
CREATE_CATEGORY = "create_category"
UPDATE_CATEGORY = "update_category"
DELETE_CATEGORY = "delete_category"
IMPORT_ITEMS = "import_items"
CREATE_ANALYSIS = "create_analysis"
UPDATE_ANALYSIS = "update_analysis"
DELETE_ANALYSIS = "delete_analysis"
JOIN_HOUSEHOLD = "join_household"

REVERTIBLE_ACTIONS = {DELETE_ITEM}


def log_activity(
    session: Session,
    household_id: uuid.UUID,
    user: Optional[User],
    action: str,
    details: str,
    *,
    payload: Optional[dict[str, Any]] = None,
) -> ActivityLog:
    entry = ActivityLog(
        household_id=household_id,
        user_id=user.id if user else None,
        user_name=user.first_name if user else "",
        action=action,
        details=details,
        payload_json=json.dumps(payload, separators=(",", ":"), default=str) if payload else None,
    )
    session.add(entry)
    return entry


def parse_payload(raw: Optional[str]) -> Optional[dict[str, Any]]:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return None


def item_snapshot(item: Any) -> dict[str, Any]:
    """Fields needed to recreate a deleted item."""
    return {
        "name": item.name,
        "category_id": str(item.category_id),
        "min_price": item.min_price,
        "max_price": item.max_price,
        "priority": item.priority,
        "is_purchased": False,
    }
