"""Optimistic item-list state for clients of the checklist API.

A client applies ``delete`` / ``unpurchase`` locally before the request
completes. ``OptimisticItemList`` keeps each local patch under an operation
id so a failed request can be rolled back, and folds authoritative snapshots
from the activity change feed back in with ``reconcile``.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping

ACTION_UNPURCHASE = "unpurchase"
ACTION_DELETE = "delete"
OPTIMISTIC_ACTIONS = (ACTION_UNPURCHASE, ACTION_DELETE)


@dataclass(frozen=True)
class PendingOperation:
    op_id: str
    action: str
    item_id: str


def _check_action(action: str) -> None:
    if action not in OPTIMISTIC_ACTIONS:
        raise ValueError(f"Unsupported optimistic action: {action!r}")


def apply_optimistic(items: Iterable[Mapping[str, Any]], action: str, item_id: Any) -> List[Dict[str, Any]]:
    """Return a new item list with ``action`` applied to ``item_id``.

    Unknown ids leave the list unchanged.
    """
    _check_action(action)
    target = str(item_id)
    result: List[Dict[str, Any]] = []
    for item in items:
        if str(item["id"]) != target:
            result.append(dict(item))
            continue
        if action == ACTION_DELETE:
            continue
        patched = dict(item)
        patched["is_purchased"] = False
        patched["final_price"] = None
        result.append(patched)
    return result


def _is_settled(items: Iterable[Mapping[str, Any]], operation: PendingOperation) -> bool:
    matches = [item for item in items if str(item["id"]) == operation.item_id]
    if operation.action == ACTION_DELETE:
        return not matches
    return bool(matches) and not matches[0].get("is_purchased")


class OptimisticItemList:
    def __init__(self, items: Iterable[Mapping[str, Any]] = ()) -> None:
        self._items: List[Dict[str, Any]] = [dict(item) for item in items]
        self._pending: Dict[str, PendingOperation] = {}

    @property
    def pending(self) -> List[PendingOperation]:
        return list(self._pending.values())

    def apply(self, action: str, item_id: Any) -> str:
        _check_action(action)
        op_id = uuid.uuid4().hex
        self._pending[op_id] = PendingOperation(op_id=op_id, action=action, item_id=str(item_id))
        return op_id

    def confirm(self, op_id: str) -> None:
        operation = self._pending.pop(op_id)
        self._items = apply_optimistic(self._items, operation.action, operation.item_id)

    def rollback(self, op_id: str) -> None:
        self._pending.pop(op_id)

    def reconcile(self, snapshot: Iterable[Mapping[str, Any]]) -> None:
        self._items = [dict(item) for item in snapshot]
        for op_id, operation in list(self._pending.items()):
            if _is_settled(self._items, operation):
                del self._pending[op_id]

    def view(self) -> List[Dict[str, Any]]:
        current = [dict(item) for item in self._items]
        for operation in self._pending.values():
            current = apply_optimistic(current, operation.action, operation.item_id)
        return current
