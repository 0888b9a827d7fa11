import pytest

from zaffa.services.optimistic import ACTION_DELETE, ACTION_UNPURCHASE, OptimisticItemList, apply_optimistic

ITEMS = [
    {"id": "a", "name": "Sofa", "is_purchased": True, "final_price": 800.0},
    {"id": "b", "name": "Lamp", "is_purchased": False, "final_price": None},
]


def test_delete_removes_item():
    result = apply_optimistic(ITEMS, ACTION_DELETE, "a")
    assert [item["id"] for item in result] == ["b"]
    assert len(ITEMS) == 2


def test_unpurchase_clears_price():
    result = apply_optimistic(ITEMS, ACTION_UNPURCHASE, "a")
    assert result[0]["is_purchased"] is False
    assert result[0]["final_price"] is None
    assert ITEMS[0]["is_purchased"] is True


def test_unknown_id_leaves_list_unchanged():
    assert apply_optimistic(ITEMS, ACTION_DELETE, "zzz") == ITEMS


def test_unknown_action_rejected():
    with pytest.raises(ValueError):
        apply_optimistic(ITEMS, "purchase", "a")


def test_rolled_back_delete_restores_item_in_view():
    state = OptimisticItemList(ITEMS)
    op_id = state.apply(ACTION_DELETE, "a")
    assert [item["id"] for item in state.view()] == ["b"]
    state.rollback(op_id)
    assert [item["id"] for item in state.view()] == ["a", "b"]
    assert state.pending == []


def test_confirm_folds_patch_into_state():
    state = OptimisticItemList(ITEMS)
    op_id = state.apply(ACTION_UNPURCHASE, "a")
    state.confirm(op_id)
    assert state.pending == []
    assert state.view()[0]["is_purchased"] is False


def test_reconcile_settles_visible_operations():
    state = OptimisticItemList(ITEMS)
    delete_op = state.apply(ACTION_DELETE, "a")
    unpurchase_op = state.apply(ACTION_UNPURCHASE, "b")
    state.reconcile([ITEMS[1]])
    remaining = {op.op_id for op in state.pending}
    assert delete_op not in remaining
    assert unpurchase_op not in remaining
    assert [item["id"] for item in state.view()] == ["b"]


def test_reconcile_keeps_unsettled_operations():
    state = OptimisticItemList(ITEMS)
    op_id = state.apply(ACTION_DELETE, "a")
    state.reconcile(ITEMS)
    assert [op.op_id for op in state.pending] == [op_id]
    assert [item["id"] for item in state.view()] == ["b"]
