"""Tests for OrderingStore reconciliation and drag sessions."""

from groveui.ordering import OrderingStore


def test_first_non_empty_fetch_seeds_order():
    store = OrderingStore()
    store.reconcile([])
    assert not store.seeded
    store.reconcile(["A", "B", "C"])
    assert store.keys == ["A", "B", "C"]
    assert store.seeded


def test_reconcile_drops_missing_and_appends_new():
    store = OrderingStore()
    store.reconcile(["A", "B", "C"])
    assert store.reconcile(["B", "C", "D"]) == ["B", "C", "D"]


def test_reconcile_keeps_user_order():
    store = OrderingStore()
    store.reconcile(["A", "B", "C"])
    store.move(2, "up")
    assert store.keys == ["A", "C", "B"]
    store.reconcile(["C", "B", "A", "E"])
    assert store.keys == ["A", "C", "B", "E"]


def test_move_out_of_range():
    store = OrderingStore()
    store.reconcile(["A", "B"])
    assert not store.move(0, "up")
    assert not store.move(1, "down")
    assert not store.move(5, "up")
    assert store.keys == ["A", "B"]


def test_drop_moves_to_hover_target():
    store = OrderingStore()
    store.reconcile(["A", "B", "C", "D"])
    store.start_drag(0)
    store.drag_over(2)
    assert store.drop()
    assert store.keys == ["B", "C", "A", "D"]
    assert not store.dragging


def test_drop_on_self_is_noop():
    store = OrderingStore()
    store.reconcile(["A", "B"])
    store.start_drag(1)
    store.drag_over(1)
    assert not store.drop()
    assert store.keys == ["A", "B"]


def test_drag_leave_clears_target():
    store = OrderingStore()
    store.reconcile(["A", "B"])
    store.start_drag(0)
    store.drag_over(1)
    store.drag_leave()
    assert not store.drop()
    assert store.keys == ["A", "B"]


def test_fetch_during_drag_applies_after_drop():
    store = OrderingStore()
    store.reconcile(["A", "B", "C"])
    store.start_drag(0)
    store.drag_over(1)

    store.reconcile(["A", "B", "C", "D"])
    assert store.keys == ["A", "B", "C"]

    store.drop()
    assert store.keys == ["B", "A", "C", "D"]
