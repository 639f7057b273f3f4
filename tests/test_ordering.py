"""
Reorder arithmetic: density, no-op moves, tie-breaks and index validation.
"""
import random

import pytest

from infinite_flow.services.ordering import OrderableItem, OrderUpdate, reorder, sort_items


def _apply(items: list[OrderableItem], updates: list[OrderUpdate]) -> list[OrderableItem]:
    by_id = {u.id: u.order_number for u in updates}
    return [OrderableItem(i.id, by_id[i.id], i.name) for i in items]


def test_move_first_to_last():
    items = [OrderableItem("a", 0, "A"), OrderableItem("b", 1, "B"), OrderableItem("c", 2, "C")]

    updates = reorder(items, 0, 2)

    assert updates == [OrderUpdate("b", 0), OrderUpdate("c", 1), OrderUpdate("a", 2)]


def test_every_item_gets_an_update():
    items = [OrderableItem(str(i), i, f"item {i}") for i in range(5)]
    updates = reorder(items, 3, 1)
    assert {u.id for u in updates} == {i.id for i in items}


def test_order_stays_dense_after_many_moves():
    rng = random.Random(7)
    # start from a messy scope: gaps, duplicates and unset order numbers
    items = [
        OrderableItem("a", 4, "Peanuts"),
        OrderableItem("b", None, "gluten"),
        OrderableItem("c", 4, "Dairy"),
        OrderableItem("d", 10, "Soy"),
        OrderableItem("e", None, "Eggs"),
        OrderableItem("f", -1, "Fish"),
    ]
    for _ in range(50):
        src, dst = rng.randrange(len(items)), rng.randrange(len(items))
        items = _apply(items, reorder(items, src, dst))
        assert sorted(i.order_number for i in items) == list(range(len(items)))


def test_noop_move_keeps_dense_order_unchanged():
    items = [OrderableItem("a", 0, "A"), OrderableItem("b", 1, "B"), OrderableItem("c", 2, "C")]

    for index in range(3):
        updates = reorder(items, index, index)
        assert {u.id: u.order_number for u in updates} == {"a": 0, "b": 1, "c": 2}


def test_ties_and_missing_orders_sort_by_name_case_insensitive():
    items = [
        OrderableItem("3", None, "walnut"),
        OrderableItem("1", 1, "banana"),
        OrderableItem("2", 1, "Apple"),
        OrderableItem("4", None, "Almond"),
        OrderableItem("5", 0, "zucchini"),
    ]

    assert [i.id for i in sort_items(items)] == ["5", "2", "1", "4", "3"]


def test_tie_break_is_deterministic_regardless_of_input_order():
    items = [OrderableItem("x", None, "beta"), OrderableItem("y", None, "Alpha")]
    assert [i.id for i in sort_items(items)] == [i.id for i in sort_items(list(reversed(items)))] == ["y", "x"]


@pytest.mark.parametrize("src,dst", [(-1, 0), (0, 3), (3, 0), (0, -2)])
def test_out_of_range_index_is_rejected(src, dst):
    items = [OrderableItem("a", 0, "A"), OrderableItem("b", 1, "B"), OrderableItem("c", 2, "C")]
    with pytest.raises(ValueError):
        reorder(items, src, dst)
