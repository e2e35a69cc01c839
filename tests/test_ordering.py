import pytest

from roadmap.store import ordering
from roadmap.store.ordering import Direction

def _items(*orders):
    return [{"id": f"i{n}", "order_index": order} for n, order in enumerate(orders)]

def test_ranked_is_stable_for_ties():
    items = [{"id": "a", "order_index": 2}, {"id": "b", "order_index": 1}, {"id": "c", "order_index": 2}]
    assert [item["id"] for item in ordering.ranked(items)] == ["b", "a", "c"]

def test_next_order_index():
    assert ordering.next_order_index([]) == 1
    assert ordering.next_order_index(_items(0, 7, 3)) == 8
    assert ordering.next_order_index(_items(-5)) == 1

def test_make_room_only_when_taken():
    items = _items(0, 2, 4)
    assert ordering.make_room(items, 3) == []
    assert [i["order_index"] for i in items] == [0, 2, 4]

    assert ordering.make_room(items, 2) == ["i1", "i2"]
    assert [i["order_index"] for i in items] == [0, 3, 5]

def test_make_room_ignores_excluded_item():
    items = _items(0, 1)
    assert ordering.make_room(items, 1, exclude_id="i1") == []

def test_find_swap_picks_rank_neighbour_not_value_neighbour():
    items = _items(10, 0, 50)
    current, neighbour = ordering.find_swap(items, "i0", Direction.UP)
    assert (current["id"], neighbour["id"]) == ("i0", "i1")
    current, neighbour = ordering.find_swap(items, "i0", "down")
    assert neighbour["id"] == "i2"

@pytest.mark.parametrize("item_id,direction", [("i1", Direction.UP), ("i2", Direction.DOWN), ("missing", Direction.UP)])
def test_find_swap_boundaries(item_id, direction):
    assert ordering.find_swap(_items(10, 0, 50), item_id, direction) is None

def test_swap_order_exchanges_exact_values():
    a, b = _items(10, 50)
    ordering.swap_order(a, b)
    assert (a["order_index"], b["order_index"]) == (50, 10)

@pytest.mark.parametrize("item_id,direction", [("i0", Direction.DOWN), ("i1", Direction.UP)])
def test_find_swap_refuses_equal_values(item_id, direction):
    assert ordering.find_swap(_items(1, 1), item_id, direction) is None
