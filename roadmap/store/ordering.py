"""
Sibling ordering for epics (per project) and tasks (per epic).

``order_index`` is a rank, not a sequence number: gaps are fine and the same
value may appear under different parents. Within one parent it is unique.
Moves swap the exact values of two neighbours instead of renumbering.
"""
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

class Direction(str, Enum):
    UP = "up"
    DOWN = "down"

def ranked(siblings: Iterable[Dict]) -> List[Dict]:
    """Siblings sorted ascending by order_index; ties keep their input order."""
    return sorted(siblings, key=lambda item: item["order_index"])

def next_order_index(siblings: Iterable[Dict]) -> int:
    return max([0] + [item["order_index"] for item in siblings]) + 1

def make_room(siblings: Iterable[Dict], order_index: int, exclude_id: Optional[str] = None) -> List[str]:
    """
    Frees ``order_index`` among siblings by shifting every sibling at or above
    it up by one. Only acts when the value is actually taken.
    Mutates the given dicts in place and returns the ids that moved.
    """
    others = [item for item in siblings if item["id"] != exclude_id]
    if not any(item["order_index"] == order_index for item in others):
        return []
    shifted = []
    for item in others:
        if item["order_index"] >= order_index:
            item["order_index"] += 1
            shifted.append(item["id"])
    return shifted

def find_swap(siblings: Iterable[Dict], item_id: str, direction: Direction) -> Optional[Tuple[Dict, Dict]]:
    """
    Returns ``(current, neighbour)`` for a move, or None when the item is
    unknown, already first (moving up) / last (moving down), or holds the
    same order_index as its neighbour.
    """
    order = ranked(siblings)
    index = next((i for i, item in enumerate(order) if item["id"] == item_id), -1)
    if index == -1:
        return None
    target = index - 1 if Direction(direction) == Direction.UP else index + 1
    if target < 0 or target >= len(order):
        return None
    if order[index]["order_index"] == order[target]["order_index"]:
        return None
    return order[index], order[target]

def swap_order(current: Dict, neighbour: Dict) -> None:
    current["order_index"], neighbour["order_index"] = neighbour["order_index"], current["order_index"]
