"""Translate drag and keyboard gestures into reorder edits.

Both gestures go through ``move_index`` so a drag and the equivalent
sequence of move-up/move-down steps produce identical orders.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar

from curator.domain.models.membership import ReorderMembers

if TYPE_CHECKING:
    from collections.abc import Sequence

T = TypeVar("T")


def move_index(items: Sequence[T], from_index: int, to_index: int) -> list[T]:
    """Remove the element at ``from_index`` and reinsert it at ``to_index``.

    Moving index 0 to index 2 in ``[A, B, C, D]`` yields ``[B, C, A, D]``.
    """
    size = len(items)
    if not 0 <= from_index < size or not 0 <= to_index < size:
        msg = f"Move {from_index} -> {to_index} out of range for {size} items"
        raise IndexError(msg)
    result = list(items)
    result.insert(to_index, result.pop(from_index))
    return result


def reorder_by_drag(
    member_ids: Sequence[str], dragged_id: str, dropped_on_id: str
) -> ReorderMembers | None:
    """Build the reorder edit for dropping ``dragged_id`` onto ``dropped_on_id``.

    Returns None when the gesture is a no-op: either id is not a member or the
    item was dropped onto itself.
    """
    if dragged_id == dropped_on_id:
        return None
    try:
        from_index = member_ids.index(dragged_id)
        to_index = member_ids.index(dropped_on_id)
    except ValueError:
        return None
    return ReorderMembers(tuple(move_index(member_ids, from_index, to_index)))


def reorder_by_step(
    member_ids: Sequence[str], item_id: str, offset: int
) -> ReorderMembers | None:
    """Keyboard reordering: move ``item_id`` by ``offset`` positions.

    The target position is clamped to the list bounds; a move that would not
    change the order returns None.
    """
    try:
        from_index = member_ids.index(item_id)
    except ValueError:
        return None
    to_index = max(0, min(len(member_ids) - 1, from_index + offset))
    if to_index == from_index:
        return None
    return ReorderMembers(tuple(move_index(member_ids, from_index, to_index)))
