"""Coalescing rules for edits queued behind an in-flight update."""

from __future__ import annotations

from typing import TYPE_CHECKING

from curator.domain.models.membership import AddMember, RemoveMember, ReorderMembers

if TYPE_CHECKING:
    from collections.abc import Iterable

    from curator.domain.models.membership import MembershipEdit


def coalesce_edits(edits: Iterable[MembershipEdit]) -> list[MembershipEdit]:
    """Collapse a queue of edits into the smallest equivalent queue.

    - A later ``ReorderMembers`` supersedes an earlier queued one.
    - ``RemoveMember(x)`` cancels a pending ``AddMember(x)`` and vice versa;
      both edits are dropped.
    - Repeated identical adds or removes collapse to one.
    """
    queue: list[MembershipEdit] = []

    for edit in edits:
        if isinstance(edit, ReorderMembers):
            queue = [queued for queued in queue if not isinstance(queued, ReorderMembers)]
            queue.append(edit)
            continue

        opposite_type = RemoveMember if isinstance(edit, AddMember) else AddMember
        opposite = next(
            (
                queued
                for queued in queue
                if isinstance(queued, opposite_type) and queued.item_id == edit.item_id
            ),
            None,
        )
        if opposite is not None:
            queue.remove(opposite)
            continue
        if edit in queue:
            continue
        queue.append(edit)

    return queue
