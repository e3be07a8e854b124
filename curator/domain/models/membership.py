"""Membership edit variants.

A membership edit is an in-flight intent against a container's member list.
It exists only between the operator's action and the reconciliation outcome.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class AddMember:
    """Append ``item_id`` to the end of the member list."""

    item_id: str


@dataclass(frozen=True)
class RemoveMember:
    """Remove ``item_id`` from the member list."""

    item_id: str


@dataclass(frozen=True)
class ReorderMembers:
    """Replace the member order wholesale."""

    order: tuple[str, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "order", tuple(self.order))


MembershipEdit = AddMember | RemoveMember | ReorderMembers


def describe_edit(edit: MembershipEdit) -> str:
    """Short human-readable form used in logs and failure messages."""
    if isinstance(edit, AddMember):
        return f"add:{edit.item_id}"
    if isinstance(edit, RemoveMember):
        return f"remove:{edit.item_id}"
    return f"reorder:{len(edit.order)}"
