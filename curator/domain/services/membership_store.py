"""In-memory membership state for one curation session.

The store owns the current member order and the candidate pool. ``apply`` is
pure: it computes the next member order for an edit without touching the
store, so callers can decide whether the edit is a no-op before committing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from curator.domain.models.container import Item, unique_ids
from curator.domain.models.membership import (
    AddMember,
    MembershipEdit,
    RemoveMember,
    ReorderMembers,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resolution:
    """Items resolved from a list of ids, plus the ids that did not resolve."""

    items: tuple[Item, ...]
    missing: tuple[str, ...]

    @property
    def ids(self) -> tuple[str, ...]:
        return tuple(item.id for item in self.items)


class MembershipStore:
    """Member order and candidate pool for a single container."""

    def __init__(
        self,
        member_ids: Iterable[str] = (),
        item_pool: Iterable[Item] = (),
    ) -> None:
        self._member_ids: tuple[str, ...] = unique_ids(member_ids)
        self._pool: dict[str, Item] = {item.id: item for item in item_pool}

    @property
    def member_ids(self) -> tuple[str, ...]:
        return self._member_ids

    @property
    def item_pool(self) -> Mapping[str, Item]:
        return self._pool

    def is_member(self, item_id: str) -> bool:
        return item_id in self._member_ids

    def is_known(self, item_id: str) -> bool:
        """An id is known when it is in the pool or already a member."""
        return item_id in self._pool or item_id in self._member_ids

    def apply(self, edit: MembershipEdit) -> tuple[str, ...]:
        """Compute the member order that ``edit`` would produce.

        Invalid edits (unknown ids, reorders that are not a permutation of the
        current members) return the current order unchanged.
        """
        current = self._member_ids

        if isinstance(edit, AddMember):
            if not self.is_known(edit.item_id):
                logger.debug("membership_edit_rejected_unknown_item", extra={"item_id": edit.item_id})
                return current
            if edit.item_id in current:
                return current
            return (*current, edit.item_id)

        if isinstance(edit, RemoveMember):
            if edit.item_id not in current:
                return current
            return tuple(item_id for item_id in current if item_id != edit.item_id)

        if isinstance(edit, ReorderMembers):
            if not is_permutation(edit.order, current):
                logger.debug(
                    "membership_edit_rejected_not_permutation",
                    extra={"order_size": len(edit.order), "member_count": len(current)},
                )
                return current
            return edit.order

        msg = f"Unsupported membership edit: {edit!r}"
        raise TypeError(msg)

    def commit(self, member_ids: Iterable[str]) -> None:
        """Replace the current member order."""
        self._member_ids = unique_ids(member_ids)

    def set_pool(self, items: Iterable[Item]) -> None:
        self._pool = {item.id: item for item in items}

    def merge_pool(self, items: Iterable[Item]) -> None:
        """Add or refresh pool entries, keeping existing pool order."""
        for item in items:
            self._pool[item.id] = item

    def resolve_items(self, ids: Iterable[str]) -> Resolution:
        """Map ids to pool items in the order given, reporting unresolved ids."""
        items: list[Item] = []
        missing: list[str] = []
        for item_id in ids:
            item = self._pool.get(item_id)
            if item is None:
                missing.append(item_id)
            else:
                items.append(item)
        return Resolution(items=tuple(items), missing=tuple(missing))


def is_permutation(order: Iterable[str], current: Iterable[str]) -> bool:
    """True when ``order`` holds exactly the ids of ``current``, each once."""
    order = tuple(order)
    current = tuple(current)
    if len(order) != len(current):
        return False
    return len(set(order)) == len(order) and set(order) == set(current)
