"""Read models handed to presentation code."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from curator.core.time_utils import utc_now

if TYPE_CHECKING:
    from curator.domain.models.container import Item
    from curator.domain.models.membership import MembershipEdit


@dataclass(frozen=True)
class MutationFailure:
    """A failed membership update, kept for display and for retrying.

    ``edits`` is the coalesced batch that did not persist; re-issuing them
    against the refreshed state is the operator's retry affordance.
    """

    message: str
    retryable: bool
    edits: tuple[MembershipEdit, ...] = ()
    refetched: bool = True
    correlation_id: str | None = None
    occurred_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class Notice:
    """Informational message that does not block the operator."""

    kind: str
    message: str
    item_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class CurationView:
    """Everything a curation screen renders.

    ``member_ids`` is the displayed order; ``resolved_members`` follows it
    exactly, skipping ids whose item is not resolved yet.
    """

    container_id: str
    member_ids: tuple[str, ...]
    resolved_members: tuple[Item, ...]
    candidate_items: tuple[Item, ...]
    is_mutating: bool = False
    last_error: MutationFailure | None = None
    notices: tuple[Notice, ...] = ()
    loaded: bool = True

    @property
    def member_count(self) -> int:
        return len(self.member_ids)
