"""Domain events for membership curation.

Events represent things that have happened to a container's membership and
are published on the event bus so presentation code can react.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from curator.domain.models.membership import MembershipEdit


@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    occurred_at: datetime
    aggregate_id: str | None = None

    def __post_init__(self) -> None:
        """Validate event data after initialization."""
        if not isinstance(self.occurred_at, datetime):
            raise TypeError("occurred_at must be a datetime")


@dataclass(frozen=True)
class MembershipViewChanged(DomainEvent):
    """Event raised whenever the rendered curation view changes."""

    view: Any = None


@dataclass(frozen=True)
class MembersPruned(DomainEvent):
    """Event raised when unresolvable member ids were dropped."""

    container_id: str = ""
    pruned_ids: tuple[str, ...] = ()
    persisted: bool = True

    def __post_init__(self) -> None:
        super().__post_init__()
        if not self.pruned_ids:
            raise ValueError("pruned_ids cannot be empty")


@dataclass(frozen=True)
class MembershipPersisted(DomainEvent):
    """Event raised when the server confirmed a member order."""

    container_id: str = ""
    member_ids: tuple[str, ...] = ()
    edit_count: int = 0


@dataclass(frozen=True)
class MembershipPersistFailed(DomainEvent):
    """Event raised when a membership update failed and the view was restored."""

    container_id: str = ""
    message: str = ""
    retryable: bool = False
    edits: tuple[MembershipEdit, ...] = field(default=())

    def __post_init__(self) -> None:
        super().__post_init__()
        if not self.message:
            raise ValueError("message cannot be empty")
