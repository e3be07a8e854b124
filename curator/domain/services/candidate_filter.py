"""Derive the "available to add" list from the item pool.

Candidates are the pool minus current members minus anything excluded by the
active filter. Pure: never touches membership.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, replace
from enum import Enum

from curator.domain.models.container import Item, ItemKind

logger = logging.getLogger(__name__)

ItemPredicate = Callable[[Item], bool]


class DurationBucket(str, Enum):
    """Duration buckets offered by the audio curation screens."""

    ALL = "all"
    SHORT = "short"  # up to 30 seconds
    MEDIUM = "medium"  # over 30 seconds, up to 2 minutes
    LONG = "long"  # over 2 minutes

    def contains(self, duration: float) -> bool:
        if self is DurationBucket.SHORT:
            return duration <= 30
        if self is DurationBucket.MEDIUM:
            return 30 < duration <= 120
        if self is DurationBucket.LONG:
            return duration > 120
        return True


@dataclass(frozen=True)
class FilterState:
    """Active predicates for the candidate list."""

    query: str = ""
    category: str | None = None
    categorized: bool | None = None
    duration: DurationBucket = DurationBucket.ALL
    min_duration: float | None = None
    max_duration: float | None = None
    statuses: frozenset[str] | None = None
    kinds: frozenset[ItemKind] | None = None
    predicate: ItemPredicate | None = None

    def __post_init__(self) -> None:
        if (
            self.min_duration is not None
            and self.max_duration is not None
            and self.min_duration > self.max_duration
        ):
            msg = "min_duration cannot exceed max_duration"
            raise ValueError(msg)
        object.__setattr__(self, "duration", DurationBucket(self.duration))
        if self.statuses is not None:
            object.__setattr__(self, "statuses", frozenset(s.upper() for s in self.statuses))
        if self.kinds is not None:
            object.__setattr__(self, "kinds", frozenset(ItemKind(k) for k in self.kinds))

    @property
    def is_active(self) -> bool:
        return self != FilterState(statuses=self.statuses, kinds=self.kinds)

    def cleared(self) -> FilterState:
        """Drop the operator-facing predicates, keeping status/kind scoping."""
        return replace(
            self,
            query="",
            category=None,
            categorized=None,
            duration=DurationBucket.ALL,
            min_duration=None,
            max_duration=None,
            predicate=None,
        )

    def matches(self, item: Item) -> bool:
        if self.kinds is not None and item.kind not in self.kinds:
            return False
        if self.statuses is not None and (item.status or "").upper() not in self.statuses:
            return False
        if self.category is not None and item.category != self.category:
            return False
        if self.categorized is not None and item.is_categorized != self.categorized:
            return False

        duration = item.duration_seconds or 0
        if not self.duration.contains(duration):
            return False
        if self.min_duration is not None and duration < self.min_duration:
            return False
        if self.max_duration is not None and duration > self.max_duration:
            return False

        query = self.query.strip().lower()
        if query and not _matches_text(item, query):
            return False

        if self.predicate is None:
            return True
        try:
            return bool(self.predicate(item))
        except Exception:
            # Items whose predicate raises are excluded.
            logger.warning("candidate_predicate_failed", extra={"item_id": item.id}, exc_info=True)
            return False


def _matches_text(item: Item, query: str) -> bool:
    haystacks = [item.name, item.subtitle or "", " ".join(item.tags)]
    return any(query in text.lower() for text in haystacks)


def filter_candidates(
    item_pool: Mapping[str, Item] | Iterable[Item],
    member_ids: Iterable[str],
    filter_state: FilterState | None = None,
) -> list[Item]:
    """Return pool items eligible to be added, in pool order."""
    items = item_pool.values() if isinstance(item_pool, Mapping) else item_pool
    members = set(member_ids)
    state = filter_state or FilterState()
    return [item for item in items if item.id not in members and state.matches(item)]
