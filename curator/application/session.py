"""Curation session: the reactive surface a curation screen binds to.

One session is scoped to one container on one screen. It owns its membership
store and event bus; nothing is shared between sessions, so sessions for
different containers run fully independently.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from curator.application.dto.curation_view import CurationView, MutationFailure, Notice
from curator.application.mutator import DEFAULT_COALESCE_WINDOW_SEC, OptimisticMutator
from curator.application.protocols import ContainerService, ItemService
from curator.application.reconciler import ReconcileOutcome, Reconciler
from curator.core.time_utils import utc_now
from curator.domain.events.membership_events import (
    DomainEvent,
    MembershipViewChanged,
    MembersPruned,
)
from curator.domain.exceptions.domain_exceptions import (
    ContainerTypeMismatchError,
    SessionClosedError,
)
from curator.domain.models.container import Container, Item, ItemKind
from curator.domain.models.membership import (
    AddMember,
    MembershipEdit,
    RemoveMember,
    ReorderMembers,
)
from curator.domain.services.candidate_filter import FilterState, filter_candidates
from curator.domain.services.drag_reorder import reorder_by_drag, reorder_by_step
from curator.domain.services.membership_store import MembershipStore
from curator.infrastructure.messaging.event_bus import EventBus

logger = logging.getLogger(__name__)

ViewListener = Callable[[CurationView], Awaitable[None]]


class CurationSession:
    """Curate which items belong to a container, and in what order.

    Example:
        ```python
        session = CurationSession("section-1", ItemKind.SONG, containers, songs)
        await session.load()
        session.subscribe(render)

        await session.toggle_membership("song-42")
        await session.reorder("song-42", "song-7")
        await session.set_filter(FilterState(query="grace"))
        ...
        await session.close()
        ```

    """

    def __init__(
        self,
        container_id: str,
        item_kind: ItemKind | str,
        container_service: ContainerService,
        item_service: ItemService,
        *,
        filter_state: FilterState | None = None,
        pool_filters: dict[str, Any] | None = None,
        coalesce_window: float = DEFAULT_COALESCE_WINDOW_SEC,
        request_timeout: float | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self.container_id = container_id
        self.item_kind = ItemKind(item_kind)
        self._items = item_service
        self._pool_filters = pool_filters
        self._filter = filter_state or FilterState()
        self._coalesce_window = coalesce_window

        self.events = event_bus or EventBus()
        self.reconciler = Reconciler(container_service, item_service, timeout=request_timeout)
        self.store = MembershipStore()
        self._mutator: OptimisticMutator | None = None
        self._notices: list[Notice] = []
        self._candidates: tuple[Item, ...] = ()
        self._closed = False

        self.events.subscribe(MembersPruned, self._on_members_pruned)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def load(self) -> CurationView:
        """Load the candidate pool and the container, pruning dead members.

        Raises:
            ContainerNotFoundError: If the container does not exist.
            ContainerTypeMismatchError: If the container does not hold
                items of this session's kind.
        """
        self._ensure_open()
        pool = await self._items.get_all(self._pool_filters)
        self.store.set_pool(pool)

        container = await self.reconciler.refetch(self.container_id)
        if not container.accepts(self.item_kind):
            msg = (
                f"Container {self.container_id} of type {container.container_type} "
                f"does not hold {self.item_kind.value} items"
            )
            raise ContainerTypeMismatchError(
                msg,
                details={
                    "container_id": self.container_id,
                    "container_type": getattr(container.container_type, "value", None),
                    "item_kind": self.item_kind.value,
                },
            )

        # Members are resolved one at a time; pool entries are reused.
        outcome = await self.reconciler.settle(container, self.store.item_pool)
        self._install(outcome)

        logger.info(
            "curation_session_loaded",
            extra={
                "container_id": self.container_id,
                "item_kind": self.item_kind.value,
                "member_count": len(outcome.member_ids),
                "pool_size": len(self.store.item_pool),
                "pruned_count": len(outcome.pruned),
            },
        )
        if outcome.pruned:
            await self.events.publish(
                MembersPruned(
                    occurred_at=utc_now(),
                    aggregate_id=self.container_id,
                    container_id=self.container_id,
                    pruned_ids=outcome.pruned,
                    persisted=outcome.prune_persisted,
                )
            )
        await self._publish_view()
        return self.view

    def _install(self, outcome: ReconcileOutcome) -> None:
        if self._mutator is None:
            self._mutator = OptimisticMutator(
                outcome.container,
                self.store,
                self.reconciler,
                self.events,
                on_change=self._publish_view,
                coalesce_window=self._coalesce_window,
            )
        self._mutator.adopt(outcome)

    async def refresh_pool(self) -> None:
        """Reload the candidate pool, keeping resolved members available."""
        self._ensure_open()
        pool = await self._items.get_all(self._pool_filters)
        members = self.store.resolve_items(self.store.member_ids).items
        self.store.set_pool(pool)
        self.store.merge_pool(members)
        await self._publish_view()

    async def close(self) -> None:
        """Tear the session down.

        Queued edits are abandoned; an in-flight update completes in the
        background and its result is discarded.
        """
        if self._closed:
            return
        self._closed = True
        if self._mutator is not None:
            self._mutator.close()
        self.events.clear_handlers()
        logger.info("curation_session_closed", extra={"container_id": self.container_id})

    async def wait_idle(self) -> None:
        if self._mutator is not None:
            await self._mutator.wait_idle()

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Reactive view
    # ------------------------------------------------------------------

    @property
    def container(self) -> Container | None:
        return self._mutator.container if self._mutator is not None else None

    @property
    def filter_state(self) -> FilterState:
        return self._filter

    @property
    def member_ids(self) -> tuple[str, ...]:
        return self.store.member_ids

    @property
    def is_mutating(self) -> bool:
        return self._mutator is not None and self._mutator.is_mutating

    @property
    def last_error(self) -> MutationFailure | None:
        return self._mutator.last_error if self._mutator is not None else None

    @property
    def view(self) -> CurationView:
        return CurationView(
            container_id=self.container_id,
            member_ids=self.store.member_ids,
            resolved_members=self.store.resolve_items(self.store.member_ids).items,
            candidate_items=self._candidates,
            is_mutating=self.is_mutating,
            last_error=self.last_error,
            notices=tuple(self._notices),
            loaded=self._mutator is not None,
        )

    def subscribe(self, listener: ViewListener) -> Callable[[], None]:
        """Call ``listener`` with every new view; returns an unsubscribe hook."""

        async def _handler(event: DomainEvent) -> None:
            if isinstance(event, MembershipViewChanged):
                await listener(event.view)

        return self.events.subscribe(MembershipViewChanged, _handler)

    def dismiss_notices(self) -> None:
        self._notices.clear()

    async def _publish_view(self) -> None:
        if self._closed:
            return
        self._candidates = tuple(
            filter_candidates(self.store.item_pool, self.store.member_ids, self._filter)
        )
        view = self.view
        await self.events.publish(
            MembershipViewChanged(occurred_at=utc_now(), aggregate_id=self.container_id, view=view)
        )

    async def _on_members_pruned(self, event: MembersPruned) -> None:
        suffix = "" if event.persisted else " (cleanup will be saved with the next change)"
        count = len(event.pruned_ids)
        noun = "item" if count == 1 else "items"
        self._notices.append(
            Notice(
                kind="pruned",
                message=f"Removed {count} deleted {noun} from this list{suffix}",
                item_ids=event.pruned_ids,
            )
        )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def is_member(self, item_id: str) -> bool:
        return self.store.is_member(item_id)

    async def toggle_membership(self, item_id: str) -> bool:
        """Add ``item_id`` if it is not a member, remove it otherwise."""
        if self.store.is_member(item_id):
            return await self.submit(RemoveMember(item_id))
        return await self.submit(AddMember(item_id))

    async def add_member(self, item_id: str) -> bool:
        return await self.submit(AddMember(item_id))

    async def remove_member(self, item_id: str) -> bool:
        return await self.submit(RemoveMember(item_id))

    async def reorder(self, from_id: str, to_id: str) -> bool:
        """Drop the member ``from_id`` onto the position of ``to_id``."""
        edit = reorder_by_drag(self.store.member_ids, from_id, to_id)
        if edit is None:
            return False
        return await self.submit(edit)

    async def move_up(self, item_id: str) -> bool:
        return await self._step(item_id, -1)

    async def move_down(self, item_id: str) -> bool:
        return await self._step(item_id, 1)

    async def _step(self, item_id: str, offset: int) -> bool:
        edit = reorder_by_step(self.store.member_ids, item_id, offset)
        if edit is None:
            return False
        return await self.submit(edit)

    async def reorder_members(self, order: Sequence[str]) -> bool:
        return await self.submit(ReorderMembers(tuple(order)))

    async def submit(self, edit: MembershipEdit) -> bool:
        return await self._require_mutator().submit(edit)

    async def set_filter(self, filter_state: FilterState) -> None:
        self._ensure_open()
        self._filter = filter_state
        await self._publish_view()

    async def clear_filters(self) -> None:
        await self.set_filter(self._filter.cleared())

    async def retry_failed(self) -> int:
        """Re-issue the edits of the last failed update.

        The edits are validated against the refreshed state, so edits that no
        longer make sense (for example a stale reorder) are dropped.

        Returns:
            Number of edits that changed the membership.
        """
        mutator = self._require_mutator()
        failure = mutator.last_error
        if failure is None:
            return 0
        mutator.last_error = None
        applied = 0
        for edit in failure.edits:
            if await mutator.submit(edit):
                applied += 1
        if not applied:
            await self._publish_view()
        logger.info(
            "curation_retry_requested",
            extra={
                "container_id": self.container_id,
                "edits": len(failure.edits),
                "applied": applied,
                "correlation_id": failure.correlation_id,
            },
        )
        return applied

    def _ensure_open(self) -> None:
        if self._closed:
            msg = "Curation session is closed"
            raise SessionClosedError(msg, details={"container_id": self.container_id})

    def _require_mutator(self) -> OptimisticMutator:
        self._ensure_open()
        if self._mutator is None:
            msg = "Curation session has not been loaded"
            raise RuntimeError(msg)
        return self._mutator
