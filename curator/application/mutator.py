"""Optimistic application of membership edits with serialized reconciliation.

Every edit is applied to the store before any network activity, so the
rendered order changes immediately. Persisting is handled by a single
dispatcher task per container:

- the dispatcher waits a short coalescing window, then sends the *latest*
  full member order rather than replaying each edit;
- edits made while a call is in flight are applied optimistically and picked
  up by one further dispatch after the call resolves;
- on failure, queued edits are dropped and the container is refetched from
  the server instead of undoing edits locally.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from curator.application.dto.curation_view import MutationFailure
from curator.core.logging_utils import format_ids_for_log, generate_correlation_id
from curator.core.time_utils import utc_now
from curator.domain.events.membership_events import (
    MembershipPersisted,
    MembershipPersistFailed,
    MembersPruned,
)
from curator.domain.exceptions.domain_exceptions import PersistenceError, SessionClosedError
from curator.domain.models.membership import describe_edit
from curator.domain.services.edit_queue import coalesce_edits

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from curator.application.reconciler import ReconcileOutcome, Reconciler
    from curator.domain.models.container import Container
    from curator.domain.models.membership import MembershipEdit
    from curator.domain.services.membership_store import MembershipStore
    from curator.infrastructure.messaging.event_bus import EventBus

logger = logging.getLogger(__name__)

DEFAULT_COALESCE_WINDOW_SEC = 0.05


class OptimisticMutator:
    """Bridge operator intent to the membership store and the reconciler."""

    def __init__(
        self,
        container: Container,
        store: MembershipStore,
        reconciler: Reconciler,
        event_bus: EventBus,
        *,
        on_change: Callable[[], Awaitable[None]] | None = None,
        coalesce_window: float = DEFAULT_COALESCE_WINDOW_SEC,
    ) -> None:
        if coalesce_window < 0:
            msg = "coalesce_window cannot be negative"
            raise ValueError(msg)
        self._container = container
        self._store = store
        self._reconciler = reconciler
        self._events = event_bus
        self._on_change = on_change
        self._coalesce_window = coalesce_window

        self._baseline: tuple[str, ...] = container.member_ids
        self._pending: list[MembershipEdit] = []
        self._deferred: list[MembershipEdit] = []
        self._task: asyncio.Task[None] | None = None
        self._dispatching = False
        self._in_network = False
        self._restoring = False
        self._closed = False
        self.last_error: MutationFailure | None = None

    @property
    def container(self) -> Container:
        return self._container

    @property
    def container_id(self) -> str:
        return self._container.id

    @property
    def baseline(self) -> tuple[str, ...]:
        """Last member order confirmed by the server."""
        return self._baseline

    @property
    def is_mutating(self) -> bool:
        return self._dispatching or bool(self._pending) or self._restoring

    @property
    def closed(self) -> bool:
        return self._closed

    def adopt(self, outcome: ReconcileOutcome) -> None:
        """Install an authoritative state as both baseline and rendered order."""
        self._container = outcome.container
        self._baseline = outcome.member_ids
        self._store.merge_pool(outcome.resolved)
        self._store.commit(outcome.member_ids)

    async def submit(self, edit: MembershipEdit) -> bool:
        """Apply ``edit`` optimistically and schedule its reconciliation.

        Returns True when the edit changed the rendered order (or was queued
        behind a restore), False when it was a no-op.

        Raises:
            SessionClosedError: If the session was torn down.
        """
        if self._closed:
            msg = "Curation session is closed"
            raise SessionClosedError(msg, details={"container_id": self.container_id})

        if self._restoring:
            # The store is about to be replaced by a refetch; re-validate afterwards.
            self._deferred.append(edit)
            logger.debug(
                "membership_edit_deferred",
                extra={"container_id": self.container_id, "edit": describe_edit(edit)},
            )
            return True

        if not self._apply(edit):
            return False

        self.last_error = None
        self._ensure_dispatcher()
        await self._notify()
        return True

    def _apply(self, edit: MembershipEdit) -> bool:
        next_ids = self._store.apply(edit)
        if next_ids == self._store.member_ids:
            logger.debug(
                "membership_edit_noop",
                extra={"container_id": self.container_id, "edit": describe_edit(edit)},
            )
            return False
        self._store.commit(next_ids)
        self._pending.append(edit)
        logger.debug(
            "membership_edit_applied",
            extra={
                "container_id": self.container_id,
                "edit": describe_edit(edit),
                "member_count": len(next_ids),
                "queued": len(self._pending),
            },
        )
        return True

    def _ensure_dispatcher(self) -> None:
        if self._dispatching:
            return
        self._dispatching = True
        self._task = asyncio.get_running_loop().create_task(
            self._dispatch_loop(), name=f"curation-dispatch-{self.container_id}"
        )

    async def _dispatch_loop(self) -> None:
        try:
            while self._pending and not self._closed:
                await asyncio.sleep(self._coalesce_window)
                if self._closed:
                    return
                await self._dispatch_once()
        finally:
            self._dispatching = False
        if not self._closed:
            await self._notify()

    async def _dispatch_once(self) -> None:
        edits = coalesce_edits(self._pending)
        self._pending = []
        snapshot = self._store.member_ids

        if snapshot == self._baseline:
            logger.debug(
                "membership_dispatch_skipped_unchanged",
                extra={"container_id": self.container_id},
            )
            return

        correlation_id = generate_correlation_id()
        logger.info(
            "membership_dispatch_started",
            extra={
                "container_id": self.container_id,
                "correlation_id": correlation_id,
                "edits": [describe_edit(edit) for edit in edits],
                "member_ids": format_ids_for_log(snapshot),
            },
        )

        self._in_network = True
        try:
            container = await self._reconciler.persist(
                self.container_id, snapshot, correlation_id=correlation_id
            )
        except PersistenceError as exc:
            self._in_network = False
            if self._closed:
                logger.info(
                    "membership_result_discarded_after_close",
                    extra={"container_id": self.container_id, "correlation_id": correlation_id},
                )
                return
            await self._restore_after_failure(exc, edits, correlation_id)
            return
        self._in_network = False

        if self._closed:
            logger.info(
                "membership_result_discarded_after_close",
                extra={"container_id": self.container_id, "correlation_id": correlation_id},
            )
            return

        await self._confirm(container, edits)

    async def _confirm(self, container: Container, edits: list[MembershipEdit]) -> None:
        self._container = container
        self._baseline = container.member_ids

        if not self._pending:
            # Ids the server returned that we have never seen must be resolved.
            # Settling may write a prune back; close() must let it land.
            self._in_network = True
            try:
                outcome = await self._settle_quietly(container)
            finally:
                self._in_network = False
            if self._closed:
                return
            if outcome is not None:
                self._store.merge_pool(outcome.resolved)
                if not self._pending:
                    self._container = outcome.container
                    self._baseline = outcome.member_ids
                    self._store.commit(outcome.member_ids)
                if outcome.pruned:
                    await self._events.publish(
                        MembersPruned(
                            occurred_at=utc_now(),
                            aggregate_id=self.container_id,
                            container_id=self.container_id,
                            pruned_ids=outcome.pruned,
                            persisted=outcome.prune_persisted,
                        )
                    )
            elif not self._pending:
                self._store.commit(container.member_ids)

        await self._events.publish(
            MembershipPersisted(
                occurred_at=utc_now(),
                aggregate_id=self.container_id,
                container_id=self.container_id,
                member_ids=self._baseline,
                edit_count=len(edits),
            )
        )

    async def _settle_quietly(self, container: Container) -> ReconcileOutcome | None:
        unknown = [item_id for item_id in container.member_ids if item_id not in self._store.item_pool]
        if not unknown:
            return None
        try:
            return await self._reconciler.settle(container, self._store.item_pool)
        except Exception:
            logger.exception(
                "membership_settle_failed",
                extra={"container_id": self.container_id, "unknown_ids": format_ids_for_log(unknown)},
            )
            return None

    async def _restore_after_failure(
        self,
        exc: PersistenceError,
        edits: list[MembershipEdit],
        correlation_id: str,
    ) -> None:
        failed_edits = coalesce_edits([*edits, *self._pending])
        self._pending = []
        self._restoring = True
        await self._notify()

        refetched = True
        try:
            outcome = await self._reconciler.load(self.container_id, self._store.item_pool)
        except Exception:
            logger.exception(
                "membership_refetch_failed",
                extra={"container_id": self.container_id, "correlation_id": correlation_id},
            )
            refetched = False
            outcome = None
        finally:
            self._restoring = False

        if self._closed:
            return

        if outcome is not None:
            self.adopt(outcome)
        else:
            self._store.commit(self._baseline)

        # Edits made during the refetch are re-validated against the fresh state
        # before anything else can run, so later edits land on top of them.
        deferred, self._deferred = self._deferred, []
        for edit in deferred:
            self._apply(edit)

        message = exc.message
        if not refetched:
            message = f"{message} (could not reload the latest membership; showing last saved state)"
        self.last_error = MutationFailure(
            message=message,
            retryable=exc.retryable,
            edits=tuple(failed_edits),
            refetched=refetched,
            correlation_id=correlation_id,
        )
        logger.warning(
            "membership_restored_after_failure",
            extra={
                "container_id": self.container_id,
                "correlation_id": correlation_id,
                "refetched": refetched,
                "failed_edits": [describe_edit(edit) for edit in failed_edits],
                "member_ids": format_ids_for_log(self._store.member_ids),
            },
        )
        await self._events.publish(
            MembershipPersistFailed(
                occurred_at=utc_now(),
                aggregate_id=self.container_id,
                container_id=self.container_id,
                message=message,
                retryable=exc.retryable,
                edits=tuple(failed_edits),
            )
        )
        if outcome is not None and outcome.pruned:
            await self._events.publish(
                MembersPruned(
                    occurred_at=utc_now(),
                    aggregate_id=self.container_id,
                    container_id=self.container_id,
                    pruned_ids=outcome.pruned,
                    persisted=outcome.prune_persisted,
                )
            )

        await self._notify()

    async def _notify(self) -> None:
        if self._on_change is not None and not self._closed:
            await self._on_change()

    async def wait_idle(self) -> None:
        """Wait until no dispatch is running (used on teardown and in tests)."""
        while self._task is not None and not self._task.done():
            await asyncio.wait({self._task})

    def close(self) -> None:
        """Abandon queued edits; let an in-flight call finish unobserved."""
        if self._closed:
            return
        self._closed = True
        dropped = len(self._pending) + len(self._deferred)
        self._pending = []
        self._deferred = []
        if self._task is not None and not self._task.done() and not self._in_network and not self._restoring:
            self._task.cancel()
        logger.info(
            "curation_mutator_closed",
            extra={
                "container_id": self.container_id,
                "dropped_edits": dropped,
                "in_flight": self._in_network,
            },
        )
