"""Network round trips that persist and re-validate a container's membership.

The reconciler always sends the whole member list ("replace membership
order"), never a delta, and never retries an update on its own: a stale
payload retried later could overwrite edits another operator made meanwhile.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from curator.core.logging_utils import format_ids_for_log
from curator.domain.exceptions.domain_exceptions import (
    DomainException,
    ItemNotFoundError,
    PersistenceError,
)
from curator.utils.retry_utils import is_transient_error

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from curator.application.protocols import ContainerService, ItemService
    from curator.domain.models.container import Container, Item

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconcileOutcome:
    """Authoritative container plus the members resolved for it."""

    container: Container
    resolved: tuple[Item, ...]
    pruned: tuple[str, ...] = ()
    prune_persisted: bool = True

    @property
    def member_ids(self) -> tuple[str, ...]:
        return self.container.member_ids


class Reconciler:
    """Persist member orders and resolve member ids against the item service."""

    def __init__(
        self,
        container_service: ContainerService,
        item_service: ItemService,
        *,
        timeout: float | None = None,
    ) -> None:
        self._containers = container_service
        self._items = item_service
        # Same timeout as every other API call; expiry counts as a failure.
        self._timeout = timeout

    async def refetch(self, container_id: str) -> Container:
        """Fetch the authoritative container."""
        return await self._containers.get(container_id)

    async def persist(
        self,
        container_id: str,
        member_ids: Sequence[str],
        *,
        correlation_id: str | None = None,
    ) -> Container:
        """Replace the container's membership with ``member_ids``.

        Raises:
            PersistenceError: For any failure of the update call, including
                timeouts. ``retryable`` reflects whether the failure looked
                transient.
        """
        logger.info(
            "membership_persist_started",
            extra={
                "container_id": container_id,
                "correlation_id": correlation_id,
                "member_count": len(member_ids),
            },
        )
        try:
            async with asyncio.timeout(self._timeout):
                container = await self._containers.update(
                    container_id, member_ids=list(member_ids)
                )
        except PersistenceError:
            raise
        except Exception as exc:
            retryable = is_transient_error(exc)
            logger.warning(
                "membership_persist_failed",
                extra={
                    "container_id": container_id,
                    "correlation_id": correlation_id,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                    "retryable": retryable,
                },
            )
            message = exc.message if isinstance(exc, DomainException) else str(exc)
            raise PersistenceError(
                message or f"Failed to update container {container_id}",
                retryable=retryable,
                details={"container_id": container_id, "correlation_id": correlation_id},
            ) from exc

        logger.info(
            "membership_persist_completed",
            extra={
                "container_id": container_id,
                "correlation_id": correlation_id,
                "member_count": len(container.member_ids),
                "server_adjusted": tuple(container.member_ids) != tuple(member_ids),
            },
        )
        return container

    async def resolve_one_by_one(
        self, ids: Sequence[str], known: Mapping[str, Item] | None = None
    ) -> tuple[list[Item], list[str]]:
        """Resolve ids sequentially so one deleted item cannot fail the batch.

        Ids already present in ``known`` are not fetched again. Only
        ``ItemNotFoundError`` marks an id as missing; any other failure
        propagates, since a transient outage must not prune live members.
        """
        known = known or {}
        resolved: list[Item] = []
        missing: list[str] = []
        for item_id in ids:
            item = known.get(item_id)
            if item is None:
                try:
                    item = await self._items.get_by_id(item_id)
                except ItemNotFoundError:
                    logger.warning("member_item_not_found", extra={"item_id": item_id})
                    missing.append(item_id)
                    continue
            resolved.append(item)
        return resolved, missing

    async def settle(
        self, container: Container, known: Mapping[str, Item] | None = None
    ) -> ReconcileOutcome:
        """Resolve every member of ``container`` and prune those that are gone.

        The pruned order is persisted back so the invariant is restored
        server-side. If that write fails the locally pruned container is
        returned and the outcome reports ``prune_persisted=False``.
        """
        resolved, missing = await self.resolve_one_by_one(container.member_ids, known)
        if not missing:
            return ReconcileOutcome(container=container, resolved=tuple(resolved))

        kept = [item.id for item in resolved]
        logger.info(
            "membership_prune_started",
            extra={
                "container_id": container.id,
                "pruned_ids": format_ids_for_log(missing),
                "kept_count": len(kept),
            },
        )
        try:
            pruned_container = await self.persist(container.id, kept)
            persisted = True
        except PersistenceError as exc:
            logger.warning(
                "membership_prune_persist_failed",
                extra={"container_id": container.id, "error": exc.message},
            )
            pruned_container = container.with_members(kept)
            persisted = False

        # The server may have adjusted the order; keep resolved items aligned with it.
        by_id = {item.id: item for item in resolved}
        aligned = tuple(by_id[item_id] for item_id in pruned_container.member_ids if item_id in by_id)
        return ReconcileOutcome(
            container=pruned_container,
            resolved=aligned,
            pruned=tuple(missing),
            prune_persisted=persisted,
        )

    async def load(
        self, container_id: str, known: Mapping[str, Item] | None = None
    ) -> ReconcileOutcome:
        """Fetch the container and settle its membership."""
        container = await self.refetch(container_id)
        logger.info(
            "container_loaded",
            extra={"container_id": container_id, "member_count": len(container.member_ids)},
        )
        return await self.settle(container, known)
