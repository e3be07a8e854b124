"""Protocol definitions (ports) for the curation collaborators.

Keeping these as Protocols isolates the synchronizer from the concrete HTTP
services, so tests and other front ends can plug in their own.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from collections.abc import Sequence

    from curator.domain.models.container import Container, Item


class ContainerService(Protocol):
    async def get(self, container_id: str) -> Container: ...

    async def update(self, container_id: str, *, member_ids: Sequence[str]) -> Container:
        """Replace the full ordered membership list and return authoritative state."""
        ...


class ItemService(Protocol):
    async def get_by_id(self, item_id: str) -> Item:
        """Return the item or raise ``ItemNotFoundError``."""
        ...

    async def get_all(self, filters: dict[str, Any] | None = None) -> list[Item]: ...
