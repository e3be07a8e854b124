"""Pytest configuration and shared fixtures.

Provides in-memory fakes of the container and item services plus a small
catalogue of items that the curation tests share.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable, Sequence
from typing import Any

import pytest

from curator.domain.exceptions.domain_exceptions import (
    ContainerNotFoundError,
    ItemNotFoundError,
)
from curator.domain.models.container import Container, ContainerType, Item, ItemKind


def make_item(item_id: str, **kwargs: Any) -> Item:
    """Build a song item with a readable default name."""
    kwargs.setdefault("name", f"Song {item_id}")
    kwargs.setdefault("status", "ACTIVE")
    return Item(id=item_id, **kwargs)


class FakeContainerService:
    """In-memory ContainerService that records every update call.

    - ``update_errors``: exceptions raised by the next update calls, in order.
    - ``get_errors``: same for get calls.
    - ``gate``: when set, updates wait for the event before answering.
    - ``adjust``: one-shot hooks that rewrite the order the server stores.
    """

    def __init__(self, *containers: Container) -> None:
        self.containers = {container.id: container for container in containers}
        self.get_calls: list[str] = []
        self.update_calls: list[tuple[str, ...]] = []
        self.update_errors: list[Exception] = []
        self.get_errors: list[Exception] = []
        self.gate: asyncio.Event | None = None
        self.adjust: list[Callable[[tuple[str, ...]], tuple[str, ...]]] = []

    async def get(self, container_id: str) -> Container:
        self.get_calls.append(container_id)
        if self.get_errors:
            raise self.get_errors.pop(0)
        if container_id not in self.containers:
            raise ContainerNotFoundError(container_id)
        return self.containers[container_id]

    async def update(self, container_id: str, *, member_ids: Sequence[str]) -> Container:
        self.update_calls.append(tuple(member_ids))
        if self.gate is not None:
            await self.gate.wait()
        if self.update_errors:
            raise self.update_errors.pop(0)
        if container_id not in self.containers:
            raise ContainerNotFoundError(container_id)
        stored = tuple(member_ids)
        if self.adjust:
            stored = self.adjust.pop(0)(stored)
        container = self.containers[container_id].with_members(stored)
        self.containers[container_id] = container
        return container


class FakeItemService:
    """In-memory ItemService; ids in ``deleted`` behave like HTTP 404s."""

    def __init__(self, items: Iterable[Item] = (), *, deleted: Iterable[str] = ()) -> None:
        self.items = {item.id: item for item in items}
        self.deleted = set(deleted)
        self.failing: dict[str, Exception] = {}
        self.get_by_id_calls: list[str] = []
        self.get_all_calls: list[dict[str, Any] | None] = []

    async def get_by_id(self, item_id: str) -> Item:
        self.get_by_id_calls.append(item_id)
        if item_id in self.failing:
            raise self.failing[item_id]
        if item_id in self.deleted or item_id not in self.items:
            raise ItemNotFoundError(item_id)
        return self.items[item_id]

    async def get_all(self, filters: dict[str, Any] | None = None) -> list[Item]:
        self.get_all_calls.append(filters)
        return [item for item_id, item in self.items.items() if item_id not in self.deleted]


async def wait_until(condition: Callable[[], bool], attempts: int = 200) -> None:
    """Yield to the event loop until ``condition`` holds."""
    for _ in range(attempts):
        if condition():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition was never met")


@pytest.fixture
def songs() -> list[Item]:
    return [
        make_item("s1", name="Amazing Grace", subtitle="Choir", duration_seconds=25, tags=("hymn",)),
        make_item("s2", name="Be Still", subtitle="Quartet", duration_seconds=95, category="worship"),
        make_item("s3", name="Canticle", subtitle="Choir", duration_seconds=240),
        make_item("s4", name="Draft Song", status="DRAFT", duration_seconds=60),
    ]


@pytest.fixture
def song_section() -> Container:
    return Container(
        id="section-1",
        member_ids=("s1", "s2"),
        title="Featured",
        container_type=ContainerType.SONGS,
    )


@pytest.fixture
def container_service(song_section: Container) -> FakeContainerService:
    return FakeContainerService(song_section)


@pytest.fixture
def item_service(songs: list[Item]) -> FakeItemService:
    return FakeItemService(songs)


@pytest.fixture
def song_kind() -> ItemKind:
    return ItemKind.SONG
