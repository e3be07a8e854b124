"""Container and Item domain models.

A Container is the entity whose membership is curated (a home-page section,
a vocal category). An Item is a candidate member owned by its own resource
service; the curation core never mutates an Item, only its association to a
Container.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable


class ItemKind(str, Enum):
    """Kinds of items that can be curated into a container."""

    SONG = "song"
    COLLECTION = "collection"
    ARTIST = "artist"
    VOCAL_ITEM = "vocal_item"


class ContainerType(str, Enum):
    """Types of containers exposed by the remote service."""

    SONGS = "SONGS"
    SONG_LIST = "SONG_LIST"
    COLLECTIONS = "COLLECTIONS"
    ARTISTS = "ARTISTS"
    BANNER = "BANNER"
    VOCAL_CATEGORY = "VOCAL_CATEGORY"


# Which item kinds each container type accepts as members.
ACCEPTED_KINDS: dict[ContainerType, frozenset[ItemKind]] = {
    ContainerType.SONGS: frozenset({ItemKind.SONG}),
    ContainerType.SONG_LIST: frozenset({ItemKind.SONG}),
    ContainerType.COLLECTIONS: frozenset({ItemKind.COLLECTION}),
    ContainerType.ARTISTS: frozenset({ItemKind.ARTIST}),
    ContainerType.BANNER: frozenset(),
    ContainerType.VOCAL_CATEGORY: frozenset({ItemKind.VOCAL_ITEM}),
}


def unique_ids(ids: Iterable[str]) -> tuple[str, ...]:
    """Drop duplicate identifiers, keeping the first occurrence of each."""
    seen: set[str] = set()
    result: list[str] = []
    for item_id in ids:
        if item_id in seen:
            continue
        seen.add(item_id)
        result.append(item_id)
    return tuple(result)


@dataclass(frozen=True)
class Item:
    """A candidate member of a container."""

    id: str
    name: str
    kind: ItemKind = ItemKind.SONG
    subtitle: str | None = None
    category: str | None = None
    tags: tuple[str, ...] = ()
    duration_seconds: float | None = None
    status: str | None = None

    @property
    def is_categorized(self) -> bool:
        return bool(self.category)


@dataclass(frozen=True)
class Container:
    """Cached copy of a remote container and its ordered member ids."""

    id: str
    member_ids: tuple[str, ...] = ()
    title: str = ""
    container_type: ContainerType | None = None
    filter_type: str | None = None
    metadata: dict = field(default_factory=dict, compare=False)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Container id cannot be empty")
        # frozen: bypass __setattr__ to normalise the member list
        object.__setattr__(self, "member_ids", unique_ids(self.member_ids))

    def with_members(self, member_ids: Iterable[str]) -> Container:
        """Return a copy of this container with a new member order."""
        return replace(self, member_ids=tuple(member_ids))

    def accepts(self, kind: ItemKind) -> bool:
        """Check whether items of ``kind`` may be members of this container.

        Containers without a known type accept every kind.
        """
        if self.container_type is None:
            return True
        return kind in ACCEPTED_KINDS.get(self.container_type, frozenset())
