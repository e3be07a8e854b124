"""Pydantic models for the content API wire format."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

from curator.domain.models.container import Container, ContainerType, Item, ItemKind


class ContainerPayload(BaseModel):
    """A home-page section or category as returned by the API."""

    id: str
    title: str | None = None
    name: str | None = None
    type: str | None = None
    filter_type: str | None = Field(default=None, alias="filterType")
    item_ids: list[str] | None = Field(default=None, alias="itemIds")
    is_active: bool | None = Field(default=None, alias="isActive")
    order: int | None = None

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return str(value)

    def to_domain(self, *, default_type: ContainerType | None = None) -> Container:
        container_type = default_type
        if self.type:
            try:
                container_type = ContainerType(self.type.upper())
            except ValueError:
                container_type = None
        return Container(
            id=self.id,
            member_ids=tuple(self.item_ids or ()),
            title=self.title or self.name or "",
            container_type=container_type,
            filter_type=self.filter_type,
            metadata={"is_active": self.is_active, "order": self.order},
        )


class ArtistRef(BaseModel):
    name: str | None = None

    model_config = {"extra": "ignore"}


class AudioFileRef(BaseModel):
    name: str | None = None
    duration_seconds: float | None = Field(default=None, alias="durationSeconds")
    tags: list[str] = Field(default_factory=list)

    model_config = {"populate_by_name": True, "extra": "ignore"}


class ItemPayload(BaseModel):
    """A song, collection, artist or vocal item as returned by the API.

    The resources share few field names; ``to_domain`` picks whichever of
    them the payload carries.
    """

    id: str
    title: str | None = None
    name: str | None = None
    artist: ArtistRef | None = None
    status: str | None = None
    is_active: bool | None = Field(default=None, alias="isActive")
    duration_seconds: float | None = Field(default=None, alias="durationSeconds")
    category_id: str | None = Field(default=None, alias="categoryId")
    tags: list[Any] = Field(default_factory=list)
    audio_file: AudioFileRef | None = Field(default=None, alias="audioFile")

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return str(value)

    def _tag_names(self) -> tuple[str, ...]:
        names: list[str] = []
        for tag in self.tags:
            if isinstance(tag, dict):
                tag = tag.get("name")
            if tag:
                names.append(str(tag))
        if self.audio_file:
            names.extend(self.audio_file.tags)
        return tuple(dict.fromkeys(names))

    def to_domain(self, kind: ItemKind) -> Item:
        name = self.title or self.name
        if not name and self.audio_file:
            name = self.audio_file.name
        duration = self.duration_seconds
        if duration is None and self.audio_file:
            duration = self.audio_file.duration_seconds
        status = self.status
        if status is None and self.is_active is not None:
            status = "ACTIVE" if self.is_active else "INACTIVE"
        return Item(
            id=self.id,
            name=name or self.id,
            kind=kind,
            subtitle=self.artist.name if self.artist else None,
            category=self.category_id,
            tags=self._tag_names(),
            duration_seconds=duration,
            status=status,
        )


class UpdateMembershipRequest(BaseModel):
    """Replace the full ordered membership list of a container."""

    item_ids: list[str] = Field(serialization_alias="itemIds")


class VocalCategoryPayload(BaseModel):
    """``GET /vocal/categories/{id}/with-items``: membership is the ``items`` order."""

    id: str
    name: str | None = None
    is_active: bool | None = Field(default=None, alias="isActive")
    display_order: int | None = Field(default=None, alias="displayOrder")
    items: list[ItemPayload] = Field(default_factory=list)

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return str(value)

    def to_domain(self) -> Container:
        return Container(
            id=self.id,
            member_ids=tuple(item.id for item in self.items),
            title=self.name or "",
            container_type=ContainerType.VOCAL_CATEGORY,
            metadata={"is_active": self.is_active, "order": self.display_order},
        )


class AssignCategoryRequest(BaseModel):
    """Move a vocal item into a category, or out of any (``None``)."""

    category_id: str | None = Field(serialization_alias="categoryId")
