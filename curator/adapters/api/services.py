"""HTTP implementations of the container and item service ports."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from curator.adapters.api.client import ApiClientError, ApiNotFoundError
from curator.adapters.api.models import (
    AssignCategoryRequest,
    ContainerPayload,
    ItemPayload,
    UpdateMembershipRequest,
    VocalCategoryPayload,
)
from curator.domain.exceptions.domain_exceptions import (
    ContainerNotFoundError,
    ItemNotFoundError,
    ServiceError,
)
from curator.domain.models.container import ContainerType, ItemKind

if TYPE_CHECKING:
    from collections.abc import Sequence

    from curator.adapters.api.client import ApiClient
    from curator.domain.models.container import Container, Item

logger = logging.getLogger(__name__)

# Collection path per item kind.
ITEM_ENDPOINTS: dict[ItemKind, str] = {
    ItemKind.SONG: "/songs",
    ItemKind.COLLECTION: "/collections",
    ItemKind.ARTIST: "/artists",
    ItemKind.VOCAL_ITEM: "/vocal/items",
}


def _invalid_payload(operation: str, exc: ValidationError) -> ServiceError:
    return ServiceError(
        f"{operation} returned an unexpected payload",
        details={"operation": operation, "errors": exc.error_count()},
    )


class HttpContainerService:
    """Home-page sections: ``GET``/``PATCH /home-sections/{id}``."""

    def __init__(
        self,
        client: ApiClient,
        *,
        base_path: str = "/home-sections",
        default_type: ContainerType | None = None,
    ) -> None:
        self._client = client
        self._base_path = base_path.rstrip("/")
        self._default_type = default_type

    async def get(self, container_id: str) -> Container:
        try:
            data = await self._client.get_json(
                f"{self._base_path}/{container_id}", operation="get_container"
            )
        except ApiNotFoundError as exc:
            raise ContainerNotFoundError(container_id) from exc
        try:
            payload = ContainerPayload.model_validate(data)
        except ValidationError as exc:
            raise _invalid_payload("get_container", exc) from exc
        return payload.to_domain(default_type=self._default_type)

    async def update(self, container_id: str, *, member_ids: Sequence[str]) -> Container:
        request = UpdateMembershipRequest(item_ids=list(member_ids))
        try:
            data = await self._client.patch_json(
                f"{self._base_path}/{container_id}",
                request.model_dump(by_alias=True),
                operation="update_container",
            )
        except ApiNotFoundError as exc:
            raise ContainerNotFoundError(container_id) from exc
        try:
            payload = ContainerPayload.model_validate(data)
        except ValidationError as exc:
            raise _invalid_payload("update_container", exc) from exc
        logger.debug(
            "container_updated",
            extra={"container_id": container_id, "member_count": len(payload.item_ids or ())},
        )
        return payload.to_domain(default_type=self._default_type)


class HttpVocalCategoryService:
    """Vocal categories, where membership is stored on the items themselves.

    - ``GET /vocal/categories/{id}/with-items`` lists the members in order.
    - ``PATCH /vocal/items/{id}`` with ``categoryId`` adds or removes one item.
    - ``POST /vocal/categories/{id}/items/reorder`` sets the order.

    There is no call that replaces the list at once, so ``update`` diffs the
    requested order against the server's and issues the calls above. A
    failure part way through leaves a partial change; callers refetch.
    """

    def __init__(
        self,
        client: ApiClient,
        *,
        base_path: str = "/vocal/categories",
        item_path: str = ITEM_ENDPOINTS[ItemKind.VOCAL_ITEM],
    ) -> None:
        self._client = client
        self._base_path = base_path.rstrip("/")
        self._item_path = item_path.rstrip("/")

    async def get(self, container_id: str) -> Container:
        try:
            data = await self._client.get_json(
                f"{self._base_path}/{container_id}/with-items", operation="get_vocal_category"
            )
        except ApiNotFoundError as exc:
            raise ContainerNotFoundError(container_id) from exc
        try:
            return VocalCategoryPayload.model_validate(data).to_domain()
        except ValidationError as exc:
            raise _invalid_payload("get_vocal_category", exc) from exc

    async def update(self, container_id: str, *, member_ids: Sequence[str]) -> Container:
        target = list(dict.fromkeys(member_ids))
        current = (await self.get(container_id)).member_ids
        wanted, present = set(target), set(current)
        removed = [item_id for item_id in current if item_id not in wanted]
        added = [item_id for item_id in target if item_id not in present]

        for item_id in removed:
            await self._assign(item_id, None)
        for item_id in added:
            await self._assign(item_id, container_id)

        kept = [item_id for item_id in current if item_id in wanted]
        if target and (added or kept != target):
            request = UpdateMembershipRequest(item_ids=target)
            await self._client.post_json(
                f"{self._base_path}/{container_id}/items/reorder",
                request.model_dump(by_alias=True),
                operation="reorder_vocal_category",
            )
        logger.debug(
            "vocal_category_updated",
            extra={
                "container_id": container_id,
                "added": len(added),
                "removed": len(removed),
                "member_count": len(target),
            },
        )
        return await self.get(container_id)

    async def _assign(self, item_id: str, category_id: str | None) -> None:
        request = AssignCategoryRequest(category_id=category_id)
        try:
            await self._client.patch_json(
                f"{self._item_path}/{item_id}",
                request.model_dump(by_alias=True),
                operation="assign_vocal_item",
            )
        except ApiNotFoundError as exc:
            if category_id is not None:
                raise ItemNotFoundError(item_id, details={"kind": ItemKind.VOCAL_ITEM.value}) from exc
            # Already deleted, so already out of the category.
            logger.debug("vocal_item_already_gone", extra={"item_id": item_id})


class HttpItemService:
    """Items of one kind, e.g. ``GET /songs`` and ``GET /songs/{id}``."""

    def __init__(self, client: ApiClient, kind: ItemKind | str, *, base_path: str | None = None) -> None:
        self._client = client
        self.kind = ItemKind(kind)
        self._base_path = (base_path or ITEM_ENDPOINTS[self.kind]).rstrip("/")

    async def get_by_id(self, item_id: str) -> Item:
        try:
            data = await self._client.get_json(f"{self._base_path}/{item_id}", operation="get_item")
        except ApiNotFoundError as exc:
            raise ItemNotFoundError(item_id, details={"kind": self.kind.value}) from exc
        if data is None:
            raise ItemNotFoundError(item_id, details={"kind": self.kind.value})
        try:
            return ItemPayload.model_validate(data).to_domain(self.kind)
        except ValidationError as exc:
            raise _invalid_payload("get_item", exc) from exc

    async def get_all(self, filters: dict[str, Any] | None = None) -> list[Item]:
        params = {key: value for key, value in (filters or {}).items() if value is not None}
        data = await self._client.get_json(self._base_path, params=params or None, operation="list_items")
        if isinstance(data, dict):
            # Some list endpoints wrap results in {"data": [...]}
            data = data.get("data") or data.get("items") or []
        if not isinstance(data, list):
            msg = "list_items returned an unexpected payload"
            raise ApiClientError(msg, details={"operation": "list_items"})

        items: list[Item] = []
        skipped = 0
        for entry in data:
            try:
                items.append(ItemPayload.model_validate(entry).to_domain(self.kind))
            except ValidationError:
                skipped += 1
        if skipped:
            logger.warning(
                "item_payloads_skipped",
                extra={"kind": self.kind.value, "skipped": skipped, "total": len(data)},
            )
        return items
