"""Tests for the HTTP adapters against an ``httpx.MockTransport``."""

from __future__ import annotations

import json

import httpx
import pytest

from curator.adapters.api.client import ApiClient, ApiClientError, ApiNotFoundError, ReadRetryPolicy
from curator.adapters.api.services import HttpContainerService, HttpItemService, HttpVocalCategoryService
from curator.application.reconciler import Reconciler
from curator.domain.exceptions.domain_exceptions import (
    ContainerNotFoundError,
    ItemNotFoundError,
    PersistenceError,
    ServiceError,
)
from curator.domain.models.container import ContainerType, ItemKind


class Router:
    """Route requests to canned responses and record what was sent."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.responses: dict[tuple[str, str], list[httpx.Response]] = {}

    def add(self, method: str, path: str, *responses: httpx.Response) -> None:
        self.responses.setdefault((method, path), []).extend(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.responses.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"message": "Not Found"})
        return queue.pop(0) if len(queue) > 1 else queue[0]


@pytest.fixture
def router() -> Router:
    return Router()


def make_client(router: Router, **kwargs) -> ApiClient:
    kwargs.setdefault("retry_base_delay", 0)
    kwargs.setdefault("retry_max_delay", 0)
    return ApiClient("http://api.test", transport=httpx.MockTransport(router), **kwargs)


SECTION = {
    "id": 7,
    "title": "Featured",
    "type": "songs",
    "filterType": "MANUAL",
    "itemIds": ["s1", "s2"],
    "isActive": True,
    "order": 1,
}


class TestHttpContainerService:
    @pytest.mark.asyncio
    async def test_get_maps_payload(self, router):
        router.add("GET", "/home-sections/7", httpx.Response(200, json=SECTION))

        async with make_client(router) as client:
            container = await HttpContainerService(client).get("7")

        assert container.id == "7"
        assert container.member_ids == ("s1", "s2")
        assert container.container_type is ContainerType.SONGS
        assert container.title == "Featured"
        assert container.metadata["order"] == 1

    @pytest.mark.asyncio
    async def test_get_missing_container(self, router):
        async with make_client(router) as client:
            with pytest.raises(ContainerNotFoundError):
                await HttpContainerService(client).get("404")

    @pytest.mark.asyncio
    async def test_update_sends_full_order(self, router):
        router.add(
            "PATCH",
            "/home-sections/7",
            httpx.Response(200, json={**SECTION, "itemIds": ["s2", "s1"]}),
        )

        async with make_client(router) as client:
            container = await HttpContainerService(client).update("7", member_ids=["s2", "s1"])

        request = router.requests[-1]
        assert request.method == "PATCH"
        assert json.loads(request.content) == {"itemIds": ["s2", "s1"]}
        assert container.member_ids == ("s2", "s1")

    @pytest.mark.asyncio
    async def test_update_is_never_retried(self, router):
        router.add("PATCH", "/home-sections/7", httpx.Response(503, json={"message": "busy"}))

        async with make_client(router, max_retries=3) as client:
            with pytest.raises(ApiClientError) as exc_info:
                await HttpContainerService(client).update("7", member_ids=["s1"])

        assert len(router.requests) == 1
        assert exc_info.value.status_code == 503
        assert exc_info.value.retryable is True
        assert "busy" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_invalid_payload(self, router):
        router.add("GET", "/home-sections/7", httpx.Response(200, json={"title": "no id"}))

        async with make_client(router) as client:
            with pytest.raises(ServiceError, match="unexpected payload"):
                await HttpContainerService(client).get("7")

    @pytest.mark.asyncio
    async def test_persist_failure_over_http(self, router):
        router.add("PATCH", "/home-sections/7", httpx.Response(500, json={"error": "boom"}))

        async with make_client(router) as client:
            reconciler = Reconciler(HttpContainerService(client), HttpItemService(client, "song"))
            with pytest.raises(PersistenceError) as exc_info:
                await reconciler.persist("7", ["s1"])

        assert exc_info.value.retryable is True
        assert "boom" in exc_info.value.message


class TestHttpItemService:
    @pytest.mark.asyncio
    async def test_get_by_id(self, router):
        router.add(
            "GET",
            "/songs/s1",
            httpx.Response(
                200,
                json={
                    "id": "s1",
                    "title": "Amazing Grace",
                    "artist": {"name": "Choir"},
                    "status": "ACTIVE",
                    "durationSeconds": 182,
                    "tags": [{"name": "hymn"}, "classic"],
                },
            ),
        )

        async with make_client(router) as client:
            item = await HttpItemService(client, ItemKind.SONG).get_by_id("s1")

        assert item.name == "Amazing Grace"
        assert item.subtitle == "Choir"
        assert item.duration_seconds == 182
        assert item.tags == ("hymn", "classic")
        assert item.kind is ItemKind.SONG

    @pytest.mark.asyncio
    async def test_missing_item_raises_not_found(self, router):
        async with make_client(router) as client:
            with pytest.raises(ItemNotFoundError) as exc_info:
                await HttpItemService(client, ItemKind.SONG).get_by_id("gone")

        assert exc_info.value.item_id == "gone"

    @pytest.mark.asyncio
    async def test_reads_are_retried_on_transient_errors(self, router):
        router.add(
            "GET",
            "/artists/a1",
            httpx.Response(503),
            httpx.Response(200, json={"id": "a1", "name": "Quartet", "isActive": False}),
        )

        async with make_client(router, max_retries=2) as client:
            item = await HttpItemService(client, "artist").get_by_id("a1")

        assert len(router.requests) == 2
        assert item.name == "Quartet"
        assert item.status == "INACTIVE"

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self, router):
        router.add("GET", "/songs/s1", httpx.Response(400, json={"message": ["bad", "id"]}))

        async with make_client(router, max_retries=2) as client:
            with pytest.raises(ApiClientError) as exc_info:
                await HttpItemService(client, "song").get_by_id("s1")

        assert len(router.requests) == 1
        assert exc_info.value.retryable is False
        assert "bad; id" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_get_all_unwraps_and_skips_invalid(self, router):
        router.add(
            "GET",
            "/vocal/items",
            httpx.Response(
                200,
                json={
                    "data": [
                        {"id": 1, "audioFile": {"name": "Breath", "durationSeconds": 12}},
                        {"title": "missing id"},
                    ]
                },
            ),
        )

        async with make_client(router) as client:
            items = await HttpItemService(client, ItemKind.VOCAL_ITEM).get_all({"status": None})

        assert [item.id for item in items] == ["1"]
        assert items[0].name == "Breath"
        assert items[0].duration_seconds == 12
        assert router.requests[0].url.query == b""

    @pytest.mark.asyncio
    async def test_get_all_forwards_filters(self, router):
        router.add("GET", "/collections", httpx.Response(200, json=[]))

        async with make_client(router) as client:
            await HttpItemService(client, ItemKind.COLLECTION).get_all({"isActive": "true"})

        assert router.requests[0].url.params["isActive"] == "true"


class TestApiClient:
    @pytest.mark.asyncio
    async def test_token_is_sent_as_bearer(self, router):
        router.add("GET", "/songs", httpx.Response(200, json=[]))

        async with make_client(router, token="secret") as client:
            await client.get_json("/songs")

        assert router.requests[0].headers["Authorization"] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_not_found(self, router):
        async with make_client(router) as client:
            with pytest.raises(ApiNotFoundError) as exc_info:
                await client.get_json("/nowhere")

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_use_outside_context_manager(self):
        client = ApiClient("http://api.test")
        with pytest.raises(ApiClientError, match="not initialized"):
            await client.get_json("/songs")

    def test_endpoint_timeouts(self):
        client = ApiClient("http://api.test/", timeout=10, endpoint_timeouts={"update_container": 20})
        assert client.base_url == "http://api.test"
        assert client.get_timeout("update_container") == 20
        assert client.get_timeout("get_item") == 10


def with_items(*item_ids: str) -> httpx.Response:
    return httpx.Response(
        200,
        json={"id": "c1", "name": "Warmups", "items": [{"id": item_id, "name": item_id} for item_id in item_ids]},
    )


class TestHttpVocalCategoryService:
    @pytest.mark.asyncio
    async def test_get_reads_members_from_items(self, router):
        router.add("GET", "/vocal/categories/c1/with-items", with_items("v2", "v1"))

        async with make_client(router) as client:
            container = await HttpVocalCategoryService(client).get("c1")

        assert container.member_ids == ("v2", "v1")
        assert container.container_type is ContainerType.VOCAL_CATEGORY
        assert container.title == "Warmups"

    @pytest.mark.asyncio
    async def test_missing_category(self, router):
        async with make_client(router) as client:
            with pytest.raises(ContainerNotFoundError):
                await HttpVocalCategoryService(client).get("c1")

    @pytest.mark.asyncio
    async def test_update_assigns_unassigns_and_reorders(self, router):
        router.add(
            "GET",
            "/vocal/categories/c1/with-items",
            with_items("v1", "v2", "v3"),
            with_items("v3", "v4", "v1"),
        )
        router.add("PATCH", "/vocal/items/v2", httpx.Response(200, json={"id": "v2"}))
        router.add("PATCH", "/vocal/items/v4", httpx.Response(200, json={"id": "v4"}))
        router.add("POST", "/vocal/categories/c1/items/reorder", httpx.Response(204))

        async with make_client(router) as client:
            container = await HttpVocalCategoryService(client).update("c1", member_ids=["v3", "v4", "v1"])

        writes = [
            (request.method, request.url.path, json.loads(request.content))
            for request in router.requests
            if request.method != "GET"
        ]
        assert writes == [
            ("PATCH", "/vocal/items/v2", {"categoryId": None}),
            ("PATCH", "/vocal/items/v4", {"categoryId": "c1"}),
            ("POST", "/vocal/categories/c1/items/reorder", {"itemIds": ["v3", "v4", "v1"]}),
        ]
        assert container.member_ids == ("v3", "v4", "v1")

    @pytest.mark.asyncio
    async def test_removal_keeps_order_and_skips_deleted_items(self, router):
        router.add(
            "GET",
            "/vocal/categories/c1/with-items",
            with_items("v1", "v2", "v3"),
            with_items("v1", "v3"),
        )

        async with make_client(router) as client:
            container = await HttpVocalCategoryService(client).update("c1", member_ids=["v1", "v3"])

        # v2 answers 404: it is gone, so already out of the category
        assert [(r.method, r.url.path) for r in router.requests if r.method != "GET"] == [
            ("PATCH", "/vocal/items/v2"),
        ]
        assert container.member_ids == ("v1", "v3")

    @pytest.mark.asyncio
    async def test_adding_deleted_item_raises_not_found(self, router):
        router.add("GET", "/vocal/categories/c1/with-items", with_items("v1"))

        async with make_client(router) as client:
            with pytest.raises(ItemNotFoundError) as exc_info:
                await HttpVocalCategoryService(client).update("c1", member_ids=["v1", "gone"])

        assert exc_info.value.item_id == "gone"


class TestReadRetryPolicy:
    def test_delay_grows_and_is_capped(self):
        policy = ReadRetryPolicy(max_retries=5, base_delay=1.0, max_delay=3.0, jitter=0)

        assert [policy.delay_for(attempt) for attempt in range(4)] == [1.0, 2.0, 3.0, 3.0]

    def test_stops_after_max_retries(self):
        policy = ReadRetryPolicy(max_retries=1)
        error = httpx.ConnectError("refused")

        assert policy.should_retry(error, 0) is True
        assert policy.should_retry(error, 1) is False
        assert policy.should_retry(ValueError("bad json"), 0) is False
