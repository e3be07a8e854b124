"""End-to-end: DI container, HTTP adapters and a curation session."""

from __future__ import annotations

import json

import httpx
import pytest

from curator.adapters.api.client import ApiClient
from curator.config import load_config
from curator.di.container import Container
from curator.domain.models.container import ItemKind


class ContentApi:
    """Tiny in-memory content API served through ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.sections = {"1": {"id": "1", "title": "Featured", "type": "SONGS", "itemIds": ["s1", "s9"]}}
        self.songs = {
            "s1": {"id": "s1", "title": "Amazing Grace", "status": "ACTIVE"},
            "s2": {"id": "s2", "title": "Be Still", "status": "ACTIVE"},
            "s3": {"id": "s3", "title": "Work in progress", "status": "DRAFT"},
        }
        self.patches: list[list[str]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/songs":
            return httpx.Response(200, json=list(self.songs.values()))
        if path.startswith("/songs/"):
            song = self.songs.get(path.rsplit("/", 1)[1])
            return httpx.Response(200, json=song) if song else httpx.Response(404)
        if path.startswith("/home-sections/"):
            section = self.sections.get(path.rsplit("/", 1)[1])
            if section is None:
                return httpx.Response(404)
            if request.method == "PATCH":
                item_ids = json.loads(request.content)["itemIds"]
                self.patches.append(item_ids)
                section["itemIds"] = item_ids
            return httpx.Response(200, json=section)
        return httpx.Response(404)


@pytest.fixture
def config(monkeypatch):
    monkeypatch.chdir("/")
    return load_config(CURATION_COALESCE_WINDOW_MS="0")


@pytest.mark.asyncio
async def test_session_over_http(config):
    api = ContentApi()
    client = ApiClient("http://api.test", transport=httpx.MockTransport(api))

    async with Container(config, client=client) as container:
        session = container.curation_session("1", ItemKind.SONG)
        view = await session.load()

        # s9 no longer exists and is pruned on load
        assert view.member_ids == ("s1",)
        assert api.patches == [["s1"]]
        # drafts are not offered as candidates
        assert [item.id for item in view.candidate_items] == ["s2"]

        await session.add_member("s2")
        await session.reorder("s2", "s1")
        await session.wait_idle()
        await session.close()

    assert api.patches[-1] == ["s2", "s1"]
    assert api.sections["1"]["itemIds"] == ["s2", "s1"]


@pytest.mark.asyncio
async def test_active_only_can_be_disabled(monkeypatch):
    monkeypatch.chdir("/")
    config = load_config(CURATION_ACTIVE_ONLY="false")
    client = ApiClient("http://api.test", transport=httpx.MockTransport(ContentApi()))

    async with Container(config, client=client) as container:
        session = container.curation_session("1", "song")
        view = await session.load()
        await session.close()

    assert [item.id for item in view.candidate_items] == ["s2", "s3"]


class VocalApi:
    """Vocal categories whose membership is the ``categoryId`` of each item."""

    def __init__(self) -> None:
        self.items = {
            item_id: {"id": item_id, "name": f"Warmup {item_id}", "categoryId": None, "isActive": True}
            for item_id in ("v1", "v2", "v3")
        }
        self.items["v1"]["categoryId"] = "c1"
        self.order = ["v1"]
        self.calls: list[tuple[str, str]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append((request.method, path))
        if path == "/vocal/categories/c1/with-items":
            items = [self.items[item_id] for item_id in self.order]
            return httpx.Response(200, json={"id": "c1", "name": "Warmups", "items": items})
        if path == "/vocal/categories/c1/items/reorder":
            self.order = json.loads(request.content)["itemIds"]
            return httpx.Response(204)
        if path == "/vocal/items":
            return httpx.Response(200, json=list(self.items.values()))
        if path.startswith("/vocal/items/"):
            item = self.items.get(path.rsplit("/", 1)[1])
            if item is None:
                return httpx.Response(404)
            if request.method == "PATCH":
                item["categoryId"] = json.loads(request.content)["categoryId"]
                if item["categoryId"] == "c1" and item["id"] not in self.order:
                    self.order.append(item["id"])
                elif item["categoryId"] is None and item["id"] in self.order:
                    self.order.remove(item["id"])
            return httpx.Response(200, json=item)
        return httpx.Response(404)


@pytest.mark.asyncio
async def test_vocal_category_session_over_http(config):
    api = VocalApi()
    client = ApiClient("http://api.test", transport=httpx.MockTransport(api))

    async with Container(config, client=client) as container:
        session = container.curation_session("c1", ItemKind.VOCAL_ITEM)
        view = await session.load()
        assert view.member_ids == ("v1",)
        assert [item.id for item in view.candidate_items] == ["v2", "v3"]

        await session.add_member("v2")
        await session.reorder("v2", "v1")
        await session.wait_idle()
        assert api.order == ["v2", "v1"]
        assert api.items["v2"]["categoryId"] == "c1"

        await session.remove_member("v1")
        await session.wait_idle()
        await session.close()

    assert api.order == ["v2"]
    assert api.items["v1"]["categoryId"] is None
    assert ("PATCH", "/home-sections/c1") not in api.calls
