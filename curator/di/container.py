"""Wiring of concrete adapters into curation sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from curator.adapters.api.client import ApiClient
from curator.adapters.api.services import HttpContainerService, HttpItemService, HttpVocalCategoryService
from curator.application.session import CurationSession
from curator.config.settings import load_config
from curator.core.logging_utils import setup_json_logging
from curator.domain.models.container import ItemKind
from curator.domain.services.candidate_filter import FilterState

if TYPE_CHECKING:
    from curator.application.protocols import ContainerService
    from curator.config.settings import AppConfig


class Container:
    """Dependency injection container for curation screens.

    Owns one ``ApiClient`` and hands out a fresh ``CurationSession`` per
    screen. Sessions are independent of one another.

    Example:
        ```python
        async with Container(load_config()) as container:
            session = container.curation_session("section-1", ItemKind.SONG)
            await session.load()
        ```

    """

    def __init__(self, config: AppConfig, *, client: ApiClient | None = None) -> None:
        self.config = config
        self.client = client or ApiClient.from_config(config.api)

    @classmethod
    def from_env(cls, **overrides: Any) -> Container:
        """Load configuration from the environment and set up logging."""
        config = load_config(**overrides)
        runtime = config.runtime
        if runtime.log_json:
            setup_json_logging(
                runtime.log_level,
                use_loguru=runtime.use_loguru,
                log_file=runtime.log_file,
            )
        return cls(config)

    async def __aenter__(self) -> Container:
        await self.client.__aenter__()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.client.__aexit__(*args)

    def container_service(self, *, base_path: str = "/home-sections") -> HttpContainerService:
        return HttpContainerService(self.client, base_path=base_path)

    def vocal_category_service(self) -> HttpVocalCategoryService:
        return HttpVocalCategoryService(self.client)

    def item_service(self, kind: ItemKind | str) -> HttpItemService:
        return HttpItemService(self.client, kind)

    def curation_session(
        self,
        container_id: str,
        item_kind: ItemKind | str,
        *,
        filter_state: FilterState | None = None,
        pool_filters: dict[str, Any] | None = None,
        container_path: str = "/home-sections",
    ) -> CurationSession:
        """Build a session for one container.

        Vocal items are curated through vocal categories; every other kind
        goes through the sections under ``container_path``.
        """
        kind = ItemKind(item_kind)
        if filter_state is None:
            # Draft songs are never offered for curation.
            active_only = self.config.sync.active_only and kind is ItemKind.SONG
            filter_state = FilterState(statuses=frozenset({"ACTIVE"}) if active_only else None)
        if kind is ItemKind.VOCAL_ITEM:
            containers: ContainerService = self.vocal_category_service()
        else:
            containers = self.container_service(base_path=container_path)
        return CurationSession(
            container_id,
            kind,
            containers,
            self.item_service(kind),
            filter_state=filter_state,
            pool_filters=pool_filters,
            coalesce_window=self.config.sync.coalesce_window_sec,
            request_timeout=self.config.api.request_timeout_sec,
        )
