from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, ValidationError, model_validator
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, SettingsConfigDict

from .api import ApiConfig, SyncConfig
from .runtime import RuntimeConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppConfig:
    api: ApiConfig
    sync: SyncConfig
    runtime: RuntimeConfig


def _env_names(field: FieldInfo) -> list[str]:
    """Flat environment names a nested config field can be read from."""
    alias = field.validation_alias
    if isinstance(alias, AliasChoices):
        names = [choice for choice in alias.choices if isinstance(choice, str)]
    else:
        names = [alias] if isinstance(alias, str) else []
    if field.alias:
        names.append(field.alias)
    return names


def _section_from_env(model: type[BaseModel], source: Mapping[str, Any]) -> dict[str, Any]:
    section: dict[str, Any] = {}
    for name, field in model.model_fields.items():
        for env_name in _env_names(field):
            if env_name in source:
                section[name] = source[env_name]
                break
    return section


class Settings(BaseSettings):
    """Curator settings read from flat environment variables and ``.env``.

    Each section model declares its variable names through
    ``validation_alias``; keyword arguments win over the environment.
    """

    model_config = SettingsConfigDict(
        extra="ignore",
        populate_by_name=True,
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    api: ApiConfig = Field(default_factory=ApiConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)

    @model_validator(mode="before")
    @classmethod
    def _sections_from_env(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data

        source = {**os.environ, **data}
        merged = dict(data)
        for section_name, field in cls.model_fields.items():
            model = field.annotation
            if not (isinstance(model, type) and issubclass(model, BaseModel)):
                continue
            section = _section_from_env(model, source)
            if not section:
                continue
            explicit = merged.get(section_name)
            merged[section_name] = {**section, **explicit} if isinstance(explicit, dict) else section
        return merged

    def as_app_config(self) -> AppConfig:
        return AppConfig(api=self.api, sync=self.sync, runtime=self.runtime)


def load_config(**overrides: Any) -> AppConfig:
    """Load an immutable ``AppConfig`` from the environment.

    Args:
        **overrides: Flat variables such as ``CURATOR_API_URL`` that take
            precedence over the environment (tests, embedding applications).

    Raises:
        RuntimeError: With every validation problem joined into one message.
    """
    try:
        settings = Settings(**overrides)
    except ValidationError as exc:
        problems = [
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
        ]
        logger.error("config_validation_failed", extra={"errors": problems})
        msg = "Invalid curator configuration: " + "; ".join(problems)
        raise RuntimeError(msg) from exc
    return settings.as_app_config()
