from __future__ import annotations

from .api import ApiConfig, SyncConfig
from .runtime import RuntimeConfig
from .settings import AppConfig, Settings, load_config

__all__ = [
    "ApiConfig",
    "AppConfig",
    "RuntimeConfig",
    "Settings",
    "SyncConfig",
    "load_config",
]
