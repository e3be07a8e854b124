from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


class ApiConfig(BaseModel):
    """Remote content API used by the curation screens."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    base_url: str = Field(default="http://localhost:3001", validation_alias="CURATOR_API_URL")
    token: str = Field(default="", validation_alias="CURATOR_API_TOKEN")
    request_timeout_sec: float = Field(default=30.0, validation_alias="REQUEST_TIMEOUT_SEC")
    read_max_retries: int = Field(default=2, validation_alias="CURATOR_READ_MAX_RETRIES")
    retry_base_delay_sec: float = Field(default=0.5, validation_alias="CURATOR_RETRY_BASE_DELAY_SEC")
    retry_max_delay_sec: float = Field(default=5.0, validation_alias="CURATOR_RETRY_MAX_DELAY_SEC")

    @field_validator("base_url", mode="before")
    @classmethod
    def _validate_base_url(cls, value: Any) -> str:
        url = str(value or "http://localhost:3001").strip()
        if not url.startswith(("http://", "https://")):
            msg = f"API URL must start with http:// or https://: {url}"
            raise ValueError(msg)
        return url.rstrip("/")

    @field_validator("token", mode="before")
    @classmethod
    def _validate_token(cls, value: Any) -> str:
        if value in (None, ""):
            return ""
        token = str(value).strip()
        if len(token) > 4096:
            msg = "API token appears to be too long"
            raise ValueError(msg)
        return token

    @field_validator("request_timeout_sec", mode="before")
    @classmethod
    def _validate_timeout(cls, value: Any) -> float:
        try:
            timeout = float(str(value if value not in (None, "") else 30))
        except ValueError as exc:
            msg = "Timeout must be a valid number"
            raise ValueError(msg) from exc
        if timeout <= 0:
            msg = "Timeout must be positive"
            raise ValueError(msg)
        if timeout > 600:
            msg = "Timeout too large (max 600 seconds)"
            raise ValueError(msg)
        return timeout

    @field_validator("read_max_retries", mode="before")
    @classmethod
    def _validate_retries(cls, value: Any) -> int:
        try:
            parsed = int(str(value if value not in (None, "") else 2))
        except ValueError as exc:
            msg = "Read max retries must be a valid integer"
            raise ValueError(msg) from exc
        if parsed < 0 or parsed > 10:
            msg = "Read max retries must be between 0 and 10"
            raise ValueError(msg)
        return parsed

    @field_validator("retry_base_delay_sec", "retry_max_delay_sec", mode="before")
    @classmethod
    def _validate_delay(cls, value: Any, info: ValidationInfo) -> float:
        default = cls.model_fields[info.field_name].default
        try:
            parsed = float(str(value if value not in (None, "") else default))
        except ValueError as exc:
            msg = f"{info.field_name.replace('_', ' ')} must be a valid number"
            raise ValueError(msg) from exc
        if parsed < 0:
            msg = f"{info.field_name.replace('_', ' ').capitalize()} cannot be negative"
            raise ValueError(msg)
        return parsed


class SyncConfig(BaseModel):
    """Membership synchronization behaviour."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    coalesce_window_ms: int = Field(default=50, validation_alias="CURATION_COALESCE_WINDOW_MS")
    active_only: bool = Field(default=True, validation_alias="CURATION_ACTIVE_ONLY")

    @field_validator("coalesce_window_ms", mode="before")
    @classmethod
    def _validate_window(cls, value: Any) -> int:
        try:
            parsed = int(str(value if value not in (None, "") else 50))
        except ValueError as exc:
            msg = "Coalesce window must be a valid integer (milliseconds)"
            raise ValueError(msg) from exc
        if parsed < 0 or parsed > 5000:
            msg = "Coalesce window must be between 0 and 5000 milliseconds"
            raise ValueError(msg)
        return parsed

    @property
    def coalesce_window_sec(self) -> float:
        return self.coalesce_window_ms / 1000
