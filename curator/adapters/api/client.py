"""Async HTTP client for the content API."""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

import httpx

from curator.domain.exceptions.domain_exceptions import ServiceError
from curator.utils.retry_utils import TRANSIENT_STATUS_CODES

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from typing import Self

    from curator.config.api import ApiConfig

logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT")

DEFAULT_MAX_RETRIES = 2
DEFAULT_BASE_DELAY = 0.5  # seconds
DEFAULT_MAX_DELAY = 5.0  # seconds


class ApiClientError(ServiceError):
    """Base exception for content API client errors."""


class ApiNotFoundError(ApiClientError):
    """The requested resource does not exist (HTTP 404)."""


@dataclass(frozen=True)
class ReadRetryPolicy:
    """Exponential backoff for idempotent reads.

    Only connection failures, timeouts and transient HTTP statuses are
    retried. Writes never go through this policy.
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay: float = DEFAULT_BASE_DELAY
    max_delay: float = DEFAULT_MAX_DELAY
    jitter: float = 0.1

    def should_retry(self, exc: Exception, attempt: int) -> bool:
        if attempt >= self.max_retries:
            return False
        if isinstance(exc, httpx.HTTPStatusError):
            return exc.response.status_code in TRANSIENT_STATUS_CODES
        return isinstance(exc, (httpx.ConnectError, httpx.TimeoutException))

    def delay_for(self, attempt: int) -> float:
        capped = min(self.base_delay * 2**attempt, self.max_delay)
        return capped * (1 + self.jitter * random.random())

    async def run(self, fetch: Callable[[], Awaitable[ResultT]], operation: str) -> ResultT:
        attempt = 0
        while True:
            try:
                return await fetch()
            except Exception as exc:
                if not self.should_retry(exc, attempt):
                    if attempt:
                        logger.error(
                            "api_read_retries_exhausted",
                            extra={"operation": operation, "attempts": attempt + 1, "error": str(exc)},
                        )
                    raise
                delay = self.delay_for(attempt)
                attempt += 1
                logger.warning(
                    "api_read_retrying",
                    extra={
                        "operation": operation,
                        "attempt": attempt,
                        "max_retries": self.max_retries,
                        "delay_seconds": round(delay, 2),
                        "error": str(exc),
                    },
                )
                await asyncio.sleep(delay)


def _translate(exc: Exception, operation_name: str) -> ApiClientError:
    """Map an httpx failure onto the client's exception types."""
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        detail = _response_detail(exc.response)
        message = f"{operation_name} failed with HTTP {status}" + (f": {detail}" if detail else "")
        error_cls = ApiNotFoundError if status == 404 else ApiClientError
        return error_cls(
            message,
            status_code=status,
            retryable=status in TRANSIENT_STATUS_CODES,
            details={"operation": operation_name},
        )
    if isinstance(exc, httpx.TimeoutException):
        return ApiClientError(
            f"{operation_name} timed out",
            retryable=True,
            details={"operation": operation_name},
        )
    if isinstance(exc, httpx.TransportError):
        return ApiClientError(
            f"{operation_name} failed: network error ({exc.__class__.__name__})",
            retryable=True,
            details={"operation": operation_name},
        )
    return ApiClientError(f"{operation_name} failed: {exc}", details={"operation": operation_name})


def _response_detail(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or None
    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        if isinstance(message, list):
            message = "; ".join(str(part) for part in message)
        return str(message) if message else None
    return None


class ApiClient:
    """Async HTTP client for the content API.

    Reads (GET) are retried on transient failures; writes are sent exactly
    once and their failures are reported to the caller.
    """

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = 30.0,
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_base_delay: float = DEFAULT_BASE_DELAY,
        retry_max_delay: float = DEFAULT_MAX_DELAY,
        endpoint_timeouts: dict[str, float] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Base URL of the content API
            token: Bearer token sent with every request (optional)
            timeout: Default request timeout in seconds
            max_retries: Retry attempts for transient read failures
            retry_base_delay: Base delay between retries in seconds
            retry_max_delay: Maximum delay between retries in seconds
            endpoint_timeouts: Per-operation timeout overrides
            transport: Optional httpx transport (tests use ``httpx.MockTransport``)
        """
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.read_retry = ReadRetryPolicy(max_retries, retry_base_delay, retry_max_delay)
        self.endpoint_timeouts = dict(endpoint_timeouts or {})
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_config(cls, config: ApiConfig, **kwargs: Any) -> ApiClient:
        return cls(
            config.base_url,
            config.token,
            config.request_timeout_sec,
            max_retries=config.read_max_retries,
            retry_base_delay=config.retry_base_delay_sec,
            retry_max_delay=config.retry_max_delay_sec,
            **kwargs,
        )

    def get_timeout(self, operation: str) -> float:
        return self.endpoint_timeouts.get(operation, self.timeout)

    async def __aenter__(self) -> Self:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            msg = "Client not initialized. Use async context manager."
            raise ApiClientError(msg)
        return self._client

    async def get_json(
        self,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        operation: str = "get",
    ) -> Any:
        """GET ``path`` and decode the JSON body, retrying transient failures."""
        timeout = self.get_timeout(operation)

        async def _fetch() -> Any:
            response = await self.client.get(path, params=params, timeout=timeout)
            response.raise_for_status()
            return response.json()

        try:
            return await self.read_retry.run(_fetch, operation)
        except (httpx.HTTPError, ValueError) as exc:
            raise _translate(exc, operation) from exc

    async def patch_json(self, path: str, payload: dict[str, Any], *, operation: str = "patch") -> Any:
        """PATCH ``path`` once; never retried."""
        return await self._write("PATCH", path, payload, operation)

    async def post_json(self, path: str, payload: dict[str, Any], *, operation: str = "post") -> Any:
        """POST ``path`` once; never retried. Empty bodies decode to None."""
        return await self._write("POST", path, payload, operation)

    async def _write(self, method: str, path: str, payload: dict[str, Any], operation: str) -> Any:
        timeout = self.get_timeout(operation)
        try:
            response = await self.client.request(method, path, json=payload, timeout=timeout)
            response.raise_for_status()
            return response.json() if response.content else None
        except (httpx.HTTPError, ValueError) as exc:
            raise _translate(exc, operation) from exc
