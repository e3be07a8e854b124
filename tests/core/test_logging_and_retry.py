"""Tests for JSON logging helpers and transient error classification."""

from __future__ import annotations

import json
import logging
import sys

import httpx
import pytest

from curator.core.logging_utils import (
    EnhancedJsonFormatter,
    format_ids_for_log,
    generate_correlation_id,
    setup_json_logging,
)
from curator.domain.exceptions.domain_exceptions import PersistenceError, ServiceError
from curator.utils.retry_utils import is_transient_error


class TestEnhancedJsonFormatter:
    def test_extra_fields_are_structured(self):
        record = logging.makeLogRecord(
            {
                "name": "curator.application.mutator",
                "levelname": "INFO",
                "levelno": logging.INFO,
                "msg": "membership_dispatch_started",
                "correlation_id": "abc123",
                "container_id": "section-1",
                "member_count": 3,
            }
        )

        payload = json.loads(EnhancedJsonFormatter(include_location=False).format(record))

        assert payload["message"] == "membership_dispatch_started"
        assert payload["level"] == "INFO"
        assert payload["correlation_id"] == "abc123"
        assert payload["container_id"] == "section-1"
        assert payload["extra"] == {"member_count": 3}
        assert "module" not in payload

    def test_non_serializable_values(self):
        record = logging.makeLogRecord({"msg": "x", "ids": frozenset({"a"})})

        payload = json.loads(EnhancedJsonFormatter().format(record))

        assert payload["extra"]["ids"] == "['a']"

    def test_exception_info(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = logging.makeLogRecord({"msg": "failed", "exc_info": sys.exc_info()})

        payload = json.loads(EnhancedJsonFormatter().format(record))

        assert payload["exception"]["type"] == "ValueError"
        assert payload["exception"]["message"] == "boom"


def test_format_ids_for_log_truncates():
    assert format_ids_for_log(["a", "b"]) == "a,b"
    assert format_ids_for_log([str(i) for i in range(5)], limit=2) == "0,1,... (+3)"


def test_correlation_ids_are_short_and_unique():
    first, second = generate_correlation_id(), generate_correlation_id()
    assert len(first) == 12
    assert first != second


class TestIsTransientError:
    @pytest.mark.parametrize(
        "error",
        [
            TimeoutError(),
            httpx.ConnectError("refused"),
            httpx.ReadTimeout("slow"),
            ServiceError("Unavailable", status_code=503),
            ServiceError("Too many", status_code=429),
            PersistenceError("whatever", retryable=True),
            RuntimeError("connection reset by peer"),
        ],
    )
    def test_transient(self, error):
        assert is_transient_error(error) is True

    @pytest.mark.parametrize(
        "error",
        [
            ServiceError("Bad request", status_code=400),
            ServiceError("Conflict", status_code=409),
            PersistenceError("invalid member list"),
            ValueError("bad value"),
        ],
    )
    def test_permanent(self, error):
        assert is_transient_error(error) is False

    def test_http_status_error(self):
        request = httpx.Request("GET", "http://api.test/songs")
        response = httpx.Response(502, request=request)
        error = httpx.HTTPStatusError("bad gateway", request=request, response=response)
        assert is_transient_error(error) is True


class TestSetupJsonLogging:
    @pytest.fixture(autouse=True)
    def _restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_stdlib_backend(self):
        setup_json_logging("debug", include_location=False)

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, EnhancedJsonFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_loguru_backend(self):
        from loguru import logger as loguru_logger

        messages = []
        setup_json_logging("INFO", use_loguru=True)
        sink_id = loguru_logger.add(messages.append, level="INFO", serialize=True)
        try:
            logging.getLogger("curator.test").info("membership_edit_applied", extra={"queued": 2})
        finally:
            loguru_logger.remove(sink_id)

        record = json.loads(messages[-1])["record"]
        assert record["message"] == "membership_edit_applied"
        assert record["extra"]["queued"] == 2
        assert record["extra"]["logger_name"] == "curator.test"
