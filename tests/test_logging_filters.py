"""Tests for log redaction and JSON formatting."""

from __future__ import annotations

import json
import logging
from io import StringIO

import pytest

from admission.core.config import LogSettings
from admission.core.logging import (
    JsonFormatter,
    RequestIdFilter,
    SensitiveDataFilter,
    clear_request_id,
    configure_logging,
    hash_client_key,
    set_request_id,
)


@pytest.fixture
def capture() -> tuple[logging.Logger, StringIO]:
    logger = logging.getLogger("test_admission_logging")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    return logger, stream


def test_client_identifiers_are_redacted(capture) -> None:
    logger, stream = capture

    logger.info(
        "rate_limit.exceeded",
        extra={
            "client_key": "203.0.113.7",
            "headers": {"X-Forwarded-For": "198.51.100.1", "user-agent": "pytest"},
            "key_hash": hash_client_key("203.0.113.7"),
        },
    )

    output = stream.getvalue()
    assert "203.0.113.7" not in output
    assert "198.51.100.1" not in output
    assert "[REDACTED]" in output
    assert "pytest" in output
    assert hash_client_key("203.0.113.7") in output


def test_safe_fields_pass_through(capture) -> None:
    logger, stream = capture

    logger.info("rate_limit.allowed", extra={"limit": 10, "remaining": 4, "reset_s": 37})

    payload = json.loads(stream.getvalue())
    assert payload["message"] == "rate_limit.allowed"
    assert payload["level"] == "info"
    assert (payload["limit"], payload["remaining"], payload["reset_s"]) == (10, 4, 37)
    assert "[REDACTED]" not in stream.getvalue()


def test_request_id_from_context(capture) -> None:
    logger, stream = capture

    set_request_id("req-42")
    try:
        logger.warning("rate_limit.indeterminate")
    finally:
        clear_request_id()

    assert json.loads(stream.getvalue())["request_id"] == "req-42"


def test_hash_client_key_is_stable_and_short() -> None:
    assert hash_client_key("a") == hash_client_key("a")
    assert hash_client_key("a") != hash_client_key("b")
    assert len(hash_client_key("a")) == 16


def test_configure_logging_file_output(tmp_path) -> None:
    log_file = tmp_path / "logs" / "admission.log"
    root = logging.getLogger()
    previous_handlers, previous_level = list(root.handlers), root.level

    try:
        configure_logging(LogSettings(output="file", file_path=str(log_file), level="INFO"))
        logging.getLogger("admission.test").info("rate_limit.window_created", extra={"limit": 3})
        for handler in root.handlers:
            handler.flush()
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = previous_handlers
        root.setLevel(previous_level)

    payload = json.loads(log_file.read_text().splitlines()[-1])
    assert payload["message"] == "rate_limit.window_created"
    assert payload["limit"] == 3
