"""Unit tests for structured JSON logging."""

from __future__ import annotations

from io import StringIO
import json
import logging

import pytest

import app.core.logging as logging_module
from app.core.context import CorrelationContext
from app.core.errors import bad_request
from app.core.errors import internal_error
from app.core.errors import not_found
from app.core.logging import JsonFormatter
from app.core.logging import StructuredLogger


def test_records_carry_service_metadata_and_key_values(log_capture) -> None:
    log_capture.logger.info("hello", "count", 3, "name", "widget")

    [record] = log_capture.records()
    assert record["level"] == "INFO"
    assert record["message"] == "hello"
    assert record["service"] == "postboard-test"
    assert record["version"] == "0.0.1"
    assert record["count"] == 3
    assert record["name"] == "widget"
    assert record["timestamp"].endswith("Z")


def test_odd_trailing_key_is_ignored(log_capture) -> None:
    log_capture.logger.warn("uneven", "a", 1, "dangling")

    [record] = log_capture.records()
    assert record["level"] == "WARNING"
    assert record["a"] == 1
    assert "dangling" not in record


def test_reserved_keys_do_not_overwrite_record_fields(log_capture) -> None:
    log_capture.logger.debug("real message", "message", "spoofed")

    [record] = log_capture.records()
    assert record["message"] == "real message"
    assert record["attr.message"] == "spoofed"


def test_with_context_derives_without_mutating_parent(log_capture) -> None:
    parent = log_capture.logger
    child = parent.with_context(CorrelationContext(request_id="req-9", user_id="user-3"))

    child.info("child line")
    parent.info("parent line")

    child_record, parent_record = log_capture.records()
    assert child_record["request_id"] == "req-9"
    assert child_record["user_id"] == "user-3"
    assert "trace_id" not in child_record
    assert "request_id" not in parent_record
    assert parent.fields == {}


def test_with_context_accepts_plain_mapping(log_capture) -> None:
    log_capture.logger.with_context({"trace_id": "trace-1", "request_id": 7}).info("mapped")

    [record] = log_capture.records()
    assert record["trace_id"] == "trace-1"
    assert "request_id" not in record


def test_error_with_app_error_emits_sub_record_and_source(log_capture) -> None:
    err = not_found("user").with_details("id 42").with_context("table", "users")

    log_capture.logger.error("lookup failed", err, "path", "/users/42")

    [record] = log_capture.records()
    assert record["level"] == "ERROR"
    assert record["path"] == "/users/42"
    assert record["error"]["code"] == "NOT_FOUND"
    assert record["error"]["message"] == "user not found"
    assert record["error"]["details"] == "id 42"
    assert record["error"]["context"] == {"table": "users"}
    assert "stack_trace" not in record["error"]
    assert "internal_error" not in record["error"]
    assert record["source"]["file"] == "test_logging.py"
    assert record["source"]["function"] == "test_error_with_app_error_emits_sub_record_and_source"


def test_error_with_internal_cause_captures_stack_trace(log_capture) -> None:
    try:
        raise ConnectionError("socket closed")
    except ConnectionError as exc:
        err = internal_error("upstream failed").with_internal(exc)

    log_capture.logger.error("request failed", err)

    [record] = log_capture.records()
    assert record["error"]["internal_error"] == "socket closed"
    assert "ConnectionError" in record["error"]["stack_trace"]


def test_client_error_with_cause_skips_stack_trace(log_capture) -> None:
    err = bad_request("Invalid user ID format").with_internal(ValueError("badly formed hexadecimal UUID string"))

    log_capture.logger.error("bad id", err)

    [record] = log_capture.records()
    assert record["error"]["internal_error"] == "badly formed hexadecimal UUID string"
    assert "stack_trace" not in record["error"]


def test_error_with_plain_exception_logs_text(log_capture) -> None:
    log_capture.logger.error("plain failure", RuntimeError("disk full"))

    [record] = log_capture.records()
    assert record["error"] == "disk full"


def test_fatal_logs_then_exits(log_capture) -> None:
    with pytest.raises(SystemExit) as exc_info:
        log_capture.logger.fatal("cannot start", RuntimeError("no database"))

    assert exc_info.value.code == 1
    [record] = log_capture.records()
    assert record["level"] == "CRITICAL"
    assert record["error"] == "no database"


@pytest.mark.parametrize(
    ("status_code", "level"),
    [(200, "INFO"), (204, "INFO"), (302, "WARNING"), (404, "ERROR"), (500, "ERROR")],
)
def test_http_request_level_follows_status(log_capture, status_code: int, level: str) -> None:
    ctx = CorrelationContext(request_id="req-1")

    log_capture.logger.log_http_request(ctx, "GET", "/api/v1/users", status_code, 0.0125)

    [record] = log_capture.records()
    assert record["level"] == level
    assert record["message"] == "HTTP GET /api/v1/users"
    assert record["status_code"] == status_code
    assert record["duration_ms"] == 12.5
    assert record["request_id"] == "req-1"


def test_database_operation_levels(log_capture) -> None:
    log_capture.logger.log_database_operation(None, "select", "users", 0.002)
    log_capture.logger.log_database_operation(None, "insert", "posts", 0.003, RuntimeError("locked"))

    ok, failed = log_capture.records()
    assert ok["level"] == "INFO"
    assert ok["message"] == "Database select on users"
    assert ok["component"] == "database"
    assert failed["level"] == "ERROR"
    assert failed["message"] == "Database insert on posts"
    assert failed["error"] == "locked"


def test_unencodable_record_falls_back_to_minimal_line() -> None:
    class Loop:
        def __str__(self) -> str:
            raise ValueError("cannot render")

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(JsonFormatter())
    target = logging.getLogger("postboard.test.fallback")
    target.handlers = [handler]
    target.propagate = False
    target.setLevel(logging.DEBUG)

    StructuredLogger("svc", "1", logger=target).info("weird value", "value", Loop())

    record = json.loads(stream.getvalue())
    assert record["message"] == "weird value"
    assert record["encoding_error"] is True


def test_emission_failures_never_raise(capsys) -> None:
    class BrokenLogger(logging.Logger):
        def log(self, *args, **kwargs) -> None:
            raise OSError("sink gone")

    StructuredLogger("svc", "1", logger=BrokenLogger("broken")).info("still fine")

    assert "INFO still fine" in capsys.readouterr().err


def test_global_logger_lifecycle() -> None:
    stream = StringIO()
    previous = logging_module.set_logger(None)
    try:
        lazily_created = logging_module.get_logger()
        assert lazily_created.service_name == "postboard-api"

        configured = logging_module.initialize("svc-x", "9.9.9", stream=stream)
        assert logging_module.get_logger() is configured

        configured.info("through global")
        record = json.loads(stream.getvalue().splitlines()[-1])
        assert record["service"] == "svc-x"
        assert record["version"] == "9.9.9"
    finally:
        logging_module.set_logger(previous)
