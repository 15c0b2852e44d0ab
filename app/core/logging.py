"""Structured JSON logging on top of the standard library ``logging`` module.

One ``StructuredLogger`` is shared by the whole process. ``with_context``
derives child loggers that stamp request/user/trace ids on every record
without touching the parent. Emission never raises: a record that cannot be
encoded falls back to a minimal line.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from datetime import timezone
from typing import Any
from typing import IO
import json
import logging
import os
import sys
import threading
import traceback
import uuid

from app.core.config import DEFAULT_SERVICE_NAME
from app.core.config import DEFAULT_VERSION
from app.core.context import CorrelationContext
from app.core.context import coerce_context
from app.core.errors import AppError
from app.core.errors import as_app_error
from app.core.errors import is_app_error
from app.core.errors import rfc3339

LOGGER_NAME = "postboard"

_RESERVED_KEYS = frozenset({"level", "timestamp", "message", "source"})

# Frames between a caller of ``error``/``fatal`` and ``logging.Logger.log``.
_ERROR_STACKLEVEL = 4


def _json_default(value: Any) -> Any:
    if isinstance(value, AppError):
        return value.to_dict()
    if isinstance(value, datetime):
        return rfc3339(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, BaseException):
        return str(value)
    return str(value)


class JsonFormatter(logging.Formatter):
    """Render records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = rfc3339(datetime.fromtimestamp(record.created, tz=timezone.utc))
        payload: dict[str, Any] = {
            "level": record.levelname,
            "timestamp": timestamp,
            "message": record.getMessage(),
        }
        fields = getattr(record, "fields", None)
        if isinstance(fields, Mapping):
            for key, value in fields.items():
                payload.setdefault(str(key), value)
        if getattr(record, "include_source", False):
            payload["source"] = {
                "file": os.path.basename(record.pathname),
                "line": record.lineno,
                "function": record.funcName,
            }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        try:
            return json.dumps(payload, default=_json_default)
        except (TypeError, ValueError):
            return json.dumps(
                {
                    "level": record.levelname,
                    "timestamp": timestamp,
                    "message": str(record.msg),
                    "encoding_error": True,
                }
            )


def _pairs(key_values: tuple[Any, ...]) -> dict[str, Any]:
    """Turn ``k1, v1, k2, v2`` into a dict; a trailing odd key is dropped."""
    attrs: dict[str, Any] = {}
    for index in range(0, len(key_values) - 1, 2):
        attrs[str(key_values[index])] = key_values[index + 1]
    return attrs


def _stack_trace(err: BaseException) -> str:
    if err.__traceback__ is not None:
        return "".join(traceback.format_exception(type(err), err, err.__traceback__))
    return "".join(traceback.format_stack())


def build_error_entry(app_err: AppError) -> dict[str, Any]:
    """Error sub-record for log output.

    The internal cause text is included whenever there is one; the stack
    trace only for server-side (5xx) errors that wrap a cause.
    """
    entry: dict[str, Any] = {
        "code": app_err.code_value,
        "message": app_err.message,
    }
    if app_err.details:
        entry["details"] = app_err.details
    if app_err.context:
        entry["context"] = dict(app_err.context)
    if app_err.internal is not None:
        entry["internal_error"] = str(app_err.internal)
        if app_err.http_status >= 500:
            entry["stack_trace"] = _stack_trace(app_err.internal)
    return entry


def _error_field(err: BaseException) -> Any:
    try:
        if is_app_error(err):
            return build_error_entry(as_app_error(err))
        return str(err)
    except Exception:  # noqa: BLE001
        return repr(err)


class StructuredLogger:
    """Leveled logger emitting structured records with service metadata."""

    def __init__(
        self,
        service_name: str = DEFAULT_SERVICE_NAME,
        version: str = DEFAULT_VERSION,
        *,
        logger: logging.Logger | None = None,
        fields: Mapping[str, Any] | None = None,
    ) -> None:
        self.service_name = service_name
        self.version = version
        self._logger = logger or logging.getLogger(LOGGER_NAME)
        self._fields = dict(fields or {})

    @property
    def fields(self) -> dict[str, Any]:
        return dict(self._fields)

    def with_context(self, ctx: CorrelationContext | Mapping[str, Any] | None) -> StructuredLogger:
        """Return a child logger that adds the context's ids to every record."""
        fields = dict(self._fields)
        fields.update(coerce_context(ctx).as_fields())
        return StructuredLogger(self.service_name, self.version, logger=self._logger, fields=fields)

    def debug(self, msg: str, *key_values: Any) -> None:
        self._emit(logging.DEBUG, msg, _pairs(key_values))

    def info(self, msg: str, *key_values: Any) -> None:
        self._emit(logging.INFO, msg, _pairs(key_values))

    def warn(self, msg: str, *key_values: Any) -> None:
        self._emit(logging.WARNING, msg, _pairs(key_values))

    warning = warn

    def error(self, msg: str, err: BaseException | None = None, *key_values: Any) -> None:
        self._emit_error(logging.ERROR, msg, err, key_values)

    def fatal(self, msg: str, err: BaseException | None = None, *key_values: Any) -> None:
        """Log at critical level, then terminate the process."""
        self._emit_error(logging.CRITICAL, msg, err, key_values)
        sys.exit(1)

    def log_http_request(
        self,
        ctx: CorrelationContext | Mapping[str, Any] | None,
        method: str,
        path: str,
        status_code: int,
        duration: float,
        err: BaseException | None = None,
    ) -> None:
        """Log one served request; ``duration`` is in seconds."""
        if status_code >= 400:
            level = logging.ERROR
        elif status_code >= 300:
            level = logging.WARNING
        else:
            level = logging.INFO

        attrs: dict[str, Any] = {
            "method": method,
            "path": path,
            "status_code": status_code,
            "duration_ms": round(duration * 1000, 3),
        }
        if err is not None:
            attrs["error"] = _error_field(err)
        self.with_context(ctx)._emit(level, f"HTTP {method} {path}", attrs)

    def log_database_operation(
        self,
        ctx: CorrelationContext | Mapping[str, Any] | None,
        operation: str,
        table: str,
        duration: float,
        err: BaseException | None = None,
    ) -> None:
        """Log a database operation; failures are logged at error level."""
        attrs: dict[str, Any] = {
            "operation": operation,
            "table": table,
            "duration_ms": round(duration * 1000, 3),
            "component": "database",
        }
        level = logging.INFO
        if err is not None:
            level = logging.ERROR
            attrs["error"] = _error_field(err)
        self.with_context(ctx)._emit(level, f"Database {operation} on {table}", attrs)

    def _emit_error(
        self,
        level: int,
        msg: str,
        err: BaseException | None,
        key_values: tuple[Any, ...],
    ) -> None:
        attrs = _pairs(key_values)
        if err is not None:
            attrs["error"] = _error_field(err)
        self._emit(level, msg, attrs, include_source=True, stacklevel=_ERROR_STACKLEVEL)

    def _emit(
        self,
        level: int,
        msg: str,
        attrs: Mapping[str, Any],
        *,
        include_source: bool = False,
        stacklevel: int = 3,
    ) -> None:
        fields: dict[str, Any] = {"service": self.service_name}
        if self.version:
            fields["version"] = self.version
        fields.update(self._fields)
        for key, value in attrs.items():
            fields[f"attr.{key}" if key in _RESERVED_KEYS else key] = value
        try:
            self._logger.log(
                level,
                msg,
                extra={"fields": fields, "include_source": include_source},
                stacklevel=stacklevel,
            )
        except Exception:  # noqa: BLE001
            _fallback(level, msg)


def _fallback(level: int, msg: str) -> None:
    try:
        sys.stderr.write(f"{logging.getLevelName(level)} {msg}\n")
    except Exception:  # noqa: BLE001
        pass


_global_logger: StructuredLogger | None = None
_global_lock = threading.Lock()


def configure_handler(
    level: str | int = logging.DEBUG,
    stream: IO[str] | None = None,
    *,
    logger_name: str = LOGGER_NAME,
) -> logging.Logger:
    """Install a JSON stream handler on the named logger, replacing earlier ones."""
    target = logging.getLogger(logger_name)
    target.setLevel(level)
    target.propagate = False
    for handler in list(target.handlers):
        if isinstance(handler.formatter, JsonFormatter):
            target.removeHandler(handler)
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JsonFormatter())
    target.addHandler(handler)
    return target


def initialize(
    service_name: str = DEFAULT_SERVICE_NAME,
    version: str = DEFAULT_VERSION,
    *,
    level: str | int = logging.DEBUG,
    stream: IO[str] | None = None,
) -> StructuredLogger:
    """Configure output and set the process-wide logger."""
    global _global_logger
    with _global_lock:
        target = configure_handler(level, stream)
        _global_logger = StructuredLogger(service_name, version, logger=target)
        return _global_logger


def get_logger() -> StructuredLogger:
    """Return the process-wide logger, initializing it with defaults on first use."""
    if _global_logger is None:
        with _global_lock:
            if _global_logger is None:
                _set_default()
    return _global_logger  # type: ignore[return-value]


def _set_default() -> None:
    global _global_logger
    target = configure_handler()
    _global_logger = StructuredLogger(logger=target)


def set_logger(logger: StructuredLogger | None) -> StructuredLogger | None:
    """Replace the process-wide logger and return the previous one."""
    global _global_logger
    with _global_lock:
        previous = _global_logger
        _global_logger = logger
        return previous
