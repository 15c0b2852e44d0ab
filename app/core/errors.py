"""Structured application errors and their HTTP status mapping."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime
from datetime import timezone
from enum import Enum
from typing import Any

from fastapi import status


class ErrorCode(str, Enum):
    """Stable, machine-comparable error categories."""

    # Client errors (4xx)
    NOT_FOUND = "NOT_FOUND"
    BAD_REQUEST = "BAD_REQUEST"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    CONFLICT = "CONFLICT"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # Server errors (5xx)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    DATABASE_ERROR = "DATABASE_ERROR"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"


_STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.BAD_REQUEST: status.HTTP_400_BAD_REQUEST,
    ErrorCode.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorCode.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorCode.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.RATE_LIMIT_EXCEEDED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorCode.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.SERVICE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.DATABASE_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.EXTERNAL_SERVICE_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

_CODE_BY_STATUS: dict[int, ErrorCode] = {
    status.HTTP_400_BAD_REQUEST: ErrorCode.BAD_REQUEST,
    status.HTTP_401_UNAUTHORIZED: ErrorCode.UNAUTHORIZED,
    status.HTTP_403_FORBIDDEN: ErrorCode.FORBIDDEN,
    status.HTTP_404_NOT_FOUND: ErrorCode.NOT_FOUND,
    status.HTTP_409_CONFLICT: ErrorCode.CONFLICT,
    status.HTTP_429_TOO_MANY_REQUESTS: ErrorCode.RATE_LIMIT_EXCEEDED,
    status.HTTP_500_INTERNAL_SERVER_ERROR: ErrorCode.INTERNAL_ERROR,
    status.HTTP_503_SERVICE_UNAVAILABLE: ErrorCode.SERVICE_UNAVAILABLE,
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def rfc3339(moment: datetime) -> str:
    """Format an aware datetime as RFC3339 with a ``Z`` suffix for UTC."""
    text = moment.astimezone(timezone.utc).isoformat()
    return text.replace("+00:00", "Z")


def _coerce_code(code: ErrorCode | str) -> ErrorCode | str:
    if isinstance(code, ErrorCode):
        return code
    try:
        return ErrorCode(code)
    except ValueError:
        return code


def status_for_code(code: ErrorCode | str) -> int:
    """Map an error code to its default HTTP status; unknown codes map to 500."""
    coerced = _coerce_code(code)
    if isinstance(coerced, ErrorCode):
        return _STATUS_BY_CODE.get(coerced, status.HTTP_500_INTERNAL_SERVER_ERROR)
    return status.HTTP_500_INTERNAL_SERVER_ERROR


class AppError(Exception):
    """Application error carrying a code, HTTP status and diagnostic context.

    ``code``, ``message`` and ``http_status`` are read-only. The remaining
    fields are filled in through the chainable ``with_*`` methods, which
    mutate the instance and return it. ``internal`` is only ever logged; it
    is never part of the client payload.
    """

    def __init__(self, code: ErrorCode | str, message: str) -> None:
        super().__init__(message)
        self._code = _coerce_code(code)
        self._message = message
        self._http_status = status_for_code(self._code)
        self._status_overridden = False
        self.details = ""
        self.internal: BaseException | None = None
        self.context: dict[str, Any] = {}
        self.timestamp = utc_now()
        self.request_id = ""
        self.user_id = ""

    @property
    def code(self) -> ErrorCode | str:
        return self._code

    @property
    def code_value(self) -> str:
        """Code as plain text, for payloads and log records."""
        if isinstance(self._code, ErrorCode):
            return self._code.value
        return str(self._code)

    @property
    def message(self) -> str:
        return self._message

    @property
    def http_status(self) -> int:
        return self._http_status

    def __str__(self) -> str:
        if self.details:
            return f"{self.code_value}: {self._message} - {self.details}"
        return f"{self.code_value}: {self._message}"

    def __repr__(self) -> str:
        return f"AppError(code={self.code_value!r}, message={self._message!r}, http_status={self._http_status})"

    def error(self) -> str:
        return str(self)

    def unwrap(self) -> BaseException | None:
        return self.internal

    def with_details(self, details: str) -> AppError:
        self.details = details
        return self

    def with_internal(self, err: BaseException | None) -> AppError:
        self.internal = err
        self.__cause__ = err
        return self

    def with_context(self, key: str, value: Any) -> AppError:
        # The wrapped cause stays out of the client-visible context.
        if value is not None and value is self.internal:
            return self
        if isinstance(value, BaseException):
            value = str(value)
        self.context[key] = value
        return self

    def with_request_id(self, request_id: str) -> AppError:
        self.request_id = request_id
        return self

    def with_user_id(self, user_id: str) -> AppError:
        self.user_id = user_id
        return self

    def with_http_status(self, http_status: int) -> AppError:
        """Override the default status. Only the first override takes effect."""
        if not self._status_overridden:
            self._http_status = http_status
            self._status_overridden = True
        return self

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "code": self.code_value,
            "message": self._message,
            "timestamp": rfc3339(self.timestamp),
        }
        if self.details:
            payload["details"] = self.details
        if self.context:
            payload["context"] = dict(self.context)
        if self.request_id:
            payload["request_id"] = self.request_id
        if self.user_id:
            payload["user_id"] = self.user_id
        return payload


def not_found(resource: str) -> AppError:
    """Return a NOT_FOUND error for the named resource."""
    return AppError(ErrorCode.NOT_FOUND, f"{resource} not found")


def bad_request(message: str) -> AppError:
    """Return a BAD_REQUEST error with the given message."""
    return AppError(ErrorCode.BAD_REQUEST, message)


def validation_error(field: str, message: str) -> AppError:
    """Return a VALIDATION_ERROR naming the offending field."""
    return (
        AppError(ErrorCode.VALIDATION_ERROR, f"Validation failed for field '{field}'")
        .with_details(message)
        .with_context("field", field)
    )


def unauthorized(message: str = "") -> AppError:
    """Return an UNAUTHORIZED error, defaulting to "Authentication required"."""
    return AppError(ErrorCode.UNAUTHORIZED, message or "Authentication required")


def forbidden(message: str = "") -> AppError:
    """Return a FORBIDDEN error, defaulting to "Access denied"."""
    return AppError(ErrorCode.FORBIDDEN, message or "Access denied")


def conflict(resource: str, details: str = "") -> AppError:
    """Return a CONFLICT error for a resource that already exists."""
    return AppError(ErrorCode.CONFLICT, f"{resource} already exists").with_details(details)


def internal_error(message: str) -> AppError:
    """Return an INTERNAL_ERROR with the given message."""
    return AppError(ErrorCode.INTERNAL_ERROR, message)


def database_error(operation: str, err: BaseException | None) -> AppError:
    """Return a DATABASE_ERROR wrapping the failed operation's cause."""
    return AppError(
        ErrorCode.DATABASE_ERROR,
        f"Database operation failed: {operation}",
    ).with_internal(err)


def external_service_error(service: str, err: BaseException | None) -> AppError:
    """Return an EXTERNAL_SERVICE_ERROR wrapping the upstream failure."""
    return AppError(
        ErrorCode.EXTERNAL_SERVICE_ERROR,
        f"External service '{service}' error",
    ).with_internal(err)


def http_error(http_status: int, message: str) -> AppError:
    """Build an error for an explicit HTTP status, picking the closest code."""
    fallback = ErrorCode.BAD_REQUEST if http_status < 500 else ErrorCode.INTERNAL_ERROR
    code = _CODE_BY_STATUS.get(http_status, fallback)
    return AppError(code, message).with_http_status(http_status)


def _cause_chain(err: BaseException | None) -> Iterator[BaseException]:
    # Explicit wrapping only: implicit ``__context__`` links are not followed.
    seen: set[int] = set()
    current = err
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        if isinstance(current, AppError):
            current = current.unwrap()
        else:
            current = current.__cause__


def is_app_error(err: BaseException | None) -> bool:
    """Return whether ``err`` or anything it wraps is an ``AppError``."""
    return any(isinstance(item, AppError) for item in _cause_chain(err))


def as_app_error(err: BaseException | None) -> AppError | None:
    """Normalize any exception to an ``AppError``.

    ``None`` stays ``None``. An ``AppError`` found in the cause chain is
    returned as-is, a ``ValidationErrors`` collection is collapsed into one
    validation error, and anything else is wrapped as an internal error.
    """
    if err is None:
        return None
    for item in _cause_chain(err):
        if isinstance(item, AppError):
            return item
        if isinstance(item, ValidationErrors):
            return item.to_app_error() or bad_request("Validation failed")
    return internal_error("An unexpected error occurred").with_internal(err)


def has_cause(err: BaseException | None, exc_type: type[BaseException] | tuple[type[BaseException], ...]) -> bool:
    """Return whether any error in the cause chain is an instance of ``exc_type``."""
    return any(isinstance(item, exc_type) for item in _cause_chain(err))


class ValidationErrors(Exception):
    """Ordered collection of field-level validation errors."""

    def __init__(self) -> None:
        super().__init__("validation failed")
        self.errors: list[AppError] = []

    def __str__(self) -> str:
        if not self.errors:
            return "validation failed"
        return f"validation failed: {len(self.errors)} errors"

    def __len__(self) -> int:
        return len(self.errors)

    def __iter__(self) -> Iterator[AppError]:
        return iter(self.errors)

    def error(self) -> str:
        return str(self)

    def add(self, field: str, message: str) -> None:
        self.errors.append(validation_error(field, message))

    def has_errors(self) -> bool:
        return bool(self.errors)

    def to_app_error(self) -> AppError | None:
        if not self.has_errors():
            return None
        return AppError(ErrorCode.VALIDATION_ERROR, "Multiple validation errors").with_context(
            "validation_errors",
            list(self.errors),
        )
