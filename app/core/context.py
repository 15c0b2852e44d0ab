"""Request-scoped correlation identifiers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from typing import Mapping
import uuid

from starlette.requests import Request

REQUEST_ID_KEY = "request_id"
USER_ID_KEY = "user_id"
TRACE_ID_KEY = "trace_id"

REQUEST_ID_HEADER = "X-Request-ID"
TRACE_ID_HEADER = "X-Trace-ID"

_KEYS = (REQUEST_ID_KEY, USER_ID_KEY, TRACE_ID_KEY)


def new_request_id() -> str:
    """Generate a fresh UUID4 request id."""
    return str(uuid.uuid4())


@dataclass
class CorrelationContext:
    """Identifiers threaded through one request's logs and error payloads."""

    request_id: str = ""
    user_id: str = ""
    trace_id: str = ""

    def get(self, key: str) -> str:
        """Return the identifier stored under ``key``, or an empty string."""
        if key not in _KEYS:
            return ""
        return getattr(self, key) or ""

    def set(self, key: str, value: str) -> None:
        """Store an identifier; unknown keys raise ``KeyError``."""
        if key not in _KEYS:
            raise KeyError(key)
        setattr(self, key, value or "")

    def as_fields(self) -> dict[str, str]:
        """Non-empty identifiers keyed by their log field names."""
        return {key: getattr(self, key) for key in _KEYS if getattr(self, key)}

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> CorrelationContext:
        def _text(key: str) -> str:
            value = values.get(key)
            return value if isinstance(value, str) else ""

        return cls(
            request_id=_text(REQUEST_ID_KEY),
            user_id=_text(USER_ID_KEY),
            trace_id=_text(TRACE_ID_KEY),
        )


def coerce_context(ctx: CorrelationContext | Mapping[str, Any] | None) -> CorrelationContext:
    if ctx is None:
        return CorrelationContext()
    if isinstance(ctx, CorrelationContext):
        return ctx
    return CorrelationContext.from_mapping(ctx)


def get_correlation(request: Request) -> CorrelationContext | None:
    """Return the correlation context the middleware attached, if any."""
    ctx = getattr(request.state, "correlation", None)
    if isinstance(ctx, CorrelationContext):
        return ctx
    return None


def request_id_from(request: Request) -> str:
    """Request id from the attached context, else the ``X-Request-ID`` header."""
    ctx = get_correlation(request)
    if ctx is not None and ctx.request_id:
        return ctx.request_id
    return request.headers.get(REQUEST_ID_HEADER, "")


def user_id_from(request: Request) -> str:
    """User id from the attached context, or an empty string."""
    ctx = get_correlation(request)
    if ctx is not None:
        return ctx.user_id
    return ""


def ensure_correlation(request: Request) -> CorrelationContext:
    """Attach a correlation context to the request, generating a request id if needed."""
    ctx = get_correlation(request)
    if ctx is None:
        ctx = CorrelationContext()
        request.state.correlation = ctx
    if not ctx.request_id:
        ctx.request_id = request.headers.get(REQUEST_ID_HEADER) or new_request_id()
    if not ctx.trace_id:
        ctx.trace_id = request.headers.get(TRACE_ID_HEADER, "")
    return ctx
