"""Uniform JSON envelopes for success and error outcomes."""

from __future__ import annotations

from typing import Any

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.requests import Request
from starlette.responses import Response

from app.core.config import ErrorHandlerConfig
from app.core.context import CorrelationContext
from app.core.context import get_correlation
from app.core.context import request_id_from
from app.core.context import user_id_from
from app.core.errors import AppError
from app.core.errors import ErrorCode
from app.core.errors import ValidationErrors
from app.core.errors import as_app_error
from app.core.errors import bad_request
from app.core.errors import conflict
from app.core.errors import forbidden
from app.core.errors import internal_error
from app.core.errors import not_found
from app.core.errors import rfc3339
from app.core.errors import unauthorized
from app.core.errors import utc_now
from app.core.logging import StructuredLogger
from app.core.logging import get_logger
from app.schemas.envelope import ErrorEnvelope
from app.schemas.envelope import SuccessEnvelope

CREATED_MESSAGE = "Resource created successfully"


def _encode_app_error(err: AppError) -> dict[str, Any]:
    payload = err.to_dict()
    if "context" in payload:
        payload["context"] = _encode_context(payload["context"])
    return payload


_CUSTOM_ENCODERS = {AppError: _encode_app_error}


def _encode(value: Any) -> Any:
    return jsonable_encoder(value, custom_encoder=_CUSTOM_ENCODERS)


def _encode_context(context: dict[str, Any]) -> dict[str, Any]:
    """Encode error context per key, falling back to ``str`` for values the encoder rejects."""
    encoded: dict[str, Any] = {}
    for key, value in context.items():
        try:
            encoded[key] = _encode(value)
        except (TypeError, ValueError):
            encoded[key] = str(value)
    return encoded


def build_error_payload(app_err: AppError, config: ErrorHandlerConfig) -> dict[str, Any]:
    """Shape an error envelope, sanitizing 5xx errors unless detailed errors are enabled."""
    details: str | None = None
    context: dict[str, Any] | None = None
    if app_err.http_status >= 500 and not config.enable_detailed_errors:
        message = config.default_message
        code = ErrorCode.INTERNAL_ERROR.value
    else:
        message = app_err.message
        code = app_err.code_value
        details = app_err.details or None
        if app_err.context:
            context = _encode_context(app_err.context)

    envelope = ErrorEnvelope(
        error=message,
        code=code,
        details=details,
        context=context,
        timestamp=rfc3339(utc_now()),
        request_id=app_err.request_id or None,
    )
    return envelope.model_dump(exclude_none=True)


def _app_attr(request: Request, name: str) -> Any:
    app = request.scope.get("app")
    if app is None:
        return None
    return getattr(app.state, name, None)


class ResponseWriter:
    """Translate handler outcomes into enveloped JSON responses.

    Each method returns the response to send. Error writes go through the
    per-request guard installed by the error-handling middleware when one is
    present, so a request never produces two error bodies.
    """

    def __init__(
        self,
        request: Request,
        *,
        config: ErrorHandlerConfig | None = None,
        logger: StructuredLogger | None = None,
    ) -> None:
        self._request = request
        self._config = config or _app_attr(request, "error_config") or ErrorHandlerConfig()
        self._logger = logger or _app_attr(request, "logger") or get_logger()

    def json(self, status_code: int, data: Any) -> JSONResponse:
        """Write ``data`` in a success envelope with an explicit status."""
        return self.json_with_message(status_code, data, "")

    def json_with_message(self, status_code: int, data: Any, message: str) -> JSONResponse:
        """Write a success envelope carrying a human-readable message."""
        return self.json_with_meta(status_code, data, message, None)

    def json_with_meta(self, status_code: int, data: Any, message: str, meta: Any) -> JSONResponse:
        """Write a success envelope with a message and pagination metadata."""
        envelope = SuccessEnvelope(
            success=status_code < 400,
            message=message or None,
            meta=_encode(meta),
            timestamp=rfc3339(utc_now()),
            request_id=request_id_from(self._request) or None,
        )
        payload = envelope.model_dump(exclude_none=True)
        payload["data"] = _encode(data)
        return JSONResponse(content=payload, status_code=status_code)

    def success(self, data: Any) -> JSONResponse:
        """Write a 200 envelope."""
        return self.json(status.HTTP_200_OK, data)

    def created(self, data: Any) -> JSONResponse:
        """Write a 201 envelope with the standard created message."""
        return self.json_with_message(status.HTTP_201_CREATED, data, CREATED_MESSAGE)

    def no_content(self) -> Response:
        """Write an empty 204 response."""
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    def error(self, err: BaseException | None) -> Response:
        """Write an error response through the per-request guard, if installed."""
        guard = getattr(self._request.state, "error_writer", None)
        if guard is not None:
            return guard.write_error(err)
        return self.render_error(err)

    def render_error(self, err: BaseException | None) -> JSONResponse:
        """Normalize, correlate, log and serialize one error."""
        app_err = as_app_error(err) or internal_error("An unexpected error occurred")

        if not app_err.request_id:
            request_id = request_id_from(self._request)
            if request_id:
                app_err.with_request_id(request_id)
        if not app_err.user_id:
            user_id = user_id_from(self._request)
            if user_id:
                app_err.with_user_id(user_id)

        self._log_error(app_err)
        return JSONResponse(
            content=build_error_payload(app_err, self._config),
            status_code=app_err.http_status,
        )

    def bad_request(self, message: str) -> Response:
        return self.error(bad_request(message))

    def unauthorized(self, message: str = "") -> Response:
        return self.error(unauthorized(message))

    def forbidden(self, message: str = "") -> Response:
        return self.error(forbidden(message))

    def not_found(self, resource: str) -> Response:
        """Write a 404 for the named resource."""
        return self.error(not_found(resource))

    def conflict(self, resource: str, details: str = "") -> Response:
        """Write a 409 for a resource that already exists."""
        return self.error(conflict(resource, details))

    def internal_error(self, message: str) -> Response:
        return self.error(internal_error(message))

    def validation_error(self, validation_errors: ValidationErrors | None) -> Response:
        """Write collected field errors, or a plain 400 when there are none."""
        if validation_errors is None or not validation_errors.has_errors():
            return self.bad_request("Validation failed")
        return self.error(validation_errors.to_app_error())

    def _log_error(self, app_err: AppError) -> None:
        attached = get_correlation(self._request)
        ctx = CorrelationContext(
            request_id=app_err.request_id,
            user_id=app_err.user_id,
            trace_id=attached.trace_id if attached is not None else "",
        )
        log = self._logger.with_context(ctx)
        method = self._request.method
        path = self._request.url.path

        if app_err.http_status >= 500:
            log.error(
                "Server error occurred",
                app_err,
                "method", method,
                "path", path,
                "status_code", app_err.http_status,
                "error_code", app_err.code_value,
            )
        elif app_err.http_status >= 400:
            log.warn(
                "Client error occurred",
                "method", method,
                "path", path,
                "status_code", app_err.http_status,
                "error_code", app_err.code_value,
                "error_message", app_err.message,
            )
