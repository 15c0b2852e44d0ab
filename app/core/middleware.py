"""Error-handling middleware and exception handler registration."""

from __future__ import annotations

from typing import Any
from typing import Callable
import time
import traceback

from fastapi import FastAPI
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from app.core.config import ErrorHandlerConfig
from app.core.context import REQUEST_ID_HEADER
from app.core.context import ensure_correlation
from app.core.errors import AppError
from app.core.errors import ValidationErrors
from app.core.errors import as_app_error
from app.core.errors import bad_request
from app.core.errors import http_error
from app.core.errors import internal_error
from app.core.logging import StructuredLogger
from app.core.logging import get_logger
from app.core.responses import ResponseWriter


class RequestErrorWriter:
    """Writes at most one error response for a request.

    The first ``write_error`` renders and remembers the response; later calls
    return that same response without logging or rendering again.
    """

    def __init__(
        self,
        request: Request,
        *,
        config: ErrorHandlerConfig | None = None,
        logger: StructuredLogger | None = None,
    ) -> None:
        self._request = request
        self._config = config
        self._logger = logger
        self._response: Response | None = None
        self.error: AppError | None = None

    @property
    def written(self) -> bool:
        return self._response is not None

    def write_error(self, err: BaseException | None) -> Response:
        if self._response is not None:
            return self._response
        app_err = as_app_error(err) or internal_error("An unexpected error occurred")
        writer = ResponseWriter(self._request, config=self._config, logger=self._logger)
        self._response = writer.render_error(app_err)
        self.error = app_err
        return self._response


def get_error_writer(request: Request) -> RequestErrorWriter:
    """Return the request's error writer, attaching one if the middleware did not."""
    writer = getattr(request.state, "error_writer", None)
    if writer is None:
        writer = RequestErrorWriter(request)
        request.state.error_writer = writer
    return writer


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Correlate, recover and log every request.

    Attaches a correlation context (request id from the context, the
    ``X-Request-ID`` header or a fresh UUID), installs the per-request error
    writer, converts any exception escaping the endpoint into an internal
    error response and logs the request outcome.
    """

    def __init__(
        self,
        app: Any,
        config: ErrorHandlerConfig | None = None,
        logger: StructuredLogger | None = None,
    ) -> None:
        super().__init__(app)
        self.config = config or ErrorHandlerConfig()
        self._logger = logger

    @property
    def logger(self) -> StructuredLogger:
        return self._logger or get_logger()

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation = ensure_correlation(request)
        writer = RequestErrorWriter(request, config=self.config, logger=self.logger)
        request.state.error_writer = writer

        started = time.perf_counter()
        try:
            response: Response = await call_next(request)
        except Exception as exc:  # noqa: BLE001
            response = writer.write_error(self._recovered_error(exc))

        response.headers[REQUEST_ID_HEADER] = correlation.request_id
        self.logger.log_http_request(
            correlation,
            request.method,
            request.url.path,
            response.status_code,
            time.perf_counter() - started,
            writer.error,
        )
        return response

    def _recovered_error(self, exc: Exception) -> BaseException:
        if isinstance(exc, (AppError, ValidationErrors)):
            return exc
        app_err = (
            internal_error("Internal server error")
            .with_internal(exc)
            .with_context("panic", True)
        )
        if self.config.enable_stack_trace:
            stack_trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
            app_err.with_context("stack_trace", stack_trace)
        return app_err


def _format_location(location: tuple[Any, ...] | list[Any] | Any) -> str:
    if not isinstance(location, (tuple, list)):
        return str(location)

    prefixes = {"body", "query", "path", "header", "cookie"}
    filtered = [str(part) for part in location if part not in prefixes]
    if filtered:
        return ".".join(filtered)

    if not location:
        return "request"

    return str(location[0])


def validation_errors_from(exc: RequestValidationError) -> BaseException:
    """Convert FastAPI request validation issues into application errors."""
    issues = exc.errors()
    if any(issue.get("type") == "json_invalid" for issue in issues):
        return bad_request("Invalid JSON payload")

    validation = ValidationErrors()
    for issue in issues:
        validation.add(_format_location(issue.get("loc", ())), str(issue.get("msg", "Invalid value")))
    return validation


async def app_error_handler(request: Request, exc: AppError) -> Response:
    """Write raised application errors through the request's error writer."""
    return get_error_writer(request).write_error(exc)


async def validation_errors_handler(request: Request, exc: ValidationErrors) -> Response:
    return get_error_writer(request).write_error(exc)


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> Response:
    """Normalize FastAPI validation errors to the error envelope."""
    return get_error_writer(request).write_error(validation_errors_from(exc))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> Response:
    """Normalize HTTP exceptions (unknown routes, wrong methods) to the error envelope."""
    message = str(exc.detail) if exc.detail else "Request failed"
    response = get_error_writer(request).write_error(http_error(exc.status_code, message))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


def register_error_handlers(app: FastAPI) -> None:
    """Attach the exception handlers to a FastAPI app instance."""

    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(ValidationErrors, validation_errors_handler)


def install_error_handling(
    app: FastAPI,
    config: ErrorHandlerConfig | None = None,
    logger: StructuredLogger | None = None,
) -> None:
    """Register handlers and the middleware, sharing one config and logger."""
    config = config or ErrorHandlerConfig()
    app.state.error_config = config
    if logger is not None:
        app.state.logger = logger
    register_error_handlers(app)
    app.add_middleware(ErrorHandlingMiddleware, config=config, logger=logger)
