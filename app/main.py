"""FastAPI application entrypoint for the postboard API."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi import Request
from fastapi import Response

from app.api.auth import router as auth_router
from app.api.posts import router as posts_router
from app.api.users import router as users_router
from app.core.config import ErrorHandlerConfig
from app.core.config import Settings
from app.core.config import get_settings
from app.core.logging import StructuredLogger
from app.core.logging import initialize
from app.core.middleware import install_error_handling
from app.core.responses import ResponseWriter
from app.db import models as _models  # noqa: F401


def create_app(settings: Settings | None = None, *, logger: StructuredLogger | None = None) -> FastAPI:
    """Build the application with logging, error handling and routes wired."""
    settings = settings or get_settings()
    if logger is None:
        logger = initialize(settings.service_name, settings.version, level=settings.log_level)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        logger.info("Starting server", *_flatten(settings.safe_for_logging()))
        yield
        logger.info("Server stopped")

    app = FastAPI(title="Postboard API", version=settings.version, lifespan=lifespan)
    install_error_handling(app, ErrorHandlerConfig.from_settings(settings), logger)
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(posts_router)

    @app.get("/health")
    def health(request: Request) -> Response:
        """Health check endpoint for service readiness."""
        return ResponseWriter(request).json_with_message(200, {"status": "ok"}, "Server is healthy")

    return app


def _flatten(values: dict[str, object]) -> list[object]:
    pairs: list[object] = []
    for key, value in values.items():
        pairs.extend((key, value))
    return pairs


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=int(get_settings().server_port))
