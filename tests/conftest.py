"""Shared pytest fixtures for postboard test suites."""

from collections.abc import Generator
from io import StringIO
from pathlib import Path
import json
import logging
import sys

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.core.config import Settings  # noqa: E402
from app.core.logging import StructuredLogger  # noqa: E402
from app.core.logging import configure_handler  # noqa: E402
from app.core.logging import set_logger  # noqa: E402
from app.db.base import get_db_session  # noqa: E402
from app.db.models import Base  # noqa: E402

TEST_SETTINGS = Settings(
    database_url="sqlite://",
    api_secret_key="test-secret",
    server_port="8080",
    service_name="postboard-test",
    version="0.0.1",
)


class LogCapture:
    """Structured logger writing JSON lines into memory."""

    def __init__(self, logger_name: str) -> None:
        self.stream = StringIO()
        configure_handler("DEBUG", self.stream, logger_name=logger_name)
        self.logger = StructuredLogger(
            TEST_SETTINGS.service_name,
            TEST_SETTINGS.version,
            logger=logging.getLogger(logger_name),
        )

    def records(self) -> list[dict]:
        return [json.loads(line) for line in self.stream.getvalue().splitlines() if line.strip()]


@pytest.fixture
def log_capture(request: pytest.FixtureRequest) -> LogCapture:
    """Capture structured log records for one test."""
    return LogCapture(f"postboard.test.{request.node.name}")


@pytest.fixture
def db_session_factory() -> Generator[sessionmaker, None, None]:
    """In-memory SQLite schema shared across connections of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, class_=Session)
    yield factory
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def client(db_session_factory: sessionmaker, log_capture: LogCapture) -> Generator[TestClient, None, None]:
    """Provide an API test client backed by the in-memory database."""
    from app.main import create_app

    app = create_app(TEST_SETTINGS, logger=log_capture.logger)

    def _session() -> Generator[Session, None, None]:
        session = db_session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db_session] = _session
    previous = set_logger(log_capture.logger)
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        set_logger(previous)
