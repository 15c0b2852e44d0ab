"""Database engine and session helpers."""

from __future__ import annotations

from collections.abc import Generator
from collections.abc import Iterator
from contextlib import contextmanager
import time

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm import sessionmaker

from app.core.config import get_settings
from app.core.context import CorrelationContext
from app.core.errors import database_error
from app.core.logging import get_logger

DATABASE_URL = get_settings().database_url

engine = create_engine(
    DATABASE_URL,
    pool_pre_ping=True,
)

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
    class_=Session,
)


def get_db_session() -> Generator[Session, None, None]:
    """Yield a database session for dependency injection."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@contextmanager
def database_operation(
    operation: str,
    table: str,
    correlation: CorrelationContext | None = None,
) -> Iterator[None]:
    """Time a unit of database work and log it.

    ``IntegrityError`` propagates untouched so callers can map it to a
    conflict; any other SQLAlchemy failure is raised as a database error and
    left for the request boundary to log.
    """
    started = time.perf_counter()
    try:
        yield
    except IntegrityError:
        raise
    except SQLAlchemyError as exc:
        raise database_error(f"{operation} {table}", exc).with_context("table", table) from exc
    get_logger().log_database_operation(correlation, operation, table, time.perf_counter() - started)
