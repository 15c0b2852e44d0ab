"""Repository primitives for user entities."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.models.user import User


def create_user(session: Session, *, username: str, password_hash: str) -> User:
    """Create and return a user row."""
    user = User(username=username, password_hash=password_hash)
    session.add(user)
    session.flush()
    session.refresh(user)
    return user


def get_user(session: Session, user_id: UUID) -> User | None:
    """Fetch a user by id."""
    return session.get(User, user_id)


def get_user_by_username(session: Session, username: str) -> User | None:
    """Fetch a user by unique username."""
    return session.scalars(select(User).where(User.username == username)).first()


def list_users(session: Session, *, limit: int | None = None, offset: int = 0) -> list[User]:
    """List users, newest first."""
    stmt = select(User).order_by(User.created_at.desc())
    if limit is not None:
        stmt = stmt.limit(limit).offset(offset)
    return list(session.scalars(stmt))


def count_users(session: Session) -> int:
    """Count all users."""
    return session.scalar(select(func.count()).select_from(User)) or 0
