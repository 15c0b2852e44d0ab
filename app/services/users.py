"""Service helpers for user API operations."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.context import CorrelationContext
from app.core.errors import ValidationErrors
from app.core.errors import conflict
from app.core.errors import not_found
from app.core.errors import unauthorized
from app.core.security import hash_password
from app.core.security import verify_password
from app.db.base import database_operation
from app.db.models import User
from app.db.repository.users import count_users
from app.db.repository.users import create_user
from app.db.repository.users import get_user
from app.db.repository.users import get_user_by_username
from app.db.repository.users import list_users
from app.schemas.pagination import PaginationMeta
from app.schemas.pagination import PaginationParams
from app.schemas.user import UserCreate

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 50
PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 100

_SQL_PATTERNS = (
    "'", '"', ";", "--", "/*", "*/", "xp_", "sp_",
    "drop", "delete", "insert", "update", "select", "union",
)
_XSS_PATTERNS = (
    "<script", "</script>", "<iframe", "javascript:", "onload=", "onerror=",
    "<img", "src=", "href=", "onclick=", "onmouseover=",
)


def _contains_any(value: str, patterns: tuple[str, ...]) -> bool:
    lowered = value.lower()
    return any(pattern in lowered for pattern in patterns)


def validate_user_create(payload: UserCreate) -> ValidationErrors:
    """Collect every field problem in a create-user payload."""
    errors = ValidationErrors()

    username = payload.username
    if not username:
        errors.add("username", "Username is required")
    elif len(username) < USERNAME_MIN_LENGTH:
        errors.add("username", "Username must be at least 3 characters long")
    elif len(username) > USERNAME_MAX_LENGTH:
        errors.add("username", "Username must be less than 50 characters")

    password = payload.password
    if not password:
        errors.add("password", "Password is required")
    elif len(password) < PASSWORD_MIN_LENGTH:
        errors.add("password", "Password must be at least 6 characters long")
    elif len(password) > PASSWORD_MAX_LENGTH:
        errors.add("password", "Password must be less than 100 characters")

    if _contains_any(username, _SQL_PATTERNS):
        errors.add("username", "Username contains invalid characters")
    if _contains_any(username, _XSS_PATTERNS):
        errors.add("username", "Username contains potentially dangerous content")

    return errors


def create_user_service(
    session: Session,
    payload: UserCreate,
    *,
    correlation: CorrelationContext | None = None,
) -> User:
    """Validate, hash and persist a new user."""
    errors = validate_user_create(payload)
    if errors.has_errors():
        raise errors

    with database_operation("select", "users", correlation):
        existing = get_user_by_username(session, payload.username)
    if existing is not None:
        raise conflict("user", f"username '{payload.username}' is already taken")

    with database_operation("insert", "users", correlation):
        try:
            user = create_user(
                session,
                username=payload.username,
                password_hash=hash_password(payload.password),
            )
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            raise conflict("user", f"username '{payload.username}' is already taken").with_internal(exc) from exc
    return user


def get_user_service(
    session: Session,
    user_id: UUID,
    *,
    correlation: CorrelationContext | None = None,
) -> User:
    """Fetch a user or raise not found."""
    with database_operation("select", "users", correlation):
        user = get_user(session, user_id)
    if user is None:
        raise not_found("user")
    return user


def list_users_service(
    session: Session,
    pagination: PaginationParams | None = None,
    *,
    correlation: CorrelationContext | None = None,
) -> tuple[list[User], PaginationMeta | None]:
    """List users; with pagination, also return the page metadata."""
    with database_operation("select", "users", correlation):
        if pagination is None:
            return list_users(session), None
        users = list_users(session, limit=pagination.page_size, offset=pagination.offset)
        total = count_users(session)
    return users, PaginationMeta.create(pagination.page, pagination.page_size, total)


def validate_credentials(
    session: Session,
    username: str,
    password: str,
    *,
    correlation: CorrelationContext | None = None,
) -> User:
    """Return the user matching the credentials.

    An unknown username and a wrong password fail the same way.
    """
    with database_operation("select", "users", correlation):
        user = get_user_by_username(session, username) if username else None
    if user is None or not verify_password(password, user.password_hash):
        raise unauthorized("Invalid username or password")
    return user
