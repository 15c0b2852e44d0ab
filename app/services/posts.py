"""Service helpers for post API operations."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from app.core.context import CorrelationContext
from app.core.errors import ValidationErrors
from app.core.errors import not_found
from app.db.base import database_operation
from app.db.models import Post
from app.db.repository.posts import count_posts
from app.db.repository.posts import create_post
from app.db.repository.posts import delete_post
from app.db.repository.posts import get_post
from app.db.repository.posts import list_posts
from app.db.repository.posts import update_post
from app.schemas.pagination import PaginationMeta
from app.schemas.pagination import PaginationParams
from app.schemas.post import PostCreate
from app.schemas.post import PostUpdate
from app.services.users import get_user_service


def validate_post_create(payload: PostCreate) -> ValidationErrors:
    errors = ValidationErrors()
    if not payload.title.strip():
        errors.add("title", "Title is required")
    if not payload.content.strip():
        errors.add("content", "Content is required")
    return errors


def validate_post_update(payload: PostUpdate) -> ValidationErrors:
    """Fields left out are kept; fields sent must not be blank."""
    errors = ValidationErrors()
    if payload.title is not None and not payload.title.strip():
        errors.add("title", "Title cannot be empty")
    if payload.content is not None and not payload.content.strip():
        errors.add("content", "Content cannot be empty")
    return errors


def create_post_service(
    session: Session,
    user_id: UUID,
    payload: PostCreate,
    *,
    correlation: CorrelationContext | None = None,
) -> Post:
    """Create a post for an existing author."""
    errors = validate_post_create(payload)
    if errors.has_errors():
        raise errors

    get_user_service(session, user_id, correlation=correlation)
    with database_operation("insert", "posts", correlation):
        post = create_post(session, user_id=user_id, title=payload.title, content=payload.content)
        session.commit()
    return post


def get_post_service(
    session: Session,
    post_id: UUID,
    *,
    correlation: CorrelationContext | None = None,
) -> Post:
    """Fetch a post or raise not found."""
    with database_operation("select", "posts", correlation):
        post = get_post(session, post_id)
    if post is None:
        raise not_found("post")
    return post


def list_posts_service(
    session: Session,
    pagination: PaginationParams | None = None,
    *,
    user_id: UUID | None = None,
    correlation: CorrelationContext | None = None,
) -> tuple[list[Post], PaginationMeta | None]:
    """List posts, optionally for one author and one page.

    Listing by author checks that the author exists first.
    """
    if user_id is not None:
        get_user_service(session, user_id, correlation=correlation)

    with database_operation("select", "posts", correlation):
        if pagination is None:
            return list_posts(session, user_id=user_id), None
        posts = list_posts(
            session,
            user_id=user_id,
            limit=pagination.page_size,
            offset=pagination.offset,
        )
        total = count_posts(session, user_id=user_id)
    return posts, PaginationMeta.create(pagination.page, pagination.page_size, total)


def update_post_service(
    session: Session,
    post_id: UUID,
    payload: PostUpdate,
    *,
    correlation: CorrelationContext | None = None,
) -> Post:
    """Apply the provided fields to an existing post."""
    errors = validate_post_update(payload)
    if errors.has_errors():
        raise errors

    post = get_post_service(session, post_id, correlation=correlation)
    with database_operation("update", "posts", correlation):
        post = update_post(session, post, title=payload.title, content=payload.content)
        session.commit()
    return post


def delete_post_service(
    session: Session,
    post_id: UUID,
    *,
    correlation: CorrelationContext | None = None,
) -> None:
    post = get_post_service(session, post_id, correlation=correlation)
    with database_operation("delete", "posts", correlation):
        delete_post(session, post)
        session.commit()
