"""Repository primitives for post entities."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.models.post import Post


def create_post(session: Session, *, user_id: UUID, title: str, content: str) -> Post:
    """Create and return a post row."""
    post = Post(user_id=user_id, title=title, content=content)
    session.add(post)
    session.flush()
    session.refresh(post)
    return post


def get_post(session: Session, post_id: UUID) -> Post | None:
    """Fetch a post by id."""
    return session.get(Post, post_id)


def list_posts(
    session: Session,
    *,
    user_id: UUID | None = None,
    limit: int | None = None,
    offset: int = 0,
) -> list[Post]:
    """List posts newest first, optionally for one author."""
    stmt = select(Post)
    if user_id is not None:
        stmt = stmt.where(Post.user_id == user_id)
    stmt = stmt.order_by(Post.created_at.desc())
    if limit is not None:
        stmt = stmt.limit(limit).offset(offset)
    return list(session.scalars(stmt))


def count_posts(session: Session, *, user_id: UUID | None = None) -> int:
    """Count posts, optionally for one author."""
    stmt = select(func.count()).select_from(Post)
    if user_id is not None:
        stmt = stmt.where(Post.user_id == user_id)
    return session.scalar(stmt) or 0


def update_post(
    session: Session,
    post: Post,
    *,
    title: str | None = None,
    content: str | None = None,
) -> Post:
    """Update mutable post fields."""
    if title is not None:
        post.title = title
    if content is not None:
        post.content = content
    session.flush()
    session.refresh(post)
    return post


def delete_post(session: Session, post: Post) -> None:
    """Delete a post row."""
    session.delete(post)
    session.flush()
