"""User API routes."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Request
from fastapi import Response
from sqlalchemy.orm import Session

from app.api.deps import get_correlation
from app.api.deps import parse_id
from app.core.context import CorrelationContext
from app.core.logging import get_logger
from app.core.responses import ResponseWriter
from app.db.base import get_db_session
from app.schemas.pagination import parse_pagination
from app.schemas.post import Post
from app.schemas.user import User
from app.schemas.user import UserCreate
from app.services.posts import list_posts_service
from app.services.users import create_user_service
from app.services.users import get_user_service
from app.services.users import list_users_service

router = APIRouter(prefix="/api/v1", tags=["users"])

INVALID_USER_ID = "Invalid user ID format"


@router.post("/users", status_code=201)
def create_user_endpoint(
    request: Request,
    payload: UserCreate,
    session: Session = Depends(get_db_session),
    correlation: CorrelationContext = Depends(get_correlation),
) -> Response:
    """Create a user."""
    user = create_user_service(session, payload, correlation=correlation)
    get_logger().with_context(correlation).info(
        "User created successfully",
        "user_id", str(user.id),
        "username", user.username,
    )
    return ResponseWriter(request).created({"user": User.model_validate(user)})


@router.get("/users")
def list_users_endpoint(
    request: Request,
    page: str | None = None,
    page_size: str | None = None,
    session: Session = Depends(get_db_session),
    correlation: CorrelationContext = Depends(get_correlation),
) -> Response:
    """List users; ``page``/``page_size`` switch to a paginated listing."""
    pagination = parse_pagination(page, page_size)
    users, meta = list_users_service(session, pagination, correlation=correlation)
    items = [User.model_validate(user) for user in users]
    writer = ResponseWriter(request)
    if meta is not None:
        return writer.json_with_meta(200, items, "Users retrieved successfully", meta)
    return writer.success({"users": items, "count": len(items)})


@router.get("/users/{user_id}")
def get_user_endpoint(
    request: Request,
    user_id: str,
    session: Session = Depends(get_db_session),
    correlation: CorrelationContext = Depends(get_correlation),
) -> Response:
    """Get a single user by id."""
    user = get_user_service(session, parse_id(user_id, INVALID_USER_ID), correlation=correlation)
    return ResponseWriter(request).success({"user": User.model_validate(user)})


@router.get("/users/{user_id}/posts")
def list_user_posts_endpoint(
    request: Request,
    user_id: str,
    page: str | None = None,
    page_size: str | None = None,
    session: Session = Depends(get_db_session),
    correlation: CorrelationContext = Depends(get_correlation),
) -> Response:
    """List posts written by one user."""
    author_id = parse_id(user_id, INVALID_USER_ID)
    pagination = parse_pagination(page, page_size)
    posts, meta = list_posts_service(session, pagination, user_id=author_id, correlation=correlation)
    items = [Post.model_validate(post) for post in posts]
    writer = ResponseWriter(request)
    if meta is not None:
        return writer.json_with_meta(200, items, "Posts retrieved successfully", meta)
    return writer.success({"posts": items, "count": len(items)})
