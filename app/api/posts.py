"""Post API routes."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Request
from fastapi import Response
from sqlalchemy.orm import Session

from app.api.deps import get_correlation
from app.api.deps import parse_id
from app.api.deps import require_user
from app.core.context import CorrelationContext
from app.core.responses import ResponseWriter
from app.db.base import get_db_session
from app.schemas.auth import TokenClaims
from app.schemas.pagination import parse_pagination
from app.schemas.post import Post
from app.schemas.post import PostCreate
from app.schemas.post import PostUpdate
from app.services.posts import create_post_service
from app.services.posts import delete_post_service
from app.services.posts import get_post_service
from app.services.posts import list_posts_service
from app.services.posts import update_post_service

router = APIRouter(prefix="/api/v1", tags=["posts"])

INVALID_POST_ID = "Invalid post ID format"


@router.post("/posts", status_code=201)
def create_post_endpoint(
    request: Request,
    payload: PostCreate,
    claims: TokenClaims = Depends(require_user),
    session: Session = Depends(get_db_session),
    correlation: CorrelationContext = Depends(get_correlation),
) -> Response:
    """Create a post authored by the caller."""
    post = create_post_service(session, claims.user_id, payload, correlation=correlation)
    return ResponseWriter(request).created(Post.model_validate(post))


@router.get("/posts")
def list_posts_endpoint(
    request: Request,
    page: str | None = None,
    page_size: str | None = None,
    session: Session = Depends(get_db_session),
    correlation: CorrelationContext = Depends(get_correlation),
) -> Response:
    """List posts; ``page``/``page_size`` switch to a paginated listing."""
    pagination = parse_pagination(page, page_size)
    posts, meta = list_posts_service(session, pagination, correlation=correlation)
    items = [Post.model_validate(post) for post in posts]
    writer = ResponseWriter(request)
    if meta is not None:
        return writer.json_with_meta(200, items, "Posts retrieved successfully", meta)
    return writer.success({"posts": items, "count": len(items)})


@router.get("/posts/{post_id}")
def get_post_endpoint(
    request: Request,
    post_id: str,
    session: Session = Depends(get_db_session),
    correlation: CorrelationContext = Depends(get_correlation),
) -> Response:
    post = get_post_service(session, parse_id(post_id, INVALID_POST_ID), correlation=correlation)
    return ResponseWriter(request).success(Post.model_validate(post))


@router.put("/posts/{post_id}")
def update_post_endpoint(
    request: Request,
    post_id: str,
    payload: PostUpdate,
    claims: TokenClaims = Depends(require_user),
    session: Session = Depends(get_db_session),
    correlation: CorrelationContext = Depends(get_correlation),
) -> Response:
    """Update a post's title and/or content."""
    post = update_post_service(session, parse_id(post_id, INVALID_POST_ID), payload, correlation=correlation)
    return ResponseWriter(request).success(Post.model_validate(post))


@router.delete("/posts/{post_id}", status_code=204)
def delete_post_endpoint(
    request: Request,
    post_id: str,
    claims: TokenClaims = Depends(require_user),
    session: Session = Depends(get_db_session),
    correlation: CorrelationContext = Depends(get_correlation),
) -> Response:
    delete_post_service(session, parse_id(post_id, INVALID_POST_ID), correlation=correlation)
    return ResponseWriter(request).no_content()
