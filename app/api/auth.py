"""Authentication API routes."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Request
from fastapi import Response
from sqlalchemy.orm import Session

from app.api.deps import bearer_token
from app.api.deps import get_auth_service
from app.api.deps import get_correlation
from app.core.context import CorrelationContext
from app.core.responses import ResponseWriter
from app.core.security import AuthService
from app.db.base import get_db_session
from app.schemas.auth import LoginRequest
from app.schemas.auth import RegisterRequest
from app.services.auth import login_service
from app.services.auth import refresh_service
from app.services.auth import register_service

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


@router.post("/register", status_code=201)
def register_endpoint(
    request: Request,
    payload: RegisterRequest,
    session: Session = Depends(get_db_session),
    correlation: CorrelationContext = Depends(get_correlation),
) -> Response:
    """Create an account."""
    result = register_service(session, payload, correlation=correlation)
    return ResponseWriter(request).json(201, result)


@router.post("/login")
def login_endpoint(
    request: Request,
    payload: LoginRequest,
    session: Session = Depends(get_db_session),
    auth: AuthService = Depends(get_auth_service),
    correlation: CorrelationContext = Depends(get_correlation),
) -> Response:
    """Exchange a username and password for an access token."""
    result = login_service(session, auth, payload, correlation=correlation)
    correlation.user_id = str(result.user.id)
    return ResponseWriter(request).success(result)


@router.post("/refresh")
def refresh_endpoint(
    request: Request,
    token: str = Depends(bearer_token),
    auth: AuthService = Depends(get_auth_service),
) -> Response:
    """Re-issue a token that is about to expire."""
    return ResponseWriter(request).success(refresh_service(auth, token))
