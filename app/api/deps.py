"""Shared FastAPI dependencies and request helpers."""

from __future__ import annotations

from functools import lru_cache
from uuid import UUID

from fastapi import Depends
from fastapi import Header
from fastapi import Request

from app.core.config import get_settings
from app.core.context import CorrelationContext
from app.core.context import ensure_correlation
from app.core.errors import bad_request
from app.core.errors import unauthorized
from app.core.security import AuthService
from app.schemas.auth import TokenClaims

BEARER_PREFIX = "Bearer "


@lru_cache(maxsize=1)
def get_auth_service() -> AuthService:
    return AuthService.from_settings(get_settings())


def get_correlation(request: Request) -> CorrelationContext:
    """Correlation context of the current request."""
    return ensure_correlation(request)


def bearer_token(authorization: str | None = Header(default=None)) -> str:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        raise unauthorized("Authorization header required")
    if not authorization.startswith(BEARER_PREFIX):
        raise unauthorized("Invalid authorization format. Use 'Bearer <token>'")
    return authorization[len(BEARER_PREFIX):].strip()


def require_user(
    token: str = Depends(bearer_token),
    auth: AuthService = Depends(get_auth_service),
    correlation: CorrelationContext = Depends(get_correlation),
) -> TokenClaims:
    """Verify the bearer token and record the caller on the correlation context."""
    claims = auth.validate_token(token)
    correlation.user_id = str(claims.user_id)
    return claims


def parse_id(raw: str, message: str) -> UUID:
    """Parse a path id, reporting malformed values as a bad request."""
    try:
        return UUID(raw)
    except ValueError as exc:
        raise bad_request(message).with_internal(exc) from exc
