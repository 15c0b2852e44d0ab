"""Service helpers for registration, login and token refresh."""

from __future__ import annotations

from sqlalchemy.orm import Session

from app.core.context import CorrelationContext
from app.core.errors import bad_request
from app.core.security import AuthService
from app.schemas.auth import LoginRequest
from app.schemas.auth import LoginResponse
from app.schemas.auth import RegisterRequest
from app.schemas.auth import RegisterResponse
from app.schemas.auth import TokenResponse
from app.schemas.user import User
from app.schemas.user import UserCreate
from app.services.users import create_user_service
from app.services.users import validate_credentials

REGISTERED_MESSAGE = "User registered successfully"


def register_service(
    session: Session,
    payload: RegisterRequest,
    *,
    correlation: CorrelationContext | None = None,
) -> RegisterResponse:
    user = create_user_service(
        session,
        UserCreate(username=payload.username, password=payload.password),
        correlation=correlation,
    )
    return RegisterResponse(user=User.model_validate(user), message=REGISTERED_MESSAGE)


def login_service(
    session: Session,
    auth: AuthService,
    payload: LoginRequest,
    *,
    correlation: CorrelationContext | None = None,
) -> LoginResponse:
    """Check credentials and issue an access token."""
    if not payload.username:
        raise bad_request("Username is required")
    if not payload.password:
        raise bad_request("Password is required")
    user = validate_credentials(session, payload.username, payload.password, correlation=correlation)
    token, expires_in = auth.generate_token(user.id, user.username)
    return LoginResponse(user=User.model_validate(user), access_token=token, expires_in=expires_in)


def refresh_service(auth: AuthService, token: str) -> TokenResponse:
    new_token, expires_in = auth.refresh_token(token)
    return TokenResponse(access_token=new_token, expires_in=expires_in)
