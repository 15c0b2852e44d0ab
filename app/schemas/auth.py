"""Pydantic schemas for authentication payloads."""

from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel

from app.schemas.user import User


class RegisterRequest(BaseModel):
    """Payload to register an account."""

    username: str = ""
    password: str = ""


class LoginRequest(BaseModel):
    """Payload to exchange credentials for an access token."""

    username: str = ""
    password: str = ""


class LoginResponse(BaseModel):
    """Access token issued for a user."""

    user: User
    access_token: str
    token_type: str = "Bearer"
    expires_in: int


class RegisterResponse(BaseModel):
    """Account created by registration."""

    user: User
    message: str


class TokenResponse(BaseModel):
    """Re-issued access token."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int


class TokenClaims(BaseModel):
    """Verified claims carried by an access token."""

    user_id: UUID
    username: str
    exp: int
    iat: int | None = None
    iss: str | None = None
