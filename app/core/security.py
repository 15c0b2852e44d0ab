"""Password hashing and JWT access tokens."""

from __future__ import annotations

from typing import Any
from uuid import UUID
import time

import bcrypt
import jwt
from pydantic import ValidationError

from app.core.config import Settings
from app.core.errors import bad_request
from app.core.errors import unauthorized
from app.schemas.auth import TokenClaims

BCRYPT_ROUNDS = 12
BCRYPT_MAX_BYTES = 72
TOKEN_ALGORITHM = "HS256"
REFRESH_WINDOW_SECONDS = 60 * 60

INVALID_TOKEN_MESSAGE = "Invalid or expired token"


def _password_bytes(password: str) -> bytes:
    # bcrypt only reads the first 72 bytes and newer releases reject longer input.
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str, *, rounds: int = BCRYPT_ROUNDS) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=rounds)).decode("ascii")


def verify_password(password: str, hashed_password: str) -> bool:
    """Verify a password against a bcrypt hash; malformed hashes never match."""
    try:
        return bcrypt.checkpw(_password_bytes(password), hashed_password.encode("ascii"))
    except ValueError:
        return False


class AuthService:
    """Issues and verifies HS256 access tokens."""

    def __init__(self, secret_key: str, *, expires_in: int, issuer: str) -> None:
        self._secret_key = secret_key
        self.expires_in = expires_in
        self.issuer = issuer

    @classmethod
    def from_settings(cls, settings: Settings) -> AuthService:
        return cls(
            settings.api_secret_key,
            expires_in=settings.token_ttl_seconds,
            issuer=settings.token_issuer,
        )

    def generate_token(self, user_id: UUID, username: str) -> tuple[str, int]:
        """Return a signed token and its lifetime in seconds."""
        now = int(time.time())
        payload: dict[str, Any] = {
            "user_id": str(user_id),
            "username": username,
            "sub": str(user_id),
            "iss": self.issuer,
            "iat": now,
            "nbf": now,
            "exp": now + self.expires_in,
        }
        token = jwt.encode(payload, self._secret_key, algorithm=TOKEN_ALGORITHM)
        return token, self.expires_in

    def validate_token(self, token: str) -> TokenClaims:
        """Decode and verify a token; any failure is an UNAUTHORIZED error."""
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[TOKEN_ALGORITHM],
                issuer=self.issuer,
                options={"require": ["exp", "sub"]},
            )
            return TokenClaims.model_validate(payload)
        except (jwt.PyJWTError, ValidationError) as exc:
            raise unauthorized(INVALID_TOKEN_MESSAGE).with_internal(exc) from exc

    def refresh_token(self, token: str) -> tuple[str, int]:
        """Re-issue a token that expires within the next hour."""
        claims = self.validate_token(token)
        if claims.exp - int(time.time()) > REFRESH_WINDOW_SECONDS:
            raise bad_request("Token is still valid, refresh not needed")
        return self.generate_token(claims.user_id, claims.username)
