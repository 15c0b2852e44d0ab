"""Pydantic schemas for user API payloads."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel
from pydantic import ConfigDict


class UserCreate(BaseModel):
    """Payload to create a user; field rules are checked by the service."""

    username: str = ""
    password: str = ""


class UserUpdate(BaseModel):
    """Payload to update mutable user fields."""

    username: str | None = None
    password: str | None = None


class User(BaseModel):
    """User response payload. The password hash is never exposed."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
    created_at: datetime
