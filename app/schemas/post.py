"""Pydantic schemas for post API payloads."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel
from pydantic import ConfigDict


class PostCreate(BaseModel):
    """Payload to create a post."""

    title: str = ""
    content: str = ""


class PostUpdate(BaseModel):
    """Payload to update mutable post fields."""

    title: str | None = None
    content: str | None = None


class Post(BaseModel):
    """Post response payload."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    title: str
    content: str
    created_at: datetime
