"""Response envelope schemas shared across API handlers."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class SuccessEnvelope(BaseModel):
    """Top-level success envelope; ``data`` is attached after encoding."""

    success: bool = True
    message: str | None = None
    meta: Any = None
    timestamp: str
    request_id: str | None = None


class ErrorEnvelope(BaseModel):
    """Top-level error envelope."""

    success: bool = False
    error: str
    code: str
    details: str | None = None
    context: dict[str, Any] | None = None
    timestamp: str
    request_id: str | None = None
