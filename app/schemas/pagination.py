"""Pagination parameters and metadata."""

from __future__ import annotations

from pydantic import BaseModel

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


class PaginationParams(BaseModel):
    """Normalized page request."""

    page: int
    page_size: int
    offset: int

    @classmethod
    def create(cls, page: int, page_size: int) -> PaginationParams:
        """Clamp raw values: page below 1 becomes 1, page size outside 1..100 becomes 10."""
        if page < 1:
            page = 1
        if page_size < 1 or page_size > MAX_PAGE_SIZE:
            page_size = DEFAULT_PAGE_SIZE
        return cls(page=page, page_size=page_size, offset=(page - 1) * page_size)


class PaginationMeta(BaseModel):
    """Page metadata returned in the response envelope ``meta``."""

    page: int
    page_size: int
    total: int
    total_pages: int
    has_next: bool
    has_previous: bool

    @classmethod
    def create(cls, page: int, page_size: int, total: int) -> PaginationMeta:
        total_pages = (total + page_size - 1) // page_size
        return cls(
            page=page,
            page_size=page_size,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_previous=page > 1,
        )


def parse_pagination(page: str | None, page_size: str | None) -> PaginationParams | None:
    """Build params from raw query values; ``None`` when neither is given.

    Unparseable or out-of-range values fall back to the defaults.
    """
    if not page and not page_size:
        return None
    return PaginationParams.create(_positive_int(page, 1), _positive_int(page_size, DEFAULT_PAGE_SIZE))


def _positive_int(raw: str | None, default: int) -> int:
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default
