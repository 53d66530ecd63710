"""
Standard API Response Models

Provides consistent response shapes across all endpoints.
"""

from datetime import datetime, timezone
from typing import TypeVar, Generic, Optional, List
from uuid import uuid4

from pydantic import BaseModel, Field


T = TypeVar('T')


def _utcnow() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


class ListMeta(BaseModel):
    """Metadata for list responses with pagination."""

    trace_id: str = Field(default_factory=lambda: str(uuid4()))
    total: int = 0
    limit: int = 20
    offset: int = 0
    has_more: bool = False


class ListResponse(BaseModel, Generic[T]):
    """
    Standard list response with pagination.

    Response shape:
    {
        "data": [ ... ],
        "meta": {"total": 100, "limit": 20, "offset": 0, "has_more": true, "trace_id": "..."}
    }
    """

    data: List[T]
    meta: ListMeta

    @classmethod
    def create(
        cls,
        data: List[T],
        total: int,
        limit: int = 20,
        offset: int = 0,
        trace_id: Optional[str] = None
    ) -> "ListResponse[T]":
        meta = ListMeta(
            trace_id=trace_id or str(uuid4()),
            total=total,
            limit=limit,
            offset=offset,
            has_more=(offset + len(data)) < total
        )
        return cls(data=data, meta=meta)


class ErrorDetail(BaseModel):
    """Detailed error information for validation errors."""

    field: Optional[str] = None
    message: str
    code: Optional[str] = None


class ErrorBody(BaseModel):
    """Error body with code, message, and details."""

    code: str
    message: str
    details: Optional[List[ErrorDetail]] = None
    trace_id: str = Field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = Field(default_factory=_utcnow)
