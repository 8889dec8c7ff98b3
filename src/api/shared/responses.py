"""
Standard API Response Models

Every JSON endpoint answers with a ``data``/``meta`` envelope; errors
answer with an ``error`` body.
"""

from datetime import datetime, timezone
from typing import TypeVar, Generic, Optional, List

from pydantic import BaseModel, Field, field_serializer

from ...core.observability.logging import current_trace_id


T = TypeVar('T')


def _utcnow() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def _zulu(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


class ResponseMeta(BaseModel):
    """Metadata included in all responses."""

    trace_id: str = Field(default_factory=current_trace_id)
    timestamp: datetime = Field(default_factory=_utcnow)

    @field_serializer("timestamp")
    def _serialize_timestamp(self, value: datetime) -> str:
        return _zulu(value)


class SuccessResponse(BaseModel, Generic[T]):
    """
    Standard success response wrapper.

    Response shape:
    {
        "data": { ... },
        "meta": {"trace_id": "abc-123", "timestamp": "2026-01-19T12:00:00Z"}
    }
    """

    data: T
    meta: ResponseMeta = Field(default_factory=ResponseMeta)

    @classmethod
    def create(cls, data: T) -> "SuccessResponse[T]":
        return cls(data=data)


class ListMeta(ResponseMeta):
    """Metadata for list responses."""

    total: int = 0
    limit: Optional[int] = None
    offset: int = 0
    has_more: bool = False


class ListResponse(BaseModel, Generic[T]):
    """
    Standard list response.

    ``limit``/``offset`` slice the full result; without a limit the whole
    list is returned.
    """

    data: List[T]
    meta: ListMeta

    @classmethod
    def create(
        cls,
        items: List[T],
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> "ListResponse[T]":
        total = len(items)
        page = items[offset:offset + limit] if limit else items[offset:]
        meta = ListMeta(
            total=total,
            limit=limit,
            offset=offset,
            has_more=(offset + len(page)) < total
        )
        return cls(data=page, meta=meta)


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
    trace_id: str = Field(default_factory=current_trace_id)
    timestamp: datetime = Field(default_factory=_utcnow)

    @field_serializer("timestamp")
    def _serialize_timestamp(self, value: datetime) -> str:
        return _zulu(value)


class ErrorResponse(BaseModel):
    """
    Standard error response.

    Response shape:
    {
        "error": {
            "code": "STAGE_UPDATE_FAILED",
            "message": "Failed to update deal stage. Please try again.",
            "details": [...],
            "trace_id": "abc-123",
            "timestamp": "2026-01-19T12:00:00Z"
        }
    }
    """

    error: ErrorBody
