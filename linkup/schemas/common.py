"""
Linkup Backend - Shared Response Schemas
==========================================

What:  The camelCase base model plus response shapes used by several routes.
How:   Field names are snake_case in Python and camelCase on the wire
       (`alias_generator=to_camel`); models can be built straight from ORM
       rows (`from_attributes`).
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ══════════════════════════════════════════════════════════════════════════
# Pagination
# ══════════════════════════════════════════════════════════════════════════


class PaginationMeta(CamelModel):
    """
    Offset pagination summary returned with every post listing.

    pages    = ceil(total / limit)
    has_next = (page - 1) * limit + limit < total
    has_prev = page > 1
    """

    page: int = Field(description="Current page (1-based)")
    limit: int = Field(description="Page size (1-50)")
    total: int = Field(description="Total matching items")
    pages: int = Field(description="Total number of pages")
    has_next: bool = Field(description="Another page follows")
    has_prev: bool = Field(description="A page precedes")

    @classmethod
    def compute(cls, page: int, limit: int, total: int) -> "PaginationMeta":
        skip = (page - 1) * limit
        return cls(
            page=page,
            limit=limit,
            total=total,
            pages=-(-total // limit),
            has_next=skip + limit < total,
            has_prev=page > 1,
        )


# ══════════════════════════════════════════════════════════════════════════
# Envelopes (documentation only; responses are built by linkup.api.envelope)
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(CamelModel):
    """
    Failure envelope.

    Example:
        {
            "success": false,
            "error": "Validation failed",
            "code": "VALIDATION_ERROR",
            "details": {"errors": ["content is required"]},
            "timestamp": "2024-01-15T12:00:00.000Z",
            "requestId": "req_1705320000000_k3j9x0a2b"
        }
    """

    success: bool = Field(default=False)
    error: str = Field(description="Human-readable error message")
    code: str = Field(description="Machine-readable error code")
    details: Optional[Any] = Field(default=None, description="Extra context (hidden in production for internal errors)")
    timestamp: str = Field(description="ISO-8601 UTC with milliseconds")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(CamelModel):
    status: str = Field(description="healthy or unhealthy")
    version: str = Field(description="Application version")
    environment: str = Field(description="development, test or production")
    database: str = Field(description="connected or disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")
