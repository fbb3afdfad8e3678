"""Common Pydantic schemas shared across the API."""

from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, Field


class TimestampMixin(BaseModel):
    """Mixin for timestamp fields."""

    created_at: datetime = Field(description="Timestamp when the resource was created")
    updated_at: datetime = Field(description="Timestamp when the resource was last updated")


class ErrorBody(BaseModel):
    code: str = Field(description="Error code for programmatic handling")
    message: str = Field(description="Human readable error message")
    path: Optional[str] = None
    method: Optional[str] = None
    request_id: Optional[str] = None
    details: Optional[Any] = Field(None, description="Structured error details")


class ErrorResponse(BaseModel):
    """Error envelope returned by every failing endpoint."""

    error: ErrorBody


# Documented on the mutating recruitment endpoints
CONFLICT_RESPONSES = {
    404: {"model": ErrorResponse, "description": "Unknown phase configuration"},
    409: {"model": ErrorResponse, "description": "Phase state conflict"},
}
