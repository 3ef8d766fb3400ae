import uuid
from typing import Any, Optional

from pydantic import BaseModel, Field


def _rid():
    """Generates a unique request ID for tracing."""
    return uuid.uuid4().hex


class SuccessResponse(BaseModel):
    """Success envelope: data, success flag and request_id"""
    success: bool = True
    request_id: str = Field(default_factory=_rid)
    data: Optional[Any] = None


class ErrorDetail(BaseModel):
    code: str  # AppError kind, or http_error / validation_error / server_error
    message: Any
    details: Optional[Any] = None


class ErrorResponse(BaseModel):
    """Error envelope returned by every exception handler"""
    success: bool = False
    request_id: str = Field(default_factory=_rid)
    error: ErrorDetail
