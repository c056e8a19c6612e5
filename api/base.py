"""Unified API response envelope: {success, data, error, meta}."""

from typing import Any
from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, Field
from starlette.requests import Request

from utils.timezone import now_utc


class APIError(BaseModel):
    """Error details in API response."""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    field: str | None = Field(None, description="Offending input field, when known")


class APIMeta(BaseModel):
    """Metadata included in every API response."""

    timestamp: datetime = Field(..., description="Response timestamp (UTC)")
    request_id: str = Field(..., description="Matches the X-Request-ID response header")


class APIResponse(BaseModel):
    """
    Unified response format for all API endpoints.

    Every endpoint returns this structure, making client parsing predictable.
    """

    success: bool
    data: Any | None = None
    error: APIError | None = None
    meta: APIMeta


def request_id_of(request: Request | None) -> str:
    """Request id assigned by RequestIDMiddleware, or a fresh one."""
    if request is not None:
        request_id = getattr(request.state, "request_id", None)
        if request_id:
            return request_id
    return str(uuid4())


def _meta(request: Request | None) -> APIMeta:
    return APIMeta(timestamp=now_utc(), request_id=request_id_of(request))


def success_response(data: Any, request: Request | None = None) -> APIResponse:
    """Create a success response."""
    return APIResponse(success=True, data=data, error=None, meta=_meta(request))


def error_response(
    code: str,
    message: str,
    request: Request | None = None,
    field: str | None = None
) -> APIResponse:
    """Create an error response."""
    return APIResponse(
        success=False,
        data=None,
        error=APIError(code=code, message=message, field=field),
        meta=_meta(request),
    )


class ErrorCodes:
    """
    Standard error codes for consistent error handling.

    Clients branch on the code, never on the message text.
    """

    # Identity
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    CLINIC_NOT_RESOLVED = "CLINIC_NOT_RESOLVED"

    # Resource Errors
    NOT_FOUND = "NOT_FOUND"

    # Validation Errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"

    # Appointment
    INVALID_TIME_RANGE = "INVALID_TIME_RANGE"

    # Invoice
    EMAIL_SEND_FAILED = "EMAIL_SEND_FAILED"

    # Infrastructure
    PERSISTENCE_ERROR = "PERSISTENCE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"
