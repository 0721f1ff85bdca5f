"""
Shared error handling for the Dashboard Control layer.

Denials and failed verifications are results, not errors. The exceptions
here cover malformed input and infrastructure problems; each carries the
HTTP status the service layer answers with.
"""

from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field

from opentelemetry import trace


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


def current_trace_id() -> Optional[str]:
    current_span = trace.get_current_span()
    if current_span and current_span.is_recording():
        span_context = current_span.get_span_context()
        if span_context.trace_id != 0:
            return f"{span_context.trace_id:032x}"
    return None


class AccessLayerException(Exception):
    """Base exception for Dashboard Control services."""

    status_code = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            trace_id=current_trace_id(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class ValidationError(AccessLayerException):
    """Request values that parse but are not acceptable."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)

    @classmethod
    def from_request_errors(cls, errors: List[Dict[str, Any]]) -> "ValidationError":
        """Build from FastAPI/pydantic error dicts, keeping only JSON-safe fields."""
        return cls(
            "Request validation failed",
            {
                "errors": [
                    {"loc": [str(part) for part in e.get("loc", ())], "msg": e.get("msg"), "type": e.get("type")}
                    for e in errors
                ]
            }
        )


class DeclarationError(AccessLayerException):
    """Malformed dashboard declaration, raised at construction time."""

    status_code = 500

    def __init__(self, message: str = "Invalid dashboard declaration", details: Optional[Dict[str, Any]] = None):
        super().__init__("DECLARATION_ERROR", message, details)


class SnapshotError(AccessLayerException):
    """Snapshot cannot be generated or decoded."""

    def __init__(self, message: str = "Invalid snapshot", details: Optional[Dict[str, Any]] = None):
        super().__init__("SNAPSHOT_ERROR", message, details)


class NotFoundError(AccessLayerException):
    """Requested resource does not exist."""

    status_code = 404

    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class CacheError(AccessLayerException):
    """Snapshot cache backend is unreachable."""

    status_code = 503

    def __init__(self, message: str = "Snapshot cache unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("CACHE_UNAVAILABLE", message, details)
