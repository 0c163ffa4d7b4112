"""
Shared error handling for the CRM HTTP access layer.
"""

from enum import Enum
from typing import Dict, Any, Optional, Mapping
from pydantic import BaseModel
from opentelemetry import trace


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class ClientLayerException(Exception):
    """Base exception for the request layer."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        trace_id = None
        current_span = trace.get_current_span()
        if current_span and current_span.is_recording():
            span_context = current_span.get_span_context()
            if span_context.trace_id != 0:
                trace_id = f"{span_context.trace_id:032x}"

        return ErrorResponse(
            trace_id=trace_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class ApiErrorKind(str, Enum):
    """Failure variants surfaced by the request layer."""
    TRANSPORT = "transport"                # no response was obtained
    HTTP = "http"                          # non-2xx response
    UNAUTHORIZED = "unauthorized"          # 401 response
    INVALID_ENVELOPE = "invalid_envelope"  # 2xx body broke the envelope contract


class ApiError(ClientLayerException):
    """The single error shape surfaced to callers of the request layer."""

    def __init__(self,
                 message: str,
                 kind: ApiErrorKind = ApiErrorKind.HTTP,
                 status_code: Optional[int] = None,
                 payload: Any = None):
        details: Dict[str, Any] = {"kind": kind.value}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__("API_ERROR", message, details)
        self.kind = kind
        self.status_code = status_code
        self.payload = payload

    @property
    def is_unauthorized(self) -> bool:
        return self.kind is ApiErrorKind.UNAUTHORIZED

    @classmethod
    def from_response(cls, status_code: int, payload: Any) -> "ApiError":
        """Build an error from a non-2xx response and its decoded payload."""
        kind = ApiErrorKind.UNAUTHORIZED if status_code == 401 else ApiErrorKind.HTTP
        return cls(
            extract_message(payload, status_code),
            kind=kind,
            status_code=status_code,
            payload=payload
        )

    def __repr__(self) -> str:
        return f"ApiError(kind={self.kind.value!r}, status_code={self.status_code!r}, message={self.message!r})"


def extract_message(payload: Any, status_code: int) -> str:
    """Pick the human-readable message out of an error payload."""
    if isinstance(payload, Mapping) and "message" in payload:
        return str(payload["message"])
    return f"Request failed ({status_code})"


class ConfigurationError(ClientLayerException):
    """Configuration-related errors."""

    def __init__(self, message: str = "Invalid configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)
