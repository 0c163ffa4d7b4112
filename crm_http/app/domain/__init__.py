"""
Wire contracts and value types shared by the request layer components.
"""

from .models import (
    ApiEnvelope,
    DecodedResponse,
    HttpMethod,
    MultipartForm,
    RequestKey,
    RetryContext,
    TelemetryEvent,
    TelemetryOutcome,
    MUTATING_METHODS,
)

__all__ = [
    "ApiEnvelope",
    "DecodedResponse",
    "HttpMethod",
    "MultipartForm",
    "RequestKey",
    "RetryContext",
    "TelemetryEvent",
    "TelemetryOutcome",
    "MUTATING_METHODS",
]
