"""
Shared HTTP request layer for the CRM web backend.

Domain services build a path and funnel through ``ApiClient``; this package
coordinates duplicate in-flight calls, retries failures, keeps a short-lived
response cache, handles expired sessions and emits per-attempt telemetry.
"""

from .app.client import ApiClient, build_client
from .app.domain.models import ApiEnvelope, MultipartForm, TelemetryEvent
from crm_common.errors import ApiError, ApiErrorKind

__all__ = [
    "ApiClient",
    "ApiEnvelope",
    "ApiError",
    "ApiErrorKind",
    "MultipartForm",
    "TelemetryEvent",
    "build_client",
]
