"""
Value types for the request layer.
"""

import hashlib
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, NamedTuple, Optional, Tuple, TypeVar

from pydantic import BaseModel, ConfigDict, StrictBool

T = TypeVar("T")

HttpMethod = str  # one of "GET", "POST", "PUT", "PATCH", "DELETE"

MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

UNSERIALIZABLE_BODY = "<unserializable>"


class ApiEnvelope(BaseModel, Generic[T]):
    """The ``{success, data, message}`` contract wrapping most responses."""

    model_config = ConfigDict(extra="allow")

    success: StrictBool
    data: Optional[T] = None
    message: Optional[str] = None


class TelemetryOutcome(str, Enum):
    OK = "ok"
    FAILED = "failed"
    RETRY_ATTEMPT = "retry_attempt"


class TelemetryEvent(BaseModel):
    """One record per transport attempt, plus one per retry decision."""

    timestamp: str
    endpoint: str
    method: str
    latency_ms: float
    outcome: TelemetryOutcome
    http_status: Optional[int] = None
    retry_attempt: int = 0
    request_bytes: int = 0
    response_bytes: int = 0
    message: Optional[str] = None


@dataclass
class MultipartForm:
    """Binary/multipart request body, handed to the transport unmodified.

    ``files`` maps a field name to ``(filename, content, content_type)``.
    """
    fields: Dict[str, str] = field(default_factory=dict)
    files: Dict[str, Tuple[str, bytes, str]] = field(default_factory=dict)


def is_binary_body(body: Any) -> bool:
    """Whether the body is a form the transport must encode itself."""
    return isinstance(body, (MultipartForm, bytes, bytearray))


def serialize_body(body: Any, canonical: bool = False) -> Optional[str]:
    """Encode a structured body as JSON text; None when there is no body.

    Values json cannot represent natively (dates, decimals, UUIDs) are sent
    as strings. ``canonical`` sorts keys so equal bodies encode identically.
    """
    if body is None:
        return None
    if isinstance(body, BaseModel):
        body = body.model_dump(mode="json")
    if canonical:
        return json.dumps(body, separators=(",", ":"), sort_keys=True, default=str)
    return json.dumps(body, default=str)


def normalize_path(path: str) -> str:
    """Give a relative API path its leading slash, as URLs are built from it."""
    return path if path.startswith("/") else f"/{path}"


def token_fingerprint(token: Optional[str]) -> str:
    """Short stable digest identifying a credential without holding it."""
    if not token:
        return ""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]


class RequestKey(NamedTuple):
    """Identifies a logical in-flight call for deduplication."""
    method: str
    path: str
    token_fingerprint: str
    body: str
    shape: str = "raw"

    @classmethod
    def build(cls, method: str, path: str, token: Optional[str], body: Any, shape: str = "raw") -> "RequestKey":
        if body is None:
            serialized = ""
        elif is_binary_body(body):
            # Distinct uploads must never collapse into one call
            serialized = f"{UNSERIALIZABLE_BODY}:{id(body)}"
        else:
            try:
                serialized = serialize_body(body, canonical=True) or ""
            except (TypeError, ValueError):
                serialized = f"{UNSERIALIZABLE_BODY}:{id(body)}"
        return cls(method.upper(), normalize_path(path), token_fingerprint(token), serialized, shape)


@dataclass
class RetryContext:
    """Retry bookkeeping for one logical call."""
    max_retries: int
    started_at: float
    attempt_number: int = 0
    unauthorized_handled: bool = False

    @property
    def can_retry(self) -> bool:
        return self.attempt_number < self.max_retries


@dataclass
class DecodedResponse:
    """A successful transport attempt with its decoded body."""
    status_code: int
    payload: Any
    content_type: str = ""
