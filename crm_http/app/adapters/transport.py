"""
Network transport capability and its httpx implementation.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol, Union

import httpx

from crm_common.logging import get_logger
from ..domain.models import MultipartForm


@dataclass
class TransportRequest:
    """A fully prepared request; ``body`` is JSON text, raw bytes or a form."""
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Union[str, bytes, bytearray, MultipartForm, None] = None


@dataclass
class TransportResponse:
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    content: bytes = b""

    def __post_init__(self):
        self.headers = {k.lower(): v for k, v in self.headers.items()}

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")


class Transport(Protocol):
    async def send(self, request: TransportRequest) -> TransportResponse:
        """Perform one network round trip; raise when no response is obtained."""
        ...


class HttpxTransport:
    """Transport over a shared ``httpx.AsyncClient``."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = 30.0):
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self.logger = get_logger("crm_http.transport")

    async def send(self, request: TransportRequest) -> TransportResponse:
        kwargs: Dict[str, Any] = {"headers": request.headers}
        body = request.body
        if isinstance(body, MultipartForm):
            # httpx builds the multipart boundary and content type
            kwargs["data"] = body.fields
            kwargs["files"] = body.files
        elif isinstance(body, bytearray):
            # httpx treats a bytearray as a sync byte stream
            kwargs["content"] = bytes(body)
        elif body is not None:
            kwargs["content"] = body

        response = await self.client.request(request.method, request.url, **kwargs)
        self.logger.debug(
            "Transport round trip complete",
            url=request.url,
            status_code=response.status_code
        )
        return TransportResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            content=response.content
        )

    async def aclose(self):
        if self._owns_client:
            await self.client.aclose()
