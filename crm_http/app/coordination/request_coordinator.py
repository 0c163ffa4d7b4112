"""
Request coordinator.

Collapses concurrent identical calls into one network attempt sequence. The
in-flight registry is only touched synchronously right before and right
after the awaited call, which is safe on a single event loop; a
multi-threaded port would need a lock around insert and remove.
"""

import asyncio
import json
from typing import Any, Callable, Dict, Optional

from crm_common.errors import ApiError, ApiErrorKind
from crm_common.logging import bind_call_context, get_logger
from ..adapters.transport import Transport, TransportRequest, TransportResponse
from ..auth.session_guard import SessionGuard
from ..caching.soft_cache import SoftResponseCache
from ..domain.models import MUTATING_METHODS, DecodedResponse, RequestKey, RetryContext, is_binary_body, serialize_body
from ..resilience.retry_engine import RetryPolicyEngine

JSON_CONTENT_TYPE = "application/json"


def decode_payload(response: TransportResponse) -> Any:
    """JSON when the response declares it, otherwise the body text."""
    text = response.text
    if JSON_CONTENT_TYPE not in response.content_type.lower():
        return text
    if not text.strip():
        return None
    try:
        return json.loads(text)
    except ValueError:
        get_logger("crm_http.coordinator").warning(
            "Response declared JSON but did not parse, returning text",
            status_code=response.status_code
        )
        return text


def _consume_outcome(task: "asyncio.Future[Any]") -> None:
    # Mark the outcome as retrieved even when every waiter was cancelled
    if not task.cancelled():
        task.exception()


class RequestCoordinator:
    """Issues logical calls, sharing one in-flight call per RequestKey."""

    def __init__(self,
                 transport: Transport,
                 session_guard: SessionGuard,
                 retry_engine: RetryPolicyEngine,
                 build_url: Callable[[str], str],
                 cache: Optional[SoftResponseCache] = None,
                 bypass: Optional[Callable[[], bool]] = None):
        self.transport = transport
        self.session_guard = session_guard
        self.retry_engine = retry_engine
        self.build_url = build_url
        self.cache = cache
        self._bypass = bypass or (lambda: False)
        self._inflight: Dict[RequestKey, "asyncio.Future[Any]"] = {}
        self.logger = get_logger("crm_http.coordinator")

    @property
    def in_flight(self) -> int:
        return len(self._inflight)

    def is_in_flight(self, key: RequestKey) -> bool:
        return key in self._inflight

    def detach_reads(self) -> int:
        """Stop sharing in-flight GETs; later callers start a fresh call.

        Running calls still settle for the callers already attached.
        """
        stale = [key for key in self._inflight if key.method not in MUTATING_METHODS]
        for key in stale:
            del self._inflight[key]
        return len(stale)

    async def issue(self,
                    method: str,
                    path: str,
                    body: Any = None,
                    shape: str = "raw",
                    parse: Optional[Callable[[DecodedResponse], Any]] = None) -> Any:
        """Run a logical call, or attach to an identical one already running.

        ``parse`` turns the final decoded response into the caller's result;
        callers sharing a call receive the very same parsed object.
        """
        token = self.session_guard.resolve_token()
        key = RequestKey.build(method, path, token, body, shape)

        shared = not self._bypass()
        if shared:
            existing = self._inflight.get(key)
            if existing is not None:
                self.logger.debug("Joined in-flight request", method=key.method, endpoint=key.path)
                return await asyncio.shield(existing)

        task = asyncio.ensure_future(self._settle(key, token, body, parse))
        task.add_done_callback(_consume_outcome)
        if shared:
            self._inflight[key] = task
        # A cancelled caller must not cancel the call other callers share
        return await asyncio.shield(task)

    async def _settle(self,
                      key: RequestKey,
                      token: Optional[str],
                      body: Any,
                      parse: Optional[Callable[[DecodedResponse], Any]]) -> Any:
        try:
            bind_call_context(key.method, key.path)
            self.logger.debug("Starting request")
            wire_body = self._encode_body(body)
            decoded = await self.retry_engine.attempt(
                lambda ctx: self._execute_once(ctx, key, token, body, wire_body),
                method=key.method,
                endpoint=key.path,
                request_body=body,
            )
            return parse(decoded) if parse is not None else decoded.payload
        finally:
            # Bypass-mode calls are never registered and must not evict a shared one
            if self._inflight.get(key) is asyncio.current_task():
                del self._inflight[key]

    def _encode_body(self, body: Any) -> Any:
        if body is None or is_binary_body(body):
            return body
        try:
            return serialize_body(body)
        except (TypeError, ValueError) as exc:
            raise ApiError(
                f"Request body could not be encoded: {exc}",
                kind=ApiErrorKind.TRANSPORT
            ) from exc

    def _build_headers(self, token: Optional[str], body: Any) -> Dict[str, str]:
        headers = {"Accept": JSON_CONTENT_TYPE}
        if token and token.strip():
            headers["Authorization"] = f"Bearer {token.strip()}"
        if body is not None and not is_binary_body(body):
            headers["Content-Type"] = JSON_CONTENT_TYPE
        return headers

    async def _execute_once(self,
                            ctx: RetryContext,
                            key: RequestKey,
                            token: Optional[str],
                            body: Any,
                            wire_body: Any) -> DecodedResponse:
        request = TransportRequest(
            method=key.method,
            url=self.build_url(key.path),
            headers=self._build_headers(token, body),
            body=wire_body,
        )

        try:
            response = await self.transport.send(request)
        except Exception as exc:
            raise ApiError(
                f"Network request failed: {exc}",
                kind=ApiErrorKind.TRANSPORT
            ) from exc

        payload = decode_payload(response)
        if not response.ok:
            error = ApiError.from_response(response.status_code, payload)
            if error.is_unauthorized and not ctx.unauthorized_handled:
                ctx.unauthorized_handled = True
                self._handle_unauthorized()
            raise error

        return DecodedResponse(response.status_code, payload, response.content_type)

    def _handle_unauthorized(self) -> None:
        if self.cache is not None:
            self.cache.clear()
        redirected = self.session_guard.handle_unauthorized()
        self.logger.warning("Unauthorized response, session cleared", redirected=redirected)
