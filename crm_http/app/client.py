"""
API client: the typed verb surface every domain service calls.

Enveloped verbs validate the ``{success, data, message}`` contract; the raw
variants return the decoded body as-is. Any successful mutating call clears
the soft cache.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional, Type, TypeVar

from pydantic import ValidationError

from crm_common.config import ApiSettings, get_settings
from crm_common.errors import ApiError, ApiErrorKind
from crm_common.logging import configure_logging, get_logger
from crm_common.metrics import MetricsCollector
from crm_common.retry import RetryPolicy
from .adapters.clock import Clock, SystemClock
from .adapters.navigation import InMemoryNavigator, Navigator
from .adapters.storage import CredentialStorage, JsonFileKeyValueStore, MemoryKeyValueStore
from .adapters.transport import HttpxTransport, Transport
from .auth.session_guard import SessionGuard
from .caching.soft_cache import SoftResponseCache
from .coordination.request_coordinator import RequestCoordinator
from .domain.models import ApiEnvelope, DecodedResponse, MUTATING_METHODS
from .resilience.retry_engine import RetryPolicyEngine
from .telemetry.emitter import TelemetryEmitter
from .telemetry.sinks import CompositeTelemetrySink, LoggingTelemetrySink, PrometheusTelemetrySink, TelemetrySink

T = TypeVar("T")


def envelope_parser(data_type: Optional[Type[Any]] = None) -> Callable[[DecodedResponse], ApiEnvelope[Any]]:
    """Build a parser validating the envelope, and ``data`` against ``data_type`` if given."""
    model = ApiEnvelope if data_type is None else ApiEnvelope[data_type]  # type: ignore[valid-type]

    def parse(decoded: DecodedResponse) -> ApiEnvelope[Any]:
        try:
            return model.model_validate(decoded.payload)
        except ValidationError as exc:
            raise ApiError(
                "Response did not match the API envelope",
                kind=ApiErrorKind.INVALID_ENVELOPE,
                status_code=decoded.status_code,
                payload=decoded.payload
            ) from exc

    return parse


class ApiClient:
    """Request layer entry point; construct once and inject where needed."""

    def __init__(self,
                 transport: Transport,
                 settings: Optional[ApiSettings] = None,
                 storage: Optional[CredentialStorage] = None,
                 navigator: Optional[Navigator] = None,
                 clock: Optional[Clock] = None,
                 telemetry_sink: Optional[TelemetrySink] = None,
                 metrics: Optional[MetricsCollector] = None,
                 bypass: Optional[Callable[[], bool]] = None,
                 retry_policy: Optional[RetryPolicy] = None,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self.settings = settings or get_settings()
        self.transport = transport
        self.clock = clock or SystemClock()
        self.metrics = metrics
        self.logger = get_logger("crm_http.client")
        self.bypass = bypass or (lambda: self.settings.api_bypass_mode)

        self.cache = SoftResponseCache(self.clock, self.bypass)
        self.session = SessionGuard(
            storage or CredentialStorage(),
            navigator or InMemoryNavigator(),
            login_path=self.settings.api_login_path
        )
        self.telemetry = TelemetryEmitter(
            telemetry_sink,
            self.clock,
            max_queue=self.settings.api_telemetry_queue_size,
            metrics=metrics
        )
        self.retry_engine = RetryPolicyEngine(
            retry_policy or RetryPolicy.from_settings(self.settings),
            self.telemetry,
            self.clock,
            sleep=sleep
        )
        self.coordinator = RequestCoordinator(
            transport,
            self.session,
            self.retry_engine,
            build_url=self.settings.build_url,
            cache=self.cache,
            bypass=self.bypass
        )

    # Enveloped verbs

    async def get(self, path: str, data_type: Optional[Type[T]] = None) -> ApiEnvelope[T]:
        return await self._request("GET", path, data_type=data_type)

    async def post(self, path: str, body: Any, data_type: Optional[Type[T]] = None) -> ApiEnvelope[T]:
        return await self._request("POST", path, body, data_type)

    async def patch(self, path: str, body: Any, data_type: Optional[Type[T]] = None) -> ApiEnvelope[T]:
        return await self._request("PATCH", path, body, data_type)

    async def put(self, path: str, body: Any, data_type: Optional[Type[T]] = None) -> ApiEnvelope[T]:
        return await self._request("PUT", path, body, data_type)

    async def delete(self, path: str, data_type: Optional[Type[T]] = None) -> ApiEnvelope[T]:
        return await self._request("DELETE", path, data_type=data_type)

    # Passthrough verbs

    async def raw_get(self, path: str) -> Any:
        return await self._request_raw("GET", path)

    async def raw_post(self, path: str, body: Any) -> Any:
        return await self._request_raw("POST", path, body)

    async def get_cached(self,
                         path: str,
                         cache_key: str,
                         ttl_ms: float,
                         data_type: Optional[Type[T]] = None) -> ApiEnvelope[T]:
        """GET through the soft cache under a caller-assembled key.

        A read that overlapped a successful mutation is returned but not stored.
        """
        generation = self.cache.generation
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        envelope = await self.get(path, data_type=data_type)
        if envelope.success:
            self.cache.set_if_current(cache_key, envelope, ttl_ms, generation)
        return envelope

    async def _request(self,
                       method: str,
                       path: str,
                       body: Any = None,
                       data_type: Optional[Type[Any]] = None) -> ApiEnvelope[Any]:
        shape = "envelope" if data_type is None else f"envelope:{data_type!r}"
        envelope = await self.coordinator.issue(
            method, path, body, shape=shape, parse=envelope_parser(data_type)
        )
        self._after_success(method)
        return envelope

    async def _request_raw(self, method: str, path: str, body: Any = None) -> Any:
        payload = await self.coordinator.issue(method, path, body, shape="raw")
        self._after_success(method)
        return payload

    def _after_success(self, method: str) -> None:
        # Coarse invalidation: any successful mutation may stale any cached read
        if method in MUTATING_METHODS:
            self.cache.clear()
            self.coordinator.detach_reads()

    async def __aenter__(self) -> "ApiClient":
        self.telemetry.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.telemetry.aclose()
        close = getattr(self.transport, "aclose", None)
        if close is not None:
            await close()


def build_client(settings: Optional[ApiSettings] = None, **overrides: Any) -> ApiClient:
    """Wire an ApiClient from configuration with production defaults.

    Any constructor argument of :class:`ApiClient` can be overridden.
    """
    settings = settings or get_settings()
    configure_logging("crm_http", settings.api_log_level)

    if "storage" not in overrides:
        durable = (
            JsonFileKeyValueStore(settings.api_storage_path)
            if settings.api_storage_path
            else MemoryKeyValueStore()
        )
        overrides["storage"] = CredentialStorage(durable=durable, session=MemoryKeyValueStore())

    if "telemetry_sink" not in overrides:
        if overrides.get("metrics") is None:
            overrides["metrics"] = MetricsCollector()
        metrics = overrides["metrics"]
        overrides["telemetry_sink"] = CompositeTelemetrySink([
            LoggingTelemetrySink(),
            PrometheusTelemetrySink(metrics),
        ])

    transport = overrides.pop("transport", None) or HttpxTransport(timeout=settings.api_transport_timeout)
    get_logger("crm_http.client").info(
        "API client configured",
        base_url=settings.resolved_base_url() or None,
        max_retries=settings.api_max_retries,
        backoff=settings.api_retry_backoff,
        bypass_mode=settings.api_bypass_mode,
        env=settings.api_env
    )
    return ApiClient(transport, settings=settings, **overrides)
