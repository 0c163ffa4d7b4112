"""
Telemetry emitter.

Events go through a bounded queue that a background task drains into the
sink. Nothing in here may raise into the request path: a full queue drops
the event and bumps ``dropped``; a failing sink bumps ``sink_failures``.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Optional, TYPE_CHECKING

from crm_common.logging import get_logger
from ..adapters.clock import Clock, SystemClock, elapsed_ms
from ..domain.models import TelemetryEvent, TelemetryOutcome, is_binary_body, serialize_body
from .sinks import TelemetrySink, InMemoryTelemetrySink

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from crm_common.metrics import MetricsCollector


def payload_size(body: Any) -> int:
    """Approximate UTF-8 size of a body; 0 for binary forms or on failure."""
    if body is None or is_binary_body(body):
        return 0
    try:
        text = body if isinstance(body, str) else serialize_body(body)
        return len(text.encode("utf-8"))
    except Exception:
        return 0


class TelemetryEmitter:
    """Non-blocking side channel for request telemetry."""

    def __init__(self,
                 sink: Optional[TelemetrySink] = None,
                 clock: Optional[Clock] = None,
                 max_queue: int = 1000,
                 metrics: Optional["MetricsCollector"] = None):
        self.sink = sink if sink is not None else InMemoryTelemetrySink()
        self.clock = clock or SystemClock()
        self.metrics = metrics
        self.logger = get_logger("crm_http.telemetry")
        self._queue: "asyncio.Queue[TelemetryEvent]" = asyncio.Queue(maxsize=max_queue)
        self._flush_task: Optional[asyncio.Task] = None

        self.emitted = 0
        self.dropped = 0
        self.sink_failures = 0

    def emit(self, event: TelemetryEvent) -> bool:
        """Queue an event; returns False when it had to be dropped."""
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            if self.metrics is not None:
                self.metrics.record_telemetry_drop()
            self.logger.warning("Telemetry queue full, event dropped", dropped=self.dropped)
            return False
        self.emitted += 1
        self._start_if_loop_running()
        return True

    def record_attempt(self,
                       method: str,
                       endpoint: str,
                       started_at: float,
                       outcome: TelemetryOutcome,
                       http_status: Optional[int] = None,
                       retry_attempt: int = 0,
                       request_body: Any = None,
                       response_payload: Any = None,
                       message: Optional[str] = None) -> Optional[TelemetryEvent]:
        """Build an event for one attempt (or retry decision) and queue it."""
        try:
            event = TelemetryEvent(
                timestamp=datetime.fromtimestamp(self.clock.now(), tz=timezone.utc).isoformat(),
                endpoint=endpoint,
                method=method,
                latency_ms=elapsed_ms(self.clock, started_at),
                outcome=outcome,
                http_status=http_status,
                retry_attempt=retry_attempt,
                request_bytes=payload_size(request_body),
                response_bytes=payload_size(response_payload),
                message=message,
            )
        except Exception as exc:
            self.logger.warning("Failed to build telemetry event", endpoint=endpoint, error=str(exc))
            return None
        self.emit(event)
        return event

    def _deliver(self, event: TelemetryEvent) -> None:
        try:
            self.sink.record(event)
        except Exception as exc:
            self.sink_failures += 1
            self.logger.warning(
                "Telemetry sink failed",
                endpoint=event.endpoint,
                error=str(exc),
                sink_failures=self.sink_failures
            )

    def flush(self) -> int:
        """Deliver every queued event now; returns how many were delivered."""
        delivered = 0
        while True:
            try:
                event = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return delivered
            self._deliver(event)
            self._queue.task_done()
            delivered += 1

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            self._deliver(event)
            self._queue.task_done()

    def start(self) -> None:
        """Start the background flush task on the running loop."""
        if self._flush_task is None or self._flush_task.done():
            self._flush_task = asyncio.get_running_loop().create_task(self._run())

    def _start_if_loop_running(self) -> None:
        # Clients used without ``async with`` still get their sinks fed
        if self._flush_task is not None and not self._flush_task.done():
            return
        try:
            self.start()
        except RuntimeError:
            # No running loop; events wait for flush() or a later start()
            return

    async def aclose(self) -> None:
        """Stop the background task and deliver whatever is still queued."""
        if self._flush_task is not None:
            self._flush_task.cancel()
            try:
                await self._flush_task
            except asyncio.CancelledError:
                pass
            self._flush_task = None
        self.flush()
