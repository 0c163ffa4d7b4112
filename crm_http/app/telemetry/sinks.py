"""
Telemetry sinks.
"""

from typing import List, Protocol, Sequence, TYPE_CHECKING

from crm_common.logging import get_logger
from ..domain.models import TelemetryEvent, TelemetryOutcome

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from crm_common.metrics import MetricsCollector


class TelemetrySink(Protocol):
    def record(self, event: TelemetryEvent) -> None:
        ...


class InMemoryTelemetrySink:
    """Keeps every event; handy for tests and debugging panels."""

    def __init__(self):
        self.events: List[TelemetryEvent] = []

    def record(self, event: TelemetryEvent) -> None:
        self.events.append(event)

    def by_outcome(self, outcome: TelemetryOutcome) -> List[TelemetryEvent]:
        return [event for event in self.events if event.outcome == outcome]


class LoggingTelemetrySink:
    """Writes each event as a structured log line."""

    def __init__(self, logger_name: str = "crm_http.telemetry.events"):
        self.logger = get_logger(logger_name)

    def record(self, event: TelemetryEvent) -> None:
        self.logger.info("api_request", **event.model_dump(mode="json"))


class PrometheusTelemetrySink:
    """Feeds events into the Prometheus collector."""

    def __init__(self, metrics: "MetricsCollector"):
        self.metrics = metrics

    def record(self, event: TelemetryEvent) -> None:
        if event.outcome == TelemetryOutcome.RETRY_ATTEMPT:
            self.metrics.record_retry(event.method, event.endpoint)
            return
        self.metrics.record_attempt(event.method, event.endpoint, event.outcome.value, event.latency_ms)


class CompositeTelemetrySink:
    """Fans an event out to several sinks in order."""

    def __init__(self, sinks: Sequence[TelemetrySink]):
        self.sinks = list(sinks)

    def record(self, event: TelemetryEvent) -> None:
        for sink in self.sinks:
            sink.record(event)
