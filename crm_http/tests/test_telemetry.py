"""
Unit tests for the telemetry emitter and sinks.
"""

import asyncio

import pytest

from crm_common.metrics import MetricsCollector
from crm_http.app.adapters.clock import reading
from crm_http.app.domain.models import MultipartForm, TelemetryEvent, TelemetryOutcome
from crm_http.app.telemetry.emitter import TelemetryEmitter, payload_size
from crm_http.app.telemetry.sinks import (
    CompositeTelemetrySink,
    InMemoryTelemetrySink,
    PrometheusTelemetrySink,
)
from crm_http.test_helpers import ManualClock, WallClockOnly


def _event(outcome=TelemetryOutcome.OK, endpoint="/leads", latency_ms=12.5):
    return TelemetryEvent(
        timestamp="2024-01-01T00:00:00+00:00",
        endpoint=endpoint,
        method="GET",
        latency_ms=latency_ms,
        outcome=outcome,
        http_status=200,
    )


class FailingSink:
    def record(self, event):
        raise RuntimeError("collector down")


class TestPayloadSize:
    """Test cases for payload_size."""

    def test_none(self):
        assert payload_size(None) == 0

    def test_text_counts_utf8_bytes(self):
        assert payload_size("héllo") == 6

    def test_structured_body(self):
        assert payload_size({"a": 1}) == len('{"a": 1}')

    def test_binary_forms_are_zero(self):
        assert payload_size(b"\x00\x01") == 0
        assert payload_size(MultipartForm(fields={"name": "x"})) == 0

    def test_encoding_failure_is_zero(self):
        circular = {}
        circular["self"] = circular

        assert payload_size(circular) == 0


class TestTelemetryEmitter:
    """Test cases for TelemetryEmitter."""

    @pytest.fixture
    def sink(self):
        return InMemoryTelemetrySink()

    @pytest.fixture
    def clock(self):
        return ManualClock()

    def test_record_attempt_builds_event(self, sink, clock):
        emitter = TelemetryEmitter(sink, clock)
        started = reading(clock)
        clock.advance(0.123456)

        event = emitter.record_attempt(
            "POST", "/leads", started, TelemetryOutcome.OK,
            http_status=201,
            request_body={"name": "Asha"},
            response_payload={"success": True},
        )
        emitter.flush()

        assert sink.events == [event]
        assert event.latency_ms == 123.46
        assert event.request_bytes == len('{"name": "Asha"}')
        assert event.response_bytes == len('{"success": true}')
        assert event.http_status == 201
        assert event.timestamp.startswith("2023-11-14T")

    def test_latency_falls_back_to_wall_clock(self, sink):
        clock = WallClockOnly()
        emitter = TelemetryEmitter(sink, clock)
        started = reading(clock)
        clock.advance(0.5)

        event = emitter.record_attempt("GET", "/units", started, TelemetryOutcome.FAILED, message="boom")

        assert event.latency_ms == 500.0
        assert event.message == "boom"

    def test_events_wait_in_queue_until_flushed(self, sink, clock):
        emitter = TelemetryEmitter(sink, clock)
        emitter.emit(_event())
        emitter.emit(_event())

        assert emitter.pending == 2
        assert sink.events == []
        assert emitter.flush() == 2
        assert len(sink.events) == 2

    def test_full_queue_drops_events(self, sink, clock):
        metrics = MetricsCollector()
        emitter = TelemetryEmitter(sink, clock, max_queue=2, metrics=metrics)

        results = [emitter.emit(_event()) for _ in range(3)]

        assert results == [True, True, False]
        assert emitter.emitted == 2
        assert emitter.dropped == 1
        assert metrics.sample("api_client_telemetry_dropped_total") == 1.0

    def test_sink_failure_is_counted_not_raised(self, clock):
        emitter = TelemetryEmitter(FailingSink(), clock)
        emitter.emit(_event())

        assert emitter.flush() == 1
        assert emitter.sink_failures == 1

    def test_event_build_failure_is_swallowed(self, sink, clock):
        emitter = TelemetryEmitter(sink, clock)

        event = emitter.record_attempt("GET", "/leads", reading(clock), "not-an-outcome")

        assert event is None
        assert emitter.pending == 0

    @pytest.mark.asyncio
    async def test_background_flush(self, sink, clock):
        emitter = TelemetryEmitter(sink, clock)
        emitter.start()

        emitter.emit(_event())
        for _ in range(5):
            await asyncio.sleep(0)

        assert len(sink.events) == 1
        await emitter.aclose()

    @pytest.mark.asyncio
    async def test_emit_starts_flushing_on_running_loop(self, sink, clock):
        emitter = TelemetryEmitter(sink, clock)

        emitter.emit(_event())
        for _ in range(5):
            await asyncio.sleep(0)

        assert len(sink.events) == 1
        assert emitter.pending == 0
        await emitter.aclose()

    @pytest.mark.asyncio
    async def test_aclose_delivers_remaining_events(self, sink, clock):
        emitter = TelemetryEmitter(sink, clock)
        emitter.start()
        emitter.emit(_event())
        emitter.emit(_event())

        await emitter.aclose()

        assert len(sink.events) == 2
        assert emitter.pending == 0


class TestSinks:
    """Test cases for telemetry sinks."""

    def test_prometheus_sink(self):
        metrics = MetricsCollector()
        sink = PrometheusTelemetrySink(metrics)

        sink.record(_event(latency_ms=250.0))
        sink.record(_event(outcome=TelemetryOutcome.FAILED))
        sink.record(_event(outcome=TelemetryOutcome.RETRY_ATTEMPT))

        labels = {"method": "GET", "endpoint": "/leads"}
        assert metrics.sample("api_client_requests_total", {**labels, "outcome": "ok"}) == 1.0
        assert metrics.sample("api_client_requests_total", {**labels, "outcome": "failed"}) == 1.0
        assert metrics.sample("api_client_retries_total", labels) == 1.0
        assert metrics.sample("api_client_request_duration_seconds_count", labels) == 2.0

    def test_composite_sink_fans_out(self):
        first, second = InMemoryTelemetrySink(), InMemoryTelemetrySink()
        sink = CompositeTelemetrySink([first, second])

        sink.record(_event())

        assert len(first.events) == 1
        assert len(second.events) == 1

    def test_in_memory_sink_filters_by_outcome(self):
        sink = InMemoryTelemetrySink()
        sink.record(_event(outcome=TelemetryOutcome.FAILED))
        sink.record(_event(outcome=TelemetryOutcome.RETRY_ATTEMPT))

        assert len(sink.by_outcome(TelemetryOutcome.FAILED)) == 1
        assert sink.by_outcome(TelemetryOutcome.OK) == []
