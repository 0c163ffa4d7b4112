"""
Per-attempt request telemetry.
"""

from .emitter import TelemetryEmitter, payload_size
from .sinks import (
    CompositeTelemetrySink,
    InMemoryTelemetrySink,
    LoggingTelemetrySink,
    PrometheusTelemetrySink,
    TelemetrySink,
)

__all__ = [
    "TelemetryEmitter",
    "payload_size",
    "CompositeTelemetrySink",
    "InMemoryTelemetrySink",
    "LoggingTelemetrySink",
    "PrometheusTelemetrySink",
    "TelemetrySink",
]
