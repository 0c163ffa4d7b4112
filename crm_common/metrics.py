"""
Prometheus metrics for the request layer.
"""

from typing import Dict, Any, Optional

from prometheus_client import Counter, Histogram, CollectorRegistry, generate_latest


class MetricsCollector:
    """Metrics collector for client-side request telemetry."""

    def __init__(self, component: str = "crm_http", registry: Optional[CollectorRegistry] = None):
        self.component = component
        # Own registry per collector so several clients can coexist in one process
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up request layer metrics."""
        self._metrics["requests_total"] = Counter(
            "api_client_requests_total",
            "Total transport attempts made by the API client",
            ["method", "endpoint", "outcome"],
            registry=self.registry
        )

        self._metrics["request_duration_seconds"] = Histogram(
            "api_client_request_duration_seconds",
            "Transport attempt latency in seconds",
            ["method", "endpoint"],
            registry=self.registry
        )

        self._metrics["retries_total"] = Counter(
            "api_client_retries_total",
            "Total retry decisions",
            ["method", "endpoint"],
            registry=self.registry
        )

        self._metrics["telemetry_dropped_total"] = Counter(
            "api_client_telemetry_dropped_total",
            "Telemetry events dropped because the queue was full",
            registry=self.registry
        )

    def record_attempt(self, method: str, endpoint: str, outcome: str, latency_ms: float):
        """Record one transport attempt."""
        self._metrics["requests_total"].labels(
            method=method, endpoint=endpoint, outcome=outcome
        ).inc()
        self._metrics["request_duration_seconds"].labels(
            method=method, endpoint=endpoint
        ).observe(latency_ms / 1000.0)

    def record_retry(self, method: str, endpoint: str):
        """Record a retry decision."""
        self._metrics["retries_total"].labels(method=method, endpoint=endpoint).inc()

    def record_telemetry_drop(self):
        """Record a dropped telemetry event."""
        self._metrics["telemetry_dropped_total"].inc()

    def sample(self, name: str, labels: Optional[Dict[str, str]] = None) -> Optional[float]:
        """Read the current value of a sample from the registry."""
        return self.registry.get_sample_value(name, labels or {})

    def get_metrics(self) -> bytes:
        """Render the registry in Prometheus exposition format."""
        return generate_latest(self.registry)
