"""
Shared metrics configuration for the Pet Store authorization layer.
"""

from typing import Dict, Any, Optional
import time
from contextlib import contextmanager

from prometheus_client import Counter, Histogram, Info, CollectorRegistry, generate_latest


class MetricsCollector:
    """Prometheus metrics for authorization decisions.

    Every collector owns a registry unless one is passed in, so several
    service instances (tests, workers) never clash on metric names.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up the authorization metrics."""
        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        self._metrics["authorization_decisions_total"] = Counter(
            "authorization_decisions_total",
            "Total authorization decisions",
            ["decision", "policy"],
            registry=self.registry
        )

        self._metrics["authorization_evaluation_seconds"] = Histogram(
            "authorization_evaluation_seconds",
            "Time spent building the context and evaluating policies",
            registry=self.registry
        )

        self._metrics["authorization_resolution_gaps_total"] = Counter(
            "authorization_resolution_gaps_total",
            "Domain records that could not be resolved while building entities",
            ["kind"],
            registry=self.registry
        )

        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def record_decision(self, decision: str, policy_id: Optional[str] = None):
        """Record one authorization decision."""
        self._metrics["authorization_decisions_total"].labels(
            decision=decision,
            policy=policy_id or "default"
        ).inc()

    def record_resolution_gap(self, kind: str):
        """Record a domain record that was missing during entity building."""
        self._metrics["authorization_resolution_gaps_total"].labels(kind=kind).inc()

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()

    @contextmanager
    def time_evaluation(self):
        """Context manager timing one authorization check."""
        start_time = time.perf_counter()
        try:
            yield
        finally:
            self._metrics["authorization_evaluation_seconds"].observe(time.perf_counter() - start_time)

    def get_sample_value(self, name: str, labels: Optional[Dict[str, str]] = None) -> Optional[float]:
        """Read back a sample value from the registry."""
        return self.registry.get_sample_value(name, labels or {})

    def export(self) -> bytes:
        """Render the registry in the Prometheus text format."""
        return generate_latest(self.registry)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
