"""
Shared metrics configuration for the Privileges service.
"""

from prometheus_client import Counter, Histogram, Info, CollectorRegistry, generate_latest
from typing import Dict, Any, Optional


class MetricsCollector:
    """Centralized metrics collector for services."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up common metrics for the service."""

        # Service info
        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # HTTP metrics
        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry
        )

        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=self.registry
        )

        # Health check metrics
        self._metrics["health_check_total"] = Counter(
            "health_check_total",
            "Total health check requests",
            ["status"],
            registry=self.registry
        )

        # Error metrics
        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

        self._setup_privilege_metrics()

    def _setup_privilege_metrics(self):
        """Set up privilege engine metrics."""
        self._metrics["privilege_checks_total"] = Counter(
            "privilege_checks_total",
            "Total privilege checks",
            ["decision"],
            registry=self.registry
        )

        self._metrics["privilege_check_duration_seconds"] = Histogram(
            "privilege_check_duration_seconds",
            "Privilege check duration in seconds",
            registry=self.registry
        )

        self._metrics["privilege_grants_total"] = Counter(
            "privilege_grants_total",
            "Total privilege grants",
            registry=self.registry
        )

        self._metrics["privilege_revokes_total"] = Counter(
            "privilege_revokes_total",
            "Total privilege revokes",
            registry=self.registry
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def export(self) -> bytes:
        """Render the registry in the Prometheus text format."""
        return generate_latest(self.registry)

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()

        self._metrics["http_request_duration_seconds"].labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)

    def record_health_check(self, status: str):
        """Record health check metrics."""
        self._metrics["health_check_total"].labels(status=status).inc()

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()

    def record_privilege_check(self, allowed: bool, duration: float):
        """Record the outcome of a single privilege check."""
        decision = "allow" if allowed else "deny"
        self._metrics["privilege_checks_total"].labels(decision=decision).inc()
        self._metrics["privilege_check_duration_seconds"].observe(duration)

    def record_grant(self):
        self._metrics["privilege_grants_total"].inc()

    def record_revoke(self):
        self._metrics["privilege_revokes_total"].inc()


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
