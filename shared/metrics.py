"""
Shared metrics configuration for the access layer.
"""

from typing import Dict, Any, Optional

from prometheus_client import Counter, Histogram, Info, CollectorRegistry

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

        self._metrics["health_check_total"] = Counter(
            "health_check_total",
            "Total health check requests",
            ["status"],
            registry=self.registry
        )

        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

        self._setup_access_metrics()

    def _setup_access_metrics(self):
        """Set up admission pipeline metrics."""
        self._metrics["pipeline_rejections_total"] = Counter(
            "pipeline_rejections_total",
            "Requests rejected by the admission pipeline",
            ["code"],
            registry=self.registry
        )

        self._metrics["rate_limit_hits_total"] = Counter(
            "rate_limit_hits_total",
            "Total rate limit hits",
            ["policy"],
            registry=self.registry
        )

        self._metrics["usage_commits_total"] = Counter(
            "usage_commits_total",
            "Usage counter commits",
            ["status"],
            registry=self.registry
        )

        self._metrics["login_failures_total"] = Counter(
            "login_failures_total",
            "Failed credential checks",
            ["reason"],
            registry=self.registry
        )

        self._metrics["account_lockouts_total"] = Counter(
            "account_lockouts_total",
            "Accounts locked after repeated credential failures",
            registry=self.registry
        )

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

    def record_rejection(self, code: str):
        self._metrics["pipeline_rejections_total"].labels(code=code).inc()

    def record_rate_limit_hit(self, policy: str):
        self._metrics["rate_limit_hits_total"].labels(policy=policy).inc()

    def record_usage_commit(self, status: str):
        self._metrics["usage_commits_total"].labels(status=status).inc()

    def record_login_failure(self, reason: str):
        self._metrics["login_failures_total"].labels(reason=reason).inc()

    def record_lockout(self):
        self._metrics["account_lockouts_total"].inc()

    def sample(self, metric_name: str, **labels) -> Optional[float]:
        """Current value of a sample in this collector's registry."""
        return self.registry.get_sample_value(metric_name, labels)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
