"""Prometheus metrics for collaborator calls and monitoring cycles."""

from prometheus_client import Counter, Gauge, Histogram

# Collaborator call metrics
collaborator_latency_ms = Histogram(
    "collaborator_latency_ms",
    "Collaborator call latency in milliseconds",
    ["collaborator", "outcome"],
    buckets=[10, 50, 100, 200, 500, 1000, 2000, 4000, 8000],
)

collaborator_errors_total = Counter(
    "collaborator_errors_total",
    "Total collaborator call errors",
    ["collaborator", "reason"],
)

# Monitoring metrics
monitoring_cycles_total = Counter(
    "monitoring_cycles_total",
    "Total completed detection cycles",
    ["outcome"],
)

disruptions_detected_total = Counter(
    "disruptions_detected_total",
    "Total disruptions published",
    ["type"],
)

recommendations_total = Counter(
    "recommendations_total",
    "Total adjustment recommendations produced",
    ["overall_impact"],
)

monitoring_active_sessions = Gauge(
    "monitoring_active_sessions",
    "Number of schedulers currently monitoring an itinerary",
)


class PrometheusCallMetrics:
    """Prometheus-based collaborator call metrics implementation."""

    def record_latency(self, collaborator: str, outcome: str, latency_ms: float) -> None:
        """Record collaborator call latency."""
        collaborator_latency_ms.labels(collaborator=collaborator, outcome=outcome).observe(
            latency_ms
        )

    def inc_error(self, collaborator: str, reason: str) -> None:
        """Increment error counter."""
        collaborator_errors_total.labels(collaborator=collaborator, reason=reason).inc()


class PrometheusMonitoringMetrics:
    """Prometheus-based monitoring metrics implementation."""

    def record_cycle(self, outcome: str) -> None:
        monitoring_cycles_total.labels(outcome=outcome).inc()

    def record_disruption(self, disruption_type: str) -> None:
        disruptions_detected_total.labels(type=disruption_type).inc()

    def record_recommendation(self, overall_impact: str) -> None:
        recommendations_total.labels(overall_impact=overall_impact).inc()

    def session_started(self) -> None:
        monitoring_active_sessions.inc()

    def session_stopped(self) -> None:
        monitoring_active_sessions.dec()
