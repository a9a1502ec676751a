"""Prometheus metrics for policy lifecycle operations."""

from prometheus_client import Counter, Gauge, Histogram

# Operation metrics
policy_operation_latency_ms = Histogram(
    "policy_operation_latency_ms",
    "Policy operation latency in milliseconds",
    ["operation", "outcome"],
    buckets=[1, 5, 10, 25, 50, 100, 250, 500, 1000, 2500],
)

policy_operation_errors_total = Counter(
    "policy_operation_errors_total",
    "Total failed policy operations",
    ["operation", "kind"],
)

policy_activation_conflicts_total = Counter(
    "policy_activation_conflicts_total",
    "Total activations that lost a concurrent race",
)

# Audit trail metrics
audit_write_failures_total = Counter(
    "audit_write_failures_total",
    "Total failed audit write attempts",
    ["reason"],
)

audit_reconciliation_backlog = Gauge(
    "audit_reconciliation_backlog",
    "Audit events awaiting reconciliation",
)


class PrometheusPolicyMetrics:
    """Prometheus-based policy metrics implementation."""

    def record_latency(self, operation: str, outcome: str, latency_ms: float) -> None:
        """Record operation latency."""
        policy_operation_latency_ms.labels(operation=operation, outcome=outcome).observe(
            latency_ms
        )

    def inc_error(self, operation: str, kind: str) -> None:
        """Increment error counter."""
        policy_operation_errors_total.labels(operation=operation, kind=kind).inc()

    def inc_activation_conflict(self) -> None:
        """Increment lost-race counter for activations."""
        policy_activation_conflicts_total.inc()

    def inc_audit_failure(self, reason: str) -> None:
        """Increment failed audit write counter."""
        audit_write_failures_total.labels(reason=reason).inc()

    def set_reconciliation_backlog(self, size: int) -> None:
        """Report the reconciliation backlog size."""
        audit_reconciliation_backlog.set(size)
