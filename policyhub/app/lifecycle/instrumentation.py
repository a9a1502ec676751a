"""Metrics and logging interfaces used by the lifecycle engine."""

from typing import Any

from policyhub.app.db.context import RequestContext


# Metrics interface (implemented by utils.metrics.PrometheusPolicyMetrics)
class PolicyMetrics:
    """Interface for policy operation metrics."""

    def record_latency(self, operation: str, outcome: str, latency_ms: float) -> None:
        """Record operation latency."""
        pass

    def inc_error(self, operation: str, kind: str) -> None:
        """Increment error counter."""
        pass

    def inc_activation_conflict(self) -> None:
        """Increment lost-race counter for activations."""
        pass

    def inc_audit_failure(self, reason: str) -> None:
        """Increment failed audit write counter."""
        pass

    def set_reconciliation_backlog(self, size: int) -> None:
        """Report the number of audit events awaiting reconciliation."""
        pass


# Logging interface (implemented by utils.logging.StructuredPolicyLogger)
class PolicyLogger:
    """Interface for structured logging."""

    def log_operation(
        self,
        operation: str,
        ctx: RequestContext,
        outcome: str,
        latency_ms: float,
        *,
        document_id: str | None = None,
        version_id: str | None = None,
        error_kind: str | None = None,
    ) -> None:
        """Log the outcome of a façade operation."""
        pass

    def log_audit_failure(
        self, event: dict[str, Any], attempt: int, reason: str, final: bool
    ) -> None:
        """Log a failed audit write attempt."""
        pass
