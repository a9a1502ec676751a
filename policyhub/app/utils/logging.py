"""Structured logging for policy lifecycle operations."""

import logging
from typing import Any

from policyhub.app.db.context import RequestContext

logger = logging.getLogger(__name__)


class StructuredPolicyLogger:
    """Structured logger for façade operations and audit writes."""

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
        """Log the outcome of a façade operation with structured data."""
        log_data: dict[str, Any] = {
            "operation": operation,
            "actor_id": ctx.actor_id,
            "actor_type": ctx.actor_type,
            "outcome": outcome,
            "latency_ms": round(latency_ms, 2),
        }

        if document_id:
            log_data["document_id"] = document_id
        if version_id:
            log_data["version_id"] = version_id
        if error_kind:
            log_data["error_kind"] = error_kind

        log_msg = f"Policy operation: {operation} - {outcome}"

        if outcome in ("success", "noop"):
            logger.info(log_msg, extra={"structured": log_data})
        else:
            logger.warning(log_msg, extra={"structured": log_data})

    def log_audit_failure(
        self, event: dict[str, Any], attempt: int, reason: str, final: bool
    ) -> None:
        """Log a failed audit write; the final failure is an error."""
        log_data: dict[str, Any] = {
            "event_id": event.get("id"),
            "document_id": event.get("document_id"),
            "version_id": event.get("version_id"),
            "action": event.get("action"),
            "actor_id": event.get("actor_id"),
            "attempt": attempt,
            "reason": reason,
        }

        if final:
            logger.error(
                f"Audit write failed, queued for reconciliation: {event.get('action')}",
                extra={"structured": log_data},
            )
        else:
            logger.warning(
                f"Audit write attempt {attempt} failed: {event.get('action')}",
                extra={"structured": log_data},
            )
