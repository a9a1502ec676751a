"""Prometheus metrics endpoint."""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics endpoint.

    Exposes all registered Prometheus metrics including:
    - policy_operation_latency_ms{operation, outcome}
    - policy_operation_errors_total{operation, kind}
    - policy_activation_conflicts_total
    - audit_write_failures_total{reason}
    - audit_reconciliation_backlog
    """
    metrics_output = generate_latest()
    return Response(content=metrics_output, media_type=CONTENT_TYPE_LATEST)
