"""Request context carrying the acting identity."""

from dataclasses import dataclass


@dataclass(frozen=True)
class RequestContext:
    """Identity of the caller performing an operation.

    Recorded on every audit event.
    """

    actor_id: str
    actor_type: str = "admin"
