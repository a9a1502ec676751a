"""Error taxonomy for the policy lifecycle engine.

Every error carries a stable ``kind`` and a message that is safe to show in the
admin UI verbatim. ``details`` holds structured context (ids, states).
"""

from typing import Any


class PolicyError(Exception):
    """Base class for all lifecycle errors."""

    kind = "policy_error"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses."""
        return {"kind": self.kind, "message": self.message, "details": self.details}


class ValidationError(PolicyError):
    """Malformed input (empty content, unknown locale or category)."""

    kind = "validation_error"


class IllegalTransitionError(PolicyError):
    """Requested lifecycle edge is not in the transition table."""

    kind = "illegal_transition"

    def __init__(self, current: str, attempted: str, **details: Any) -> None:
        super().__init__(
            f"Cannot move a version from '{current}' to '{attempted}'",
            current=current,
            attempted=attempted,
            **details,
        )


class InvalidStateError(PolicyError):
    """Operation is not allowed from the version's current state."""

    kind = "invalid_state"


class ConflictError(PolicyError):
    """A concurrent write won the race. Re-fetch and retry."""

    kind = "conflict"


class NotFoundError(PolicyError):
    """Unknown document id, version id or slug."""

    kind = "not_found"


class PersistenceError(PolicyError):
    """Storage layer failure; the operation was not committed."""

    kind = "persistence_error"
