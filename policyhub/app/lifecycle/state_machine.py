"""Version lifecycle state machine.

draft -> in_review -> approved -> published -> archived, with archival legal
from every non-archived state. Published and archived content is immutable.
"""

from datetime import datetime

from policyhub.app.lifecycle.errors import IllegalTransitionError, InvalidStateError
from policyhub.app.models.common import AuditAction, VersionStatus
from policyhub.app.models.policies import PolicyVersion

TRANSITIONS: dict[VersionStatus, frozenset[VersionStatus]] = {
    VersionStatus.draft: frozenset({VersionStatus.in_review, VersionStatus.archived}),
    VersionStatus.in_review: frozenset({VersionStatus.approved, VersionStatus.archived}),
    VersionStatus.approved: frozenset({VersionStatus.published, VersionStatus.archived}),
    VersionStatus.published: frozenset({VersionStatus.archived}),
    VersionStatus.archived: frozenset(),
}

EDITABLE_STATUSES = frozenset(
    {VersionStatus.draft, VersionStatus.in_review, VersionStatus.approved}
)

TRANSITION_ACTIONS: dict[VersionStatus, AuditAction] = {
    VersionStatus.in_review: AuditAction.version_submitted,
    VersionStatus.approved: AuditAction.version_approved,
    VersionStatus.published: AuditAction.version_published,
    VersionStatus.archived: AuditAction.version_archived,
}


def is_legal(current: VersionStatus, target: VersionStatus) -> bool:
    """Check whether current -> target is an edge of the lifecycle."""
    return target in TRANSITIONS[current]


def check_transition(version: PolicyVersion, target: VersionStatus) -> None:
    """Raise IllegalTransitionError unless the edge is legal."""
    if not is_legal(version.status, target):
        raise IllegalTransitionError(
            version.status.value,
            target.value,
            version_id=str(version.id),
        )


def assert_editable(version: PolicyVersion) -> None:
    """Raise InvalidStateError if the version's content is frozen."""
    if version.status not in EDITABLE_STATUSES:
        raise InvalidStateError(
            f"Version v{version.version} ({version.locale}) is {version.status.value} "
            "and can no longer be edited; create a new version instead",
            version_id=str(version.id),
            current=version.status.value,
            attempted="update",
        )


def apply_transition(
    version: PolicyVersion, target: VersionStatus, now: datetime
) -> PolicyVersion:
    """Return a copy of the version moved to target.

    Publishing stamps published_at and defaults effective_at to now. Archiving
    always drops the active marker; the caller is responsible for claiming the
    locale so the change is serialized with activations.
    """
    check_transition(version, target)

    updates: dict[str, object] = {"status": target, "updated_at": now}
    if target == VersionStatus.published:
        updates["published_at"] = now
        if version.effective_at is None:
            updates["effective_at"] = now
    elif target == VersionStatus.archived:
        updates["is_active"] = False

    return version.model_copy(update=updates)
