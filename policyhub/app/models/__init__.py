"""Models package - re-exports for convenience."""

from policyhub.app.models.common import (
    AuditAction,
    DocumentCategory,
    DocumentStatus,
    Role,
    VersionStatus,
)
from policyhub.app.models.policies import (
    AuditEvent,
    AuditPage,
    DocumentChanges,
    DocumentDraft,
    DocumentSummary,
    DocumentView,
    PolicyDocument,
    PolicyVersion,
    VersionChanges,
    VersionDraft,
)

__all__ = [
    # Common
    "AuditAction",
    "DocumentCategory",
    "DocumentStatus",
    "Role",
    "VersionStatus",
    # Aggregates
    "PolicyDocument",
    "PolicyVersion",
    "AuditEvent",
    "AuditPage",
    "DocumentView",
    "DocumentSummary",
    # Inputs
    "DocumentDraft",
    "DocumentChanges",
    "VersionDraft",
    "VersionChanges",
]
