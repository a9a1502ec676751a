"""Policy document, version and audit domain models."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from policyhub.app.models.common import (
    DEFAULT_AUDIENCE_ROLES,
    DEFAULT_EDITOR_ROLES,
    DocumentCategory,
    DocumentStatus,
    Role,
    VersionStatus,
)


class PolicyDocument(BaseModel):
    """A named, slugged legal policy grouping versions across locales.

    status, active_version_id, published_at and retired_at are derived from the
    version set and are only written by the activation coordinator.
    """

    id: UUID
    slug: str
    title: str
    category: DocumentCategory
    region: str = "global"
    default_locale: str = "en"
    summary: str | None = None
    audience_roles: list[Role] = Field(default_factory=lambda: list(DEFAULT_AUDIENCE_ROLES))
    editor_roles: list[Role] = Field(default_factory=lambda: list(DEFAULT_EDITOR_ROLES))
    tags: list[str] = Field(default_factory=list)
    metadata: dict[str, str] = Field(default_factory=dict)
    status: DocumentStatus = DocumentStatus.draft
    active_version_id: UUID | None = None
    published_at: datetime | None = None
    retired_at: datetime | None = None
    revision: int = Field(0, ge=0, description="Bumped on every write of the document row")
    created_at: datetime
    updated_at: datetime


class PolicyVersion(BaseModel):
    """One revision of a document in one locale."""

    id: UUID
    document_id: UUID
    locale: str
    version: int = Field(..., ge=1, description="Monotonic per (document, locale)")
    status: VersionStatus = VersionStatus.draft
    is_active: bool = False
    summary: str | None = None
    change_summary: str | None = None
    content: str
    external_url: str | None = None
    effective_at: datetime | None = None
    published_at: datetime | None = None
    activated_at: datetime | None = None
    superseded_at: datetime | None = None
    revision: int = Field(0, ge=0, description="Bumped on every write of the version row")
    created_at: datetime
    updated_at: datetime


class AuditEvent(BaseModel):
    """Immutable record of a state-changing action."""

    id: UUID
    sequence: int = Field(0, ge=0, description="Store-assigned ordering key")
    document_id: UUID
    version_id: UUID | None = None
    action: str
    actor_id: str
    actor_type: str = "admin"
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class AuditPage(BaseModel):
    """Page of audit events, newest first."""

    events: list[AuditEvent]
    next_cursor: str | None = None


class DocumentView(BaseModel):
    """Document aggregate returned by reads and mutations."""

    document: PolicyDocument
    versions: list[PolicyVersion] | None = None
    audit_events: list[AuditEvent] | None = None
    locale_revisions: dict[str, int] = Field(default_factory=dict)
    from_cache: bool = False
    audit_pending_reconciliation: bool = False

    def version(self, version_id: UUID) -> PolicyVersion:
        """Return the version with the given id (KeyError if absent or not loaded)."""
        for version in self.versions or []:
            if version.id == version_id:
                return version
        raise KeyError(str(version_id))

    def active_version(self, locale: str) -> PolicyVersion | None:
        """Return the active version for a locale, if any."""
        for version in self.versions or []:
            if version.locale == locale and version.is_active:
                return version
        return None


class DocumentSummary(BaseModel):
    """Rollup over non-archived documents."""

    total: int = 0
    active: int = 0
    categories: list[str] = Field(default_factory=list)
    regions: list[str] = Field(default_factory=list)
    last_published_at: datetime | None = None


# Inputs. These are deliberately loose; domain validation raises ValidationError.


class DocumentDraft(BaseModel):
    """Fields for a new document."""

    title: str
    slug: str | None = None
    category: str = DocumentCategory.terms.value
    region: str = "global"
    default_locale: str = "en"
    summary: str | None = None
    audience_roles: list[str] | None = None
    editor_roles: list[str] | None = None
    tags: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class DocumentChanges(BaseModel):
    """Partial document update; only explicitly set fields apply."""

    title: str | None = None
    slug: str | None = None
    category: str | None = None
    region: str | None = None
    default_locale: str | None = None
    summary: str | None = None
    audience_roles: list[str] | None = None
    editor_roles: list[str] | None = None
    tags: list[str] | None = None
    metadata: dict[str, Any] | None = None


class VersionDraft(BaseModel):
    """Fields for a new version. locale defaults to the document's default locale."""

    locale: str | None = None
    content: str = ""
    summary: str | None = None
    change_summary: str | None = None
    external_url: str | None = None
    effective_at: datetime | None = None


class VersionChanges(BaseModel):
    """Partial version update; only explicitly set fields apply."""

    content: str | None = None
    summary: str | None = None
    change_summary: str | None = None
    external_url: str | None = None
    effective_at: datetime | None = None
