"""Common types and enums shared across all models."""

from enum import Enum


class DocumentCategory(str, Enum):
    """Legal document category."""

    terms = "terms"
    privacy = "privacy"
    data_processing = "data_processing"
    cookie = "cookie"


class DocumentStatus(str, Enum):
    """Derived document status."""

    draft = "draft"
    active = "active"
    archived = "archived"


class VersionStatus(str, Enum):
    """Version lifecycle status."""

    draft = "draft"
    in_review = "in_review"
    approved = "approved"
    published = "published"
    archived = "archived"


class Role(str, Enum):
    """Platform role used for audience and editor scoping."""

    user = "user"
    freelancer = "freelancer"
    company = "company"
    agency = "agency"
    mentor = "mentor"
    headhunter = "headhunter"
    admin = "admin"
    legal = "legal"
    compliance = "compliance"


class AuditAction(str, Enum):
    """Dotted audit action names."""

    document_created = "document.created"
    document_updated = "document.updated"
    version_created = "version.created"
    version_updated = "version.updated"
    version_submitted = "version.submitted"
    version_approved = "version.approved"
    version_published = "version.published"
    version_activated = "version.activated"
    version_archived = "version.archived"


DEFAULT_AUDIENCE_ROLES = [Role.user, Role.freelancer, Role.company, Role.agency]
DEFAULT_EDITOR_ROLES = [Role.admin]
