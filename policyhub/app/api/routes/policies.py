"""Admin legal policy endpoints under /admin/legal/policies.

Handlers are plain ``def``: the service does blocking store I/O and FastAPI
runs them in its threadpool. Domain errors propagate to the PolicyError
handler registered in main.
"""

import uuid
from typing import Annotated

from fastapi import APIRouter, Body, Depends, Query, status
from pydantic import BaseModel, Field

from policyhub.app.api.auth import get_current_context
from policyhub.app.api.dependencies import get_policy_service
from policyhub.app.db.context import RequestContext
from policyhub.app.lifecycle.service import PolicyService
from policyhub.app.models.common import VersionStatus
from policyhub.app.models.policies import (
    AuditPage,
    DocumentChanges,
    DocumentDraft,
    DocumentSummary,
    DocumentView,
    VersionChanges,
    VersionDraft,
)

router = APIRouter(prefix="/admin/legal/policies", tags=["policies"])

Service = Annotated[PolicyService, Depends(get_policy_service)]
Context = Annotated[RequestContext, Depends(get_current_context)]


class DocumentListResponse(BaseModel):
    """Response for GET /admin/legal/policies."""

    documents: list[DocumentView]


class ActivateRequest(BaseModel):
    """Optional body for POST .../activate."""

    expected_revision: int | None = Field(
        None, ge=0, description="Locale revision last observed by the caller"
    )
    supersede: bool = Field(False, description="Archive the previously active version")


@router.get("", response_model=DocumentListResponse)
def list_documents(
    service: Service,
    include_versions: Annotated[bool, Query()] = False,
) -> DocumentListResponse:
    """List all documents ordered by title."""
    return DocumentListResponse(documents=service.list_documents(include_versions=include_versions))


@router.get("/summary", response_model=DocumentSummary)
def summarize_documents(service: Service) -> DocumentSummary:
    """Rollup of non-archived documents."""
    return service.summarize_documents()


@router.post("", response_model=DocumentView, status_code=status.HTTP_201_CREATED)
def create_document(draft: DocumentDraft, service: Service, ctx: Context) -> DocumentView:
    """Create a draft document.

    Returns:
        The new document with no versions
    """
    return service.create_document(draft, ctx)


@router.get("/{slug}", response_model=DocumentView)
def get_document(
    slug: str,
    service: Service,
    include_versions: Annotated[bool, Query()] = False,
    include_audit: Annotated[bool, Query()] = False,
) -> DocumentView:
    """Get a document by slug; cached reads are flagged with from_cache."""
    return service.get_document(
        slug, include_versions=include_versions, include_audit=include_audit
    )


@router.patch("/{document_id}", response_model=DocumentView)
def update_document(
    document_id: uuid.UUID, changes: DocumentChanges, service: Service, ctx: Context
) -> DocumentView:
    """Partially update document fields."""
    return service.update_document(document_id, changes, ctx)


@router.get("/{document_id}/audit", response_model=AuditPage)
def list_audit_events(
    document_id: uuid.UUID,
    service: Service,
    limit: Annotated[int, Query()] = 50,
    cursor: Annotated[str | None, Query()] = None,
) -> AuditPage:
    """Page through the audit trail, newest first.

    Out-of-range limits are rejected by the service (422) rather than by
    query validation so the error body keeps the domain shape.
    """
    return service.list_audit_events(document_id, limit=limit, cursor=cursor)


@router.post(
    "/{document_id}/versions", response_model=DocumentView, status_code=status.HTTP_201_CREATED
)
def create_version(
    document_id: uuid.UUID, draft: VersionDraft, service: Service, ctx: Context
) -> DocumentView:
    """Create a draft version with the next number for its locale."""
    return service.create_version(document_id, draft, ctx)


@router.patch("/{document_id}/versions/{version_id}", response_model=DocumentView)
def update_version(
    document_id: uuid.UUID,
    version_id: uuid.UUID,
    changes: VersionChanges,
    service: Service,
    ctx: Context,
) -> DocumentView:
    """Edit a draft, in-review or approved version."""
    return service.update_version(document_id, version_id, changes, ctx)


@router.post("/{document_id}/versions/{version_id}/submit", response_model=DocumentView)
def submit_version(
    document_id: uuid.UUID, version_id: uuid.UUID, service: Service, ctx: Context
) -> DocumentView:
    """Send a draft for review."""
    return service.transition_version(document_id, version_id, VersionStatus.in_review, ctx)


@router.post("/{document_id}/versions/{version_id}/approve", response_model=DocumentView)
def approve_version(
    document_id: uuid.UUID, version_id: uuid.UUID, service: Service, ctx: Context
) -> DocumentView:
    """Approve a version under review."""
    return service.transition_version(document_id, version_id, VersionStatus.approved, ctx)


@router.post("/{document_id}/versions/{version_id}/publish", response_model=DocumentView)
def publish_version(
    document_id: uuid.UUID, version_id: uuid.UUID, service: Service, ctx: Context
) -> DocumentView:
    """Publish an approved version."""
    return service.publish_version(document_id, version_id, ctx)


@router.post("/{document_id}/versions/{version_id}/activate", response_model=DocumentView)
def activate_version(
    document_id: uuid.UUID,
    version_id: uuid.UUID,
    service: Service,
    ctx: Context,
    request: Annotated[ActivateRequest | None, Body()] = None,
) -> DocumentView:
    """Make a published version the live one for its locale."""
    options = request or ActivateRequest()
    return service.activate_version(
        document_id,
        version_id,
        ctx,
        expected_revision=options.expected_revision,
        supersede=options.supersede,
    )


@router.post("/{document_id}/versions/{version_id}/archive", response_model=DocumentView)
def archive_version(
    document_id: uuid.UUID, version_id: uuid.UUID, service: Service, ctx: Context
) -> DocumentView:
    """Archive a version; an active one loses its marker."""
    return service.archive_version(document_id, version_id, ctx)
