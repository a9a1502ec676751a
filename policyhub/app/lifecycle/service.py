"""Policy service façade.

Every mutation is one unit of work: validate, apply the state change,
recompute the document's derived fields, commit, then write the audit event.
A failure before the commit leaves no trace; an audit failure after it does
not undo the change (see AuditRecorder).
"""

import time
from collections.abc import Callable, Collection
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from policyhub.app.cache import DocumentCache, cache_keys_for, make_cache_key
from policyhub.app.db.context import RequestContext
from policyhub.app.db.repositories import PolicyStore, PolicyTransaction
from policyhub.app.lifecycle.activation import ActivationCoordinator
from policyhub.app.lifecycle.audit import AuditRecorder
from policyhub.app.lifecycle.errors import ConflictError, NotFoundError, PolicyError, ValidationError
from policyhub.app.lifecycle.instrumentation import PolicyLogger, PolicyMetrics
from policyhub.app.lifecycle.state_machine import (
    TRANSITION_ACTIONS,
    apply_transition,
    assert_editable,
)
from policyhub.app.lifecycle.validation import (
    normalize_locale,
    normalize_metadata,
    normalize_roles,
    normalize_string_array,
    optional_text,
    parse_category,
    slugify,
    validate_content,
    validate_slug,
    validate_title,
    validate_url,
)
from policyhub.app.models.common import (
    DEFAULT_AUDIENCE_ROLES,
    DEFAULT_EDITOR_ROLES,
    AuditAction,
    DocumentStatus,
    VersionStatus,
)
from policyhub.app.models.policies import (
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

AUDIT_PREVIEW_LIMIT = 50


@dataclass
class _Change:
    """What a mutation did. action is None for no-op retries."""

    document_id: UUID
    action: AuditAction | None = None
    version_id: UUID | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    slugs: set[str] = field(default_factory=set)


def _utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _parse_status(raw: VersionStatus | str) -> VersionStatus:
    try:
        return VersionStatus(raw)
    except ValueError:
        raise ValidationError(f"Unknown version status '{raw}'", status=str(raw)) from None


class PolicyService:
    """Document-level operations for the admin legal-policy manager."""

    def __init__(
        self,
        store: PolicyStore,
        audit: AuditRecorder,
        *,
        cache: DocumentCache | None = None,
        cache_ttl_seconds: int = 0,
        supported_locales: Collection[str] = (),
        coordinator: ActivationCoordinator | None = None,
        metrics: PolicyMetrics | None = None,
        logger: PolicyLogger | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize service.

        Args:
            store: Authoritative document/version store
            audit: Audit recorder
            cache: Read cache (optional; reads always hit the store without one)
            cache_ttl_seconds: Staleness bound for cached reads (0 disables caching)
            supported_locales: Locales accepted for versions (empty accepts any valid tag)
            coordinator: Activation coordinator (optional)
            metrics: Metrics recorder (optional, defaults to no-op)
            logger: Structured logger (optional, defaults to no-op)
            clock: Injectable clock (default: UTC now)
        """
        self._store = store
        self._audit = audit
        self._cache = cache
        self._cache_ttl_seconds = cache_ttl_seconds
        self._supported_locales = frozenset(supported_locales)
        self._coordinator = coordinator or ActivationCoordinator()
        self._metrics = metrics or PolicyMetrics()
        self._logger = logger or PolicyLogger()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def audit(self) -> AuditRecorder:
        return self._audit

    # Reads

    def get_document(
        self,
        slug: str,
        *,
        include_versions: bool = False,
        include_audit: bool = False,
        use_cache: bool = True,
    ) -> DocumentView:
        """Load a document by slug.

        Cached views are returned with from_cache=True and may lag writes by up
        to cache_ttl_seconds.

        Raises:
            NotFoundError: If no document has this slug
        """
        key = make_cache_key(slug, include_versions, include_audit)
        caching = self._cache is not None and self._cache_ttl_seconds > 0
        if caching and use_cache:
            cached = self._cache.get(key, self._clock())
            if cached is not None:
                return cached.model_copy(update={"from_cache": True})

        with self._store.transaction() as tx:
            document = tx.get_document_by_slug(slug)
            if document is None:
                raise NotFoundError(f"No policy found with slug '{slug}'", slug=slug)
            view = self._build_view(tx, document.id, include_versions=include_versions)

        if include_audit:
            view.audit_events = self._audit.list_events(
                document.id, limit=AUDIT_PREVIEW_LIMIT
            ).events

        if caching:
            self._cache.set(key, view, self._cache_ttl_seconds, self._clock())
        return view

    def list_documents(self, *, include_versions: bool = False) -> list[DocumentView]:
        """List all documents ordered by title."""
        with self._store.transaction() as tx:
            return [
                self._build_view(tx, document.id, include_versions=include_versions)
                for document in tx.list_documents()
            ]

    def list_audit_events(
        self, document_id: UUID, *, limit: int = AUDIT_PREVIEW_LIMIT, cursor: str | None = None
    ) -> AuditPage:
        """Page through a document's audit trail, newest first.

        Raises:
            NotFoundError: If the document does not exist
            ValidationError: If limit or cursor is invalid
        """
        with self._store.transaction() as tx:
            self._require_document(tx, document_id)
        return self._audit.list_events(document_id, limit=limit, cursor=cursor)

    def summarize_documents(self) -> DocumentSummary:
        """Rollup over non-archived documents."""
        with self._store.transaction() as tx:
            documents = [
                document
                for document in tx.list_documents()
                if document.status != DocumentStatus.archived
            ]
            published: list[datetime] = []
            for document in documents:
                active = (
                    tx.get_version(document.active_version_id)
                    if document.active_version_id
                    else None
                )
                stamp = (active.published_at if active else None) or document.published_at
                if stamp is not None:
                    published.append(stamp)

        return DocumentSummary(
            total=len(documents),
            active=sum(1 for document in documents if document.status == DocumentStatus.active),
            categories=list(dict.fromkeys(document.category.value for document in documents)),
            regions=list(dict.fromkeys(document.region for document in documents)),
            last_published_at=max(published, default=None),
        )

    # Document mutations

    def create_document(self, draft: DocumentDraft, ctx: RequestContext) -> DocumentView:
        """Create a document with no versions (status draft).

        Raises:
            ValidationError: If a field is malformed
            ConflictError: If the slug is taken
        """

        def body(tx: PolicyTransaction, now: datetime) -> _Change:
            title = validate_title(draft.title)
            slug = validate_slug(draft.slug.strip() if draft.slug else slugify(title))
            document = PolicyDocument(
                id=uuid4(),
                slug=slug,
                title=title,
                category=parse_category(draft.category),
                region=optional_text(draft.region) or "global",
                default_locale=normalize_locale(draft.default_locale, self._supported_locales),
                summary=optional_text(draft.summary),
                audience_roles=(
                    normalize_roles(draft.audience_roles, "audience_roles")
                    if draft.audience_roles is not None
                    else list(DEFAULT_AUDIENCE_ROLES)
                ),
                editor_roles=(
                    normalize_roles(draft.editor_roles, "editor_roles")
                    if draft.editor_roles is not None
                    else list(DEFAULT_EDITOR_ROLES)
                ),
                tags=normalize_string_array(draft.tags),
                metadata=normalize_metadata(draft.metadata),
                created_at=now,
                updated_at=now,
            )
            tx.add_document(document)
            return _Change(
                document.id,
                AuditAction.document_created,
                metadata={
                    "slug": document.slug,
                    "title": document.title,
                    "category": document.category.value,
                    "default_locale": document.default_locale,
                },
                slugs={document.slug},
            )

        return self._run("create_document", ctx, body)

    def update_document(
        self, document_id: UUID, changes: DocumentChanges, ctx: RequestContext
    ) -> DocumentView:
        """Apply a partial update to document fields.

        Changing default_locale recomputes status and active_version_id.

        Raises:
            NotFoundError: If the document does not exist
            ValidationError: If a field is malformed
            ConflictError: If the new slug is taken or the document changed concurrently
        """

        def body(tx: PolicyTransaction, now: datetime) -> _Change:
            document = self._require_document(tx, document_id)
            updates: dict[str, Any] = {}
            diff: dict[str, Any] = {}
            for name in sorted(changes.model_fields_set):
                new = self._normalize_document_field(name, getattr(changes, name))
                old = getattr(document, name)
                if new != old:
                    updates[name] = new
                    diff[name] = {"from": _jsonable(old), "to": _jsonable(new)}

            if not updates:
                return _Change(document.id)

            updated = document.model_copy(update={**updates, "updated_at": now})
            if "default_locale" in updates:
                updated = self._coordinator.refresh_document(
                    updated, tx.list_versions(document.id), now
                )
            tx.save_document(updated)
            return _Change(
                document.id,
                AuditAction.document_updated,
                metadata={"changes": diff},
                slugs={document.slug, updated.slug},
            )

        return self._run("update_document", ctx, body)

    # Version mutations

    def create_version(
        self, document_id: UUID, draft: VersionDraft, ctx: RequestContext
    ) -> DocumentView:
        """Create a draft version with the next number for its locale.

        Raises:
            NotFoundError: If the document does not exist
            ValidationError: If content is empty or the locale is not recognized
            ConflictError: If another write to the locale won the race
        """

        def body(tx: PolicyTransaction, now: datetime) -> _Change:
            document = self._require_document(tx, document_id)
            locale = normalize_locale(draft.locale or document.default_locale, self._supported_locales)
            content = validate_content(draft.content)
            external_url = optional_text(draft.external_url)
            if external_url is not None:
                validate_url(external_url)

            tx.claim_locale(document.id, locale)
            version = PolicyVersion(
                id=uuid4(),
                document_id=document.id,
                locale=locale,
                version=tx.next_version_number(document.id, locale),
                status=VersionStatus.draft,
                summary=optional_text(draft.summary),
                change_summary=optional_text(draft.change_summary),
                content=content,
                external_url=external_url,
                effective_at=_utc(draft.effective_at),
                created_at=now,
                updated_at=now,
            )
            tx.add_version(version)
            self._refresh(tx, document, now)
            return _Change(
                document.id,
                AuditAction.version_created,
                version.id,
                metadata={
                    "locale": version.locale,
                    "version": version.version,
                    "status": version.status.value,
                },
                slugs={document.slug},
            )

        return self._run("create_version", ctx, body)

    def update_version(
        self,
        document_id: UUID,
        version_id: UUID,
        changes: VersionChanges,
        ctx: RequestContext,
    ) -> DocumentView:
        """Edit a version that is still draft, in review or approved.

        Raises:
            NotFoundError: If the document or version does not exist
            InvalidStateError: If the version is published or archived
            ValidationError: If a field is malformed
        """

        def body(tx: PolicyTransaction, now: datetime) -> _Change:
            document = self._require_document(tx, document_id)
            version = self._require_version(tx, document_id, version_id)
            assert_editable(version)

            updates: dict[str, Any] = {}
            diff: dict[str, Any] = {}
            for name in sorted(changes.model_fields_set):
                value = getattr(changes, name)
                if name == "content":
                    new = validate_content(value)
                elif name == "external_url":
                    new = optional_text(value)
                    if new is not None:
                        validate_url(new)
                elif name == "effective_at":
                    new = _utc(value)
                else:
                    new = optional_text(value)
                old = getattr(version, name)
                if new != old:
                    updates[name] = new
                    diff[name] = {"from": _jsonable(old), "to": _jsonable(new)}

            if not updates:
                return _Change(document.id)

            tx.claim_locale(version.document_id, version.locale)
            tx.save_version(version.model_copy(update={**updates, "updated_at": now}))
            return _Change(
                document.id,
                AuditAction.version_updated,
                version.id,
                metadata={"locale": version.locale, "version": version.version, "changes": diff},
                slugs={document.slug},
            )

        return self._run("update_version", ctx, body)

    def transition_version(
        self,
        document_id: UUID,
        version_id: UUID,
        target: VersionStatus | str,
        ctx: RequestContext,
    ) -> DocumentView:
        """Move a version along the lifecycle.

        Requesting the state the version is already in is a no-op.

        Raises:
            NotFoundError: If the document or version does not exist
            ValidationError: If target is not a version status
            IllegalTransitionError: If the edge is not in the lifecycle
        """
        return self._transition("transition_version", document_id, version_id, target, ctx)

    def publish_version(
        self, document_id: UUID, version_id: UUID, ctx: RequestContext
    ) -> DocumentView:
        """Publish an approved version; stamps published_at, defaults effective_at."""
        return self._transition(
            "publish_version", document_id, version_id, VersionStatus.published, ctx
        )

    def archive_version(
        self, document_id: UUID, version_id: UUID, ctx: RequestContext
    ) -> DocumentView:
        """Archive a version; an active version loses its marker and nothing is promoted."""
        return self._transition(
            "archive_version", document_id, version_id, VersionStatus.archived, ctx
        )

    def activate_version(
        self,
        document_id: UUID,
        version_id: UUID,
        ctx: RequestContext,
        *,
        expected_revision: int | None = None,
        supersede: bool = False,
    ) -> DocumentView:
        """Make a published version the live one for its locale.

        Args:
            document_id: Owning document
            version_id: Version to activate
            ctx: Acting identity
            expected_revision: Locale revision the caller last saw (optional)
            supersede: Archive the previously active version instead of keeping it published

        Raises:
            NotFoundError: If the document or version does not exist
            InvalidStateError: If the version is not published
            ConflictError: If another write to the locale won the race
        """

        def body(tx: PolicyTransaction, now: datetime) -> _Change:
            document = self._require_document(tx, document_id)
            version = self._require_version(tx, document_id, version_id)
            if version.is_active and version.status == VersionStatus.published:
                return _Change(document.id)

            result = self._coordinator.activate(
                tx,
                version,
                now,
                expected_revision=expected_revision,
                supersede=supersede,
            )
            self._refresh(tx, document, now, activated=True)
            previous = result.previous
            return _Change(
                document.id,
                AuditAction.version_activated,
                version.id,
                metadata={
                    "locale": version.locale,
                    "version": version.version,
                    "revision": result.revision,
                    "previous_version_id": str(previous.id) if previous else None,
                    "previous_version": previous.version if previous else None,
                    "previous_status": previous.status.value if previous else None,
                    "supersede": supersede,
                },
                slugs={document.slug},
            )

        return self._run("activate_version", ctx, body)

    # Internals

    def _transition(
        self,
        operation: str,
        document_id: UUID,
        version_id: UUID,
        target: VersionStatus | str,
        ctx: RequestContext,
    ) -> DocumentView:
        def body(tx: PolicyTransaction, now: datetime) -> _Change:
            status = _parse_status(target)
            document = self._require_document(tx, document_id)
            version = self._require_version(tx, document_id, version_id)
            if version.status == status:
                return _Change(document.id)

            was_active = version.is_active
            previous_status = version.status
            tx.claim_locale(version.document_id, version.locale)
            if status == VersionStatus.archived and was_active:
                version = self._coordinator.deactivate(tx, version, now)

            moved = tx.save_version(apply_transition(version, status, now))
            self._refresh(tx, document, now)

            metadata: dict[str, Any] = {
                "locale": moved.locale,
                "version": moved.version,
                "from": previous_status.value,
                "to": status.value,
            }
            if status == VersionStatus.published:
                metadata["effective_at"] = _jsonable(moved.effective_at)
                metadata["published_at"] = _jsonable(moved.published_at)
            if status == VersionStatus.archived:
                metadata["was_active"] = was_active
            return _Change(
                document.id,
                TRANSITION_ACTIONS[status],
                moved.id,
                metadata=metadata,
                slugs={document.slug},
            )

        return self._run(operation, ctx, body)

    def _run(
        self,
        operation: str,
        ctx: RequestContext,
        body: Callable[[PolicyTransaction, datetime], _Change],
    ) -> DocumentView:
        start_time = time.monotonic()
        try:
            with self._store.transaction() as tx:
                change = body(tx, self._clock())
                view = self._build_view(tx, change.document_id, include_versions=True)
        except PolicyError as e:
            elapsed_ms = (time.monotonic() - start_time) * 1000
            self._metrics.record_latency(operation, "error", elapsed_ms)
            self._metrics.inc_error(operation, e.kind)
            if isinstance(e, ConflictError) and operation == "activate_version":
                self._metrics.inc_activation_conflict()
            self._logger.log_operation(
                operation,
                ctx,
                "error",
                elapsed_ms,
                document_id=e.details.get("document_id"),
                version_id=e.details.get("version_id"),
                error_kind=e.kind,
            )
            raise

        outcome = "noop"
        if change.action is not None:
            outcome = "success"
            event = self._audit.record(
                change.document_id, change.version_id, change.action, ctx, change.metadata
            )
            # Cached audit previews must include the event just written
            if self._cache is not None:
                self._cache.delete([key for slug in change.slugs for key in cache_keys_for(slug)])
            if event is None:
                view = view.model_copy(update={"audit_pending_reconciliation": True})

        elapsed_ms = (time.monotonic() - start_time) * 1000
        self._metrics.record_latency(operation, outcome, elapsed_ms)
        self._logger.log_operation(
            operation,
            ctx,
            outcome,
            elapsed_ms,
            document_id=str(change.document_id),
            version_id=str(change.version_id) if change.version_id else None,
        )
        return view

    def _refresh(
        self,
        tx: PolicyTransaction,
        document: PolicyDocument,
        now: datetime,
        *,
        activated: bool = False,
    ) -> None:
        refreshed = self._coordinator.refresh_document(
            document, tx.list_versions(document.id), now, activated=activated
        )
        if refreshed is not document:
            tx.save_document(refreshed)

    def _build_view(
        self, tx: PolicyTransaction, document_id: UUID, *, include_versions: bool
    ) -> DocumentView:
        document = self._require_document(tx, document_id)
        return DocumentView(
            document=document,
            versions=tx.list_versions(document_id) if include_versions else None,
            locale_revisions=tx.locale_revisions(document_id),
        )

    def _require_document(self, tx: PolicyTransaction, document_id: UUID) -> PolicyDocument:
        document = tx.get_document(document_id)
        if document is None:
            raise NotFoundError("Policy not found", document_id=str(document_id))
        return document

    def _require_version(
        self, tx: PolicyTransaction, document_id: UUID, version_id: UUID
    ) -> PolicyVersion:
        version = tx.get_version(version_id)
        if version is None or version.document_id != document_id:
            raise NotFoundError(
                "Policy version not found",
                document_id=str(document_id),
                version_id=str(version_id),
            )
        return version

    def _normalize_document_field(self, name: str, value: Any) -> Any:
        if name == "title":
            return validate_title(value)
        if name == "slug":
            return validate_slug((value or "").strip())
        if name == "category":
            return parse_category(value or "")
        if name == "region":
            return optional_text(value) or "global"
        if name == "default_locale":
            return normalize_locale(value, self._supported_locales)
        if name == "summary":
            return optional_text(value)
        if name == "audience_roles":
            return (
                normalize_roles(value, name) if value is not None else list(DEFAULT_AUDIENCE_ROLES)
            )
        if name == "editor_roles":
            return normalize_roles(value, name) if value is not None else list(DEFAULT_EDITOR_ROLES)
        if name == "tags":
            return normalize_string_array(value)
        if name == "metadata":
            return normalize_metadata(value)
        raise ValidationError(f"Field '{name}' cannot be updated", field=name)
