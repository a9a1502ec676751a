"""SQL implementations of repository interfaces."""

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from policyhub.app.db.models import (
    LegalDocument,
    LegalDocumentAuditEvent,
    LegalDocumentVersion,
    LocaleActivationToken,
)
from policyhub.app.lifecycle.errors import ConflictError, PersistenceError, PolicyError
from policyhub.app.models.policies import AuditEvent, PolicyDocument, PolicyVersion

_DOCUMENT_FIELDS = (
    "slug",
    "title",
    "category",
    "region",
    "default_locale",
    "summary",
    "audience_roles",
    "editor_roles",
    "tags",
    "status",
    "active_version_id",
    "published_at",
    "retired_at",
    "created_at",
    "updated_at",
)

_VERSION_FIELDS = (
    "document_id",
    "locale",
    "version",
    "status",
    "is_active",
    "summary",
    "change_summary",
    "content",
    "external_url",
    "effective_at",
    "published_at",
    "activated_at",
    "superseded_at",
    "created_at",
    "updated_at",
)


def _aware(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo; everything is stored as UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_document(row: LegalDocument) -> PolicyDocument:
    return PolicyDocument(
        id=row.id,
        slug=row.slug,
        title=row.title,
        category=row.category,
        region=row.region,
        default_locale=row.default_locale,
        summary=row.summary,
        audience_roles=list(row.audience_roles or []),
        editor_roles=list(row.editor_roles or []),
        tags=list(row.tags or []),
        metadata=dict(row.attributes or {}),
        status=row.status,
        active_version_id=row.active_version_id,
        published_at=_aware(row.published_at),
        retired_at=_aware(row.retired_at),
        revision=row.revision,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


def _document_values(document: PolicyDocument) -> dict:
    values = document.model_dump(mode="python", include=set(_DOCUMENT_FIELDS))
    values["category"] = document.category.value
    values["status"] = document.status.value
    values["audience_roles"] = [role.value for role in document.audience_roles]
    values["editor_roles"] = [role.value for role in document.editor_roles]
    values["attributes"] = dict(document.metadata)
    return values


def _to_version(row: LegalDocumentVersion) -> PolicyVersion:
    return PolicyVersion(
        id=row.id,
        document_id=row.document_id,
        locale=row.locale,
        version=row.version,
        status=row.status,
        is_active=row.is_active,
        summary=row.summary,
        change_summary=row.change_summary,
        content=row.content,
        external_url=row.external_url,
        effective_at=_aware(row.effective_at),
        published_at=_aware(row.published_at),
        activated_at=_aware(row.activated_at),
        superseded_at=_aware(row.superseded_at),
        revision=row.revision,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


def _version_values(version: PolicyVersion) -> dict:
    values = version.model_dump(mode="python", include=set(_VERSION_FIELDS))
    values["status"] = version.status.value
    return values


def _to_event(row: LegalDocumentAuditEvent) -> AuditEvent:
    return AuditEvent(
        id=row.id,
        sequence=row.sequence,
        document_id=row.document_id,
        version_id=row.version_id,
        action=row.action,
        actor_id=row.actor_id,
        actor_type=row.actor_type,
        metadata=dict(row.attributes or {}),
        created_at=_aware(row.created_at),
    )


class SqlPolicyStore:
    """SQL implementation of PolicyStore; one session per transaction."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    @contextmanager
    def transaction(self) -> Iterator["SqlPolicyTransaction"]:
        """Open a unit of work; commits on clean exit, rolls back otherwise.

        Raises:
            ConflictError: If a uniqueness constraint is violated
            PersistenceError: If the database fails
        """
        session = self._session_factory()
        try:
            yield SqlPolicyTransaction(session)
            session.commit()
        except PolicyError:
            session.rollback()
            raise
        except IntegrityError as e:
            session.rollback()
            raise ConflictError(
                "Concurrent write violated a uniqueness constraint; reload and retry"
            ) from e
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError("Policy store unavailable", error=type(e).__name__) from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


class SqlPolicyTransaction:
    """SQL implementation of PolicyTransaction.

    Locale tokens, document and version revisions are compared-and-swapped with
    conditional UPDATEs; a zero rowcount means another writer got there first.
    """

    def __init__(self, session: Session) -> None:
        self._session = session
        self._claims: dict[tuple[uuid.UUID, str], int] = {}

    # Documents

    def get_document(self, document_id: uuid.UUID) -> PolicyDocument | None:
        """Get document by ID."""
        row = self._session.get(LegalDocument, document_id)
        return _to_document(row) if row else None

    def get_document_by_slug(self, slug: str) -> PolicyDocument | None:
        """Get document by slug."""
        row = self._session.scalars(
            select(LegalDocument).where(LegalDocument.slug == slug)
        ).first()
        return _to_document(row) if row else None

    def list_documents(self) -> list[PolicyDocument]:
        """List all documents ordered by title."""
        rows = self._session.scalars(select(LegalDocument)).all()
        return sorted((_to_document(row) for row in rows), key=lambda doc: doc.title.lower())

    def add_document(self, document: PolicyDocument) -> None:
        """Insert a new document."""
        if self.get_document_by_slug(document.slug) is not None:
            raise ConflictError(f"Slug '{document.slug}' is already in use", slug=document.slug)
        row = LegalDocument(id=document.id, revision=document.revision, **_document_values(document))
        self._session.add(row)
        self._session.flush()

    def save_document(self, document: PolicyDocument) -> PolicyDocument:
        """Update a document guarded by its revision."""
        holder = self.get_document_by_slug(document.slug)
        if holder is not None and holder.id != document.id:
            raise ConflictError(f"Slug '{document.slug}' is already in use", slug=document.slug)

        values = {
            getattr(LegalDocument, name): value for name, value in _document_values(document).items()
        }
        values[LegalDocument.revision] = LegalDocument.revision + 1
        result = self._session.execute(
            update(LegalDocument)
            .where(LegalDocument.id == document.id, LegalDocument.revision == document.revision)
            .values(values)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount == 0:
            raise ConflictError(
                "Document was modified concurrently; reload and retry",
                document_id=str(document.id),
            )
        return document.model_copy(update={"revision": document.revision + 1})

    # Versions

    def get_version(self, version_id: uuid.UUID) -> PolicyVersion | None:
        """Get version by ID."""
        row = self._session.get(LegalDocumentVersion, version_id)
        return _to_version(row) if row else None

    def list_versions(self, document_id: uuid.UUID) -> list[PolicyVersion]:
        """List versions ordered by locale, then version descending."""
        rows = self._session.scalars(
            select(LegalDocumentVersion)
            .where(LegalDocumentVersion.document_id == document_id)
            .order_by(LegalDocumentVersion.locale, LegalDocumentVersion.version.desc())
        ).all()
        return [_to_version(row) for row in rows]

    def add_version(self, version: PolicyVersion) -> None:
        """Insert a new version."""
        self._session.add(
            LegalDocumentVersion(id=version.id, revision=version.revision, **_version_values(version))
        )
        self._session.flush()

    def save_version(self, version: PolicyVersion) -> PolicyVersion:
        """Update a version guarded by its revision.

        Executed immediately so marker moves hit the active-version index in order.
        """
        values = {
            getattr(LegalDocumentVersion, name): value
            for name, value in _version_values(version).items()
        }
        values[LegalDocumentVersion.revision] = LegalDocumentVersion.revision + 1
        result = self._session.execute(
            update(LegalDocumentVersion)
            .where(
                LegalDocumentVersion.id == version.id,
                LegalDocumentVersion.revision == version.revision,
            )
            .values(values)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount == 0:
            raise ConflictError(
                "Version was modified concurrently; reload and retry",
                version_id=str(version.id),
            )
        return version.model_copy(update={"revision": version.revision + 1})

    def next_version_number(self, document_id: uuid.UUID, locale: str) -> int:
        """Next version number for (document, locale)."""
        numbers = self._session.scalars(
            select(LegalDocumentVersion.version).where(
                LegalDocumentVersion.document_id == document_id,
                LegalDocumentVersion.locale == locale,
            )
        ).all()
        return max(numbers, default=0) + 1

    # Activation tokens

    def claim_locale(
        self, document_id: uuid.UUID, locale: str, expected_revision: int | None = None
    ) -> int:
        """Claim the activation token of (document, locale)."""
        key = (document_id, locale)
        claimed = key in self._claims
        if claimed:
            seen = self._claims[key]
        else:
            current = self._session.scalar(
                select(LocaleActivationToken.revision).where(
                    LocaleActivationToken.document_id == document_id,
                    LocaleActivationToken.locale == locale,
                )
            )
            seen = current or 0

        if expected_revision is not None and expected_revision != seen:
            raise ConflictError(
                f"Locale '{locale}' changed since revision {expected_revision}; reload and retry",
                locale=locale,
                expected_revision=expected_revision,
                current_revision=seen,
            )
        if claimed:
            return seen + 1

        if seen == 0 and current is None:
            # A concurrent first claim fails the primary key at flush or commit
            self._session.execute(
                insert(LocaleActivationToken).values(
                    document_id=document_id, locale=locale, revision=1
                )
            )
        else:
            result = self._session.execute(
                update(LocaleActivationToken)
                .where(
                    LocaleActivationToken.document_id == document_id,
                    LocaleActivationToken.locale == locale,
                    LocaleActivationToken.revision == seen,
                )
                .values(revision=seen + 1)
            )
            if result.rowcount == 0:
                raise ConflictError(
                    f"Locale '{locale}' was modified concurrently; reload and retry",
                    document_id=str(document_id),
                    locale=locale,
                )
        self._claims[key] = seen
        return seen + 1

    def locale_revisions(self, document_id: uuid.UUID) -> dict[str, int]:
        """Current activation token revision per locale."""
        rows = self._session.execute(
            select(LocaleActivationToken.locale, LocaleActivationToken.revision).where(
                LocaleActivationToken.document_id == document_id
            )
        ).all()
        return {locale: revision for locale, revision in rows}


class SqlAuditStore:
    """SQL implementation of AuditStore; each append commits on its own."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def append(self, event: AuditEvent) -> AuditEvent:
        """Append an event and assign its sequence."""
        with self._session_factory() as session:
            row = LegalDocumentAuditEvent(
                id=event.id,
                document_id=event.document_id,
                version_id=event.version_id,
                action=event.action,
                actor_id=event.actor_id,
                actor_type=event.actor_type,
                attributes=event.model_dump(mode="json", include={"metadata"})["metadata"],
                created_at=event.created_at,
            )
            session.add(row)
            try:
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                raise PersistenceError("Audit store unavailable", error=type(e).__name__) from e
            return _to_event(row)

    def list_events(
        self, document_id: uuid.UUID, limit: int, before_sequence: int | None = None
    ) -> list[AuditEvent]:
        """List events for a document, newest first."""
        query = select(LegalDocumentAuditEvent).where(
            LegalDocumentAuditEvent.document_id == document_id
        )
        if before_sequence is not None:
            query = query.where(LegalDocumentAuditEvent.sequence < before_sequence)
        query = query.order_by(LegalDocumentAuditEvent.sequence.desc()).limit(limit)

        with self._session_factory() as session:
            try:
                rows = session.scalars(query).all()
            except SQLAlchemyError as e:
                raise PersistenceError("Audit store unavailable", error=type(e).__name__) from e
            return [_to_event(row) for row in rows]
