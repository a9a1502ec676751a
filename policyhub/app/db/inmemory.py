"""In-memory implementations of repository interfaces."""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from uuid import UUID

from policyhub.app.lifecycle.errors import ConflictError
from policyhub.app.models.policies import AuditEvent, PolicyDocument, PolicyVersion


class InMemoryPolicyStore:
    """In-memory implementation of PolicyStore.

    Transactions buffer their writes and validate them optimistically under a
    single lock at commit: claimed locale tokens and saved document and version
    revisions must still hold the values read by the transaction.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._documents: dict[UUID, PolicyDocument] = {}
        self._versions: dict[UUID, PolicyVersion] = {}
        self._tokens: dict[tuple[UUID, str], int] = {}

    @contextmanager
    def transaction(self) -> Iterator["InMemoryPolicyTransaction"]:
        """Open a unit of work; nothing is applied if the block raises."""
        tx = InMemoryPolicyTransaction(self)
        yield tx
        tx.commit()

    def _snapshot_documents(self) -> dict[UUID, PolicyDocument]:
        with self._lock:
            return {key: doc.model_copy(deep=True) for key, doc in self._documents.items()}

    def _snapshot_versions(self, document_id: UUID) -> dict[UUID, PolicyVersion]:
        with self._lock:
            return {
                key: version.model_copy(deep=True)
                for key, version in self._versions.items()
                if version.document_id == document_id
            }

    def _read_version(self, version_id: UUID) -> PolicyVersion | None:
        with self._lock:
            version = self._versions.get(version_id)
            return version.model_copy(deep=True) if version else None

    def _read_token(self, document_id: UUID, locale: str) -> int:
        with self._lock:
            return self._tokens.get((document_id, locale), 0)

    def _read_tokens(self, document_id: UUID) -> dict[str, int]:
        with self._lock:
            return {
                locale: revision
                for (doc_id, locale), revision in self._tokens.items()
                if doc_id == document_id
            }


class InMemoryPolicyTransaction:
    """Buffered unit of work against an InMemoryPolicyStore."""

    def __init__(self, store: InMemoryPolicyStore) -> None:
        self._store = store
        self._documents: dict[UUID, PolicyDocument] = {}
        self._new_documents: set[UUID] = set()
        self._document_expected: dict[UUID, int] = {}
        self._versions: dict[UUID, PolicyVersion] = {}
        self._new_versions: set[UUID] = set()
        self._version_expected: dict[UUID, int] = {}
        self._claims: dict[tuple[UUID, str], int] = {}

    # Documents

    def _merged_documents(self) -> dict[UUID, PolicyDocument]:
        merged = self._store._snapshot_documents()
        merged.update({key: doc.model_copy(deep=True) for key, doc in self._documents.items()})
        return merged

    def get_document(self, document_id: UUID) -> PolicyDocument | None:
        """Get document by ID."""
        return self._merged_documents().get(document_id)

    def get_document_by_slug(self, slug: str) -> PolicyDocument | None:
        """Get document by slug."""
        for document in self._merged_documents().values():
            if document.slug == slug:
                return document
        return None

    def list_documents(self) -> list[PolicyDocument]:
        """List all documents ordered by title."""
        return sorted(self._merged_documents().values(), key=lambda doc: doc.title.lower())

    def add_document(self, document: PolicyDocument) -> None:
        """Insert a new document."""
        if self.get_document_by_slug(document.slug) is not None:
            raise ConflictError(f"Slug '{document.slug}' is already in use", slug=document.slug)
        self._documents[document.id] = document.model_copy(deep=True)
        self._new_documents.add(document.id)

    def save_document(self, document: PolicyDocument) -> PolicyDocument:
        """Update a document guarded by its revision."""
        pending = self._documents.get(document.id)
        if pending is not None:
            if pending.revision != document.revision:
                raise ConflictError("Document was modified concurrently", document_id=str(document.id))
            stored = document.model_copy(deep=True)
        else:
            self._document_expected[document.id] = document.revision
            stored = document.model_copy(update={"revision": document.revision + 1}, deep=True)

        holder = self.get_document_by_slug(stored.slug)
        if holder is not None and holder.id != stored.id:
            raise ConflictError(f"Slug '{stored.slug}' is already in use", slug=stored.slug)

        self._documents[document.id] = stored
        return stored.model_copy(deep=True)

    # Versions

    def _merged_versions(self, document_id: UUID) -> dict[UUID, PolicyVersion]:
        merged = self._store._snapshot_versions(document_id)
        merged.update(
            {
                key: version.model_copy(deep=True)
                for key, version in self._versions.items()
                if version.document_id == document_id
            }
        )
        return merged

    def get_version(self, version_id: UUID) -> PolicyVersion | None:
        """Get version by ID."""
        pending = self._versions.get(version_id)
        if pending is not None:
            return pending.model_copy(deep=True)
        return self._store._read_version(version_id)

    def list_versions(self, document_id: UUID) -> list[PolicyVersion]:
        """List versions ordered by locale, then version descending."""
        versions = self._merged_versions(document_id).values()
        return sorted(versions, key=lambda version: (version.locale, -version.version))

    def add_version(self, version: PolicyVersion) -> None:
        """Insert a new version."""
        for existing in self._merged_versions(version.document_id).values():
            if existing.locale == version.locale and existing.version == version.version:
                raise ConflictError(
                    "Version number was allocated concurrently", locale=version.locale
                )
        self._versions[version.id] = version.model_copy(deep=True)
        self._new_versions.add(version.id)

    def save_version(self, version: PolicyVersion) -> PolicyVersion:
        """Update a version guarded by its revision."""
        pending = self._versions.get(version.id)
        if pending is not None:
            if pending.revision != version.revision:
                raise ConflictError("Version was modified concurrently", version_id=str(version.id))
            stored = version.model_copy(deep=True)
        else:
            self._version_expected[version.id] = version.revision
            stored = version.model_copy(update={"revision": version.revision + 1}, deep=True)

        self._versions[version.id] = stored
        return stored.model_copy(deep=True)

    def next_version_number(self, document_id: UUID, locale: str) -> int:
        """Next version number for (document, locale)."""
        numbers = [
            version.version
            for version in self._merged_versions(document_id).values()
            if version.locale == locale
        ]
        return max(numbers, default=0) + 1

    # Activation tokens

    def claim_locale(
        self, document_id: UUID, locale: str, expected_revision: int | None = None
    ) -> int:
        """Claim the activation token of (document, locale)."""
        key = (document_id, locale)
        if key not in self._claims:
            self._claims[key] = self._store._read_token(document_id, locale)

        seen = self._claims[key]
        if expected_revision is not None and expected_revision != seen:
            raise ConflictError(
                f"Locale '{locale}' changed since revision {expected_revision}; reload and retry",
                locale=locale,
                expected_revision=expected_revision,
                current_revision=seen,
            )
        return seen + 1

    def locale_revisions(self, document_id: UUID) -> dict[str, int]:
        """Current activation token revision per locale."""
        revisions = self._store._read_tokens(document_id)
        for (doc_id, locale), seen in self._claims.items():
            if doc_id == document_id:
                revisions[locale] = seen + 1
        return revisions

    # Commit

    def commit(self) -> None:
        """Validate optimistic expectations and apply buffered writes atomically."""
        store = self._store
        with store._lock:
            for (document_id, locale), seen in self._claims.items():
                if store._tokens.get((document_id, locale), 0) != seen:
                    raise ConflictError(
                        f"Locale '{locale}' was modified concurrently; reload and retry",
                        document_id=str(document_id),
                        locale=locale,
                    )

            for document_id, expected in self._document_expected.items():
                current = store._documents.get(document_id)
                if current is None or current.revision != expected:
                    raise ConflictError(
                        "Document was modified concurrently; reload and retry",
                        document_id=str(document_id),
                    )

            for version_id, expected in self._version_expected.items():
                current_version = store._versions.get(version_id)
                if current_version is None or current_version.revision != expected:
                    raise ConflictError(
                        "Version was modified concurrently; reload and retry",
                        version_id=str(version_id),
                    )

            merged = dict(store._documents)
            merged.update(self._documents)
            for document in self._documents.values():
                for other in merged.values():
                    if other.id != document.id and other.slug == document.slug:
                        raise ConflictError(
                            f"Slug '{document.slug}' is already in use", slug=document.slug
                        )

            for version_id in self._new_versions:
                version = self._versions[version_id]
                for other in store._versions.values():
                    if (
                        other.document_id == version.document_id
                        and other.locale == version.locale
                        and other.version == version.version
                    ):
                        raise ConflictError(
                            "Version number was allocated concurrently; reload and retry",
                            locale=version.locale,
                        )

            for key, seen in self._claims.items():
                store._tokens[key] = seen + 1
            store._documents.update(self._documents)
            store._versions.update(self._versions)


class InMemoryAuditStore:
    """In-memory implementation of AuditStore."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: list[AuditEvent] = []
        self._sequence = 0

    def append(self, event: AuditEvent) -> AuditEvent:
        """Append an event and assign its sequence."""
        with self._lock:
            self._sequence += 1
            stored = event.model_copy(update={"sequence": self._sequence}, deep=True)
            self._events.append(stored)
            return stored.model_copy(deep=True)

    def list_events(
        self, document_id: UUID, limit: int, before_sequence: int | None = None
    ) -> list[AuditEvent]:
        """List events for a document, newest first."""
        with self._lock:
            events = [
                event
                for event in self._events
                if event.document_id == document_id
                and (before_sequence is None or event.sequence < before_sequence)
            ]
        events.sort(key=lambda event: event.sequence, reverse=True)
        return [event.model_copy(deep=True) for event in events[:limit]]
