"""Repository protocol interfaces for data access."""

from contextlib import AbstractContextManager
from typing import Protocol
from uuid import UUID

from policyhub.app.models.policies import AuditEvent, PolicyDocument, PolicyVersion


class PolicyTransaction(Protocol):
    """Unit of work over documents, versions and per-locale activation tokens.

    Writes become visible to other transactions only when the enclosing
    ``PolicyStore.transaction()`` block exits without an exception.
    """

    def get_document(self, document_id: UUID) -> PolicyDocument | None:
        """Get document by ID."""
        ...

    def get_document_by_slug(self, slug: str) -> PolicyDocument | None:
        """Get document by slug."""
        ...

    def list_documents(self) -> list[PolicyDocument]:
        """List all documents ordered by title."""
        ...

    def add_document(self, document: PolicyDocument) -> None:
        """Insert a new document.

        Raises:
            ConflictError: If the slug is already taken
        """
        ...

    def save_document(self, document: PolicyDocument) -> PolicyDocument:
        """Update a document guarded by its revision.

        Args:
            document: Document carrying the revision it was read at

        Returns:
            The stored document with its bumped revision

        Raises:
            ConflictError: If the row changed since it was read, or the slug is taken
        """
        ...

    def get_version(self, version_id: UUID) -> PolicyVersion | None:
        """Get version by ID."""
        ...

    def list_versions(self, document_id: UUID) -> list[PolicyVersion]:
        """List a document's versions ordered by locale, then version descending."""
        ...

    def add_version(self, version: PolicyVersion) -> None:
        """Insert a new version.

        Raises:
            ConflictError: If (document_id, locale, version) is already taken
        """
        ...

    def save_version(self, version: PolicyVersion) -> PolicyVersion:
        """Update a version guarded by its revision.

        Args:
            version: Version carrying the revision it was read at

        Returns:
            The stored version with its bumped revision

        Raises:
            ConflictError: If the row changed since it was read
        """
        ...

    def next_version_number(self, document_id: UUID, locale: str) -> int:
        """Next version number for (document, locale); never reuses archived numbers."""
        ...

    def claim_locale(
        self, document_id: UUID, locale: str, expected_revision: int | None = None
    ) -> int:
        """Claim the activation token of (document, locale) for this transaction.

        The token is compared-and-swapped when the claim is made durable; a
        transaction that lost the race fails with ConflictError.

        Args:
            document_id: Owning document
            locale: Locale whose versions are being mutated
            expected_revision: Revision the caller observed, if any

        Returns:
            The revision the token will hold once this transaction commits

        Raises:
            ConflictError: If expected_revision does not match, or the token moved
        """
        ...

    def locale_revisions(self, document_id: UUID) -> dict[str, int]:
        """Current activation token revision per locale."""
        ...


class PolicyStore(Protocol):
    """Authoritative store for documents and versions."""

    def transaction(self) -> AbstractContextManager[PolicyTransaction]:
        """Open a unit of work; commits on clean exit, discards on exception.

        Raises:
            ConflictError: If an optimistic check fails at commit
            PersistenceError: If the storage layer fails
        """
        ...


class AuditStore(Protocol):
    """Append-only audit event log."""

    def append(self, event: AuditEvent) -> AuditEvent:
        """Append an event.

        Returns:
            The stored event with its sequence assigned
        """
        ...

    def list_events(
        self, document_id: UUID, limit: int, before_sequence: int | None = None
    ) -> list[AuditEvent]:
        """List events for a document, newest first.

        Args:
            document_id: Document ID
            limit: Maximum number of events
            before_sequence: Only events with a smaller sequence (pagination)

        Returns:
            Events ordered by sequence descending
        """
        ...
