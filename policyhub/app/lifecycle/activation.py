"""Activation coordinator - one active version per (document, locale)."""

from dataclasses import dataclass
from datetime import datetime

from policyhub.app.db.repositories import PolicyTransaction
from policyhub.app.lifecycle.errors import InvalidStateError
from policyhub.app.lifecycle.state_machine import apply_transition
from policyhub.app.models.common import DocumentStatus, VersionStatus
from policyhub.app.models.policies import PolicyDocument, PolicyVersion


@dataclass
class ActivationResult:
    """Outcome of an activation inside a transaction."""

    version: PolicyVersion
    previous: PolicyVersion | None
    revision: int


class ActivationCoordinator:
    """Moves the active marker between versions of one locale.

    Every change to a marker claims the locale's activation token on the
    transaction, so two writers racing on the same locale cannot both commit.
    """

    def activate(
        self,
        tx: PolicyTransaction,
        version: PolicyVersion,
        now: datetime,
        *,
        expected_revision: int | None = None,
        supersede: bool = False,
    ) -> ActivationResult:
        """Make version the active one for its locale.

        The previously active version keeps its published status and loses the
        marker, unless supersede is set, in which case it is archived.

        Raises:
            InvalidStateError: If the version is not published
            ConflictError: If the locale token moved
        """
        if version.status != VersionStatus.published:
            raise InvalidStateError(
                f"Only published versions can be activated; v{version.version} "
                f"({version.locale}) is {version.status.value}",
                version_id=str(version.id),
                current=version.status.value,
                attempted="activate",
            )

        revision = tx.claim_locale(version.document_id, version.locale, expected_revision)

        previous = self.current_active(tx, version)
        if previous is not None:
            if supersede:
                previous = apply_transition(previous, VersionStatus.archived, now)
            previous = previous.model_copy(
                update={"is_active": False, "superseded_at": now, "updated_at": now}
            )
            previous = tx.save_version(previous)

        activated = version.model_copy(
            update={"is_active": True, "activated_at": now, "superseded_at": None, "updated_at": now}
        )
        activated = tx.save_version(activated)
        return ActivationResult(version=activated, previous=previous, revision=revision)

    def deactivate(
        self, tx: PolicyTransaction, version: PolicyVersion, now: datetime
    ) -> PolicyVersion:
        """Clear the active marker without promoting a replacement.

        Returns:
            The updated version (saved on the transaction)
        """
        tx.claim_locale(version.document_id, version.locale)
        cleared = version.model_copy(update={"is_active": False, "updated_at": now})
        return tx.save_version(cleared)

    def current_active(
        self, tx: PolicyTransaction, version: PolicyVersion
    ) -> PolicyVersion | None:
        """Active version sharing version's (document, locale), other than itself."""
        for candidate in tx.list_versions(version.document_id):
            if (
                candidate.locale == version.locale
                and candidate.is_active
                and candidate.id != version.id
            ):
                return candidate
        return None

    def refresh_document(
        self,
        document: PolicyDocument,
        versions: list[PolicyVersion],
        now: datetime,
        *,
        activated: bool = False,
    ) -> PolicyDocument:
        """Recompute the document's derived fields from its versions.

        Args:
            document: Document as read in the transaction
            versions: The document's versions including this transaction's writes
            now: Current timestamp
            activated: Whether a version was just activated (stamps published_at)

        Returns:
            Updated copy (identical to document when nothing derived changed)
        """
        active = [version for version in versions if version.is_active]
        has_default_locale = any(
            version.locale == document.default_locale for version in versions
        )

        if active and has_default_locale:
            status = DocumentStatus.active
        elif versions and all(version.status == VersionStatus.archived for version in versions):
            status = DocumentStatus.archived
        else:
            status = DocumentStatus.draft

        active_version_id = next(
            (version.id for version in active if version.locale == document.default_locale),
            None,
        )

        updates: dict[str, object] = {}
        if status != document.status:
            updates["status"] = status
            if status == DocumentStatus.archived:
                updates["retired_at"] = now
            elif document.status == DocumentStatus.archived:
                updates["retired_at"] = None
        if active_version_id != document.active_version_id:
            updates["active_version_id"] = active_version_id
        if activated:
            updates["published_at"] = now

        if not updates:
            return document
        updates["updated_at"] = now
        return document.model_copy(update=updates)
