"""Unit tests for the activation coordinator."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from policyhub.app.db.inmemory import InMemoryPolicyStore
from policyhub.app.lifecycle.activation import ActivationCoordinator
from policyhub.app.lifecycle.errors import ConflictError, InvalidStateError
from policyhub.app.models.common import DocumentCategory, DocumentStatus, VersionStatus
from policyhub.app.models.policies import PolicyDocument, PolicyVersion

T0 = datetime(2026, 4, 1, tzinfo=timezone.utc)


def make_document(default_locale: str = "en") -> PolicyDocument:
    return PolicyDocument(
        id=uuid4(),
        slug="privacy",
        title="Privacy Policy",
        category=DocumentCategory.privacy,
        default_locale=default_locale,
        created_at=T0,
        updated_at=T0,
    )


def make_version(
    document: PolicyDocument,
    number: int,
    status: VersionStatus = VersionStatus.published,
    locale: str = "en",
    is_active: bool = False,
) -> PolicyVersion:
    return PolicyVersion(
        id=uuid4(),
        document_id=document.id,
        locale=locale,
        version=number,
        status=status,
        is_active=is_active,
        content=f"Body v{number}",
        created_at=T0,
        updated_at=T0,
    )


@pytest.fixture
def coordinator() -> ActivationCoordinator:
    return ActivationCoordinator()


@pytest.fixture
def document(store: InMemoryPolicyStore) -> PolicyDocument:
    document = make_document()
    with store.transaction() as tx:
        tx.add_document(document)
    return document


class TestActivate:
    """Test moving the active marker."""

    def test_activate_first_version(
        self,
        store: InMemoryPolicyStore,
        document: PolicyDocument,
        coordinator: ActivationCoordinator,
    ) -> None:
        v1 = make_version(document, 1)
        with store.transaction() as tx:
            tx.add_version(v1)

        with store.transaction() as tx:
            result = coordinator.activate(tx, tx.get_version(v1.id), T0)

        assert result.previous is None
        assert result.revision == 1
        assert result.version.is_active is True
        assert result.version.activated_at == T0

    def test_activate_moves_marker_and_keeps_previous_published(
        self,
        store: InMemoryPolicyStore,
        document: PolicyDocument,
        coordinator: ActivationCoordinator,
    ) -> None:
        v1 = make_version(document, 1, is_active=True)
        v2 = make_version(document, 2)
        with store.transaction() as tx:
            tx.add_version(v1)
            tx.add_version(v2)

        later = T0 + timedelta(days=1)
        with store.transaction() as tx:
            result = coordinator.activate(tx, tx.get_version(v2.id), later)

        with store.transaction() as tx:
            previous = tx.get_version(v1.id)
            current = tx.get_version(v2.id)

        assert result.previous.id == v1.id
        assert previous.is_active is False
        assert previous.status == VersionStatus.published
        assert previous.superseded_at == later
        assert current.is_active is True

    def test_supersede_archives_previous(
        self,
        store: InMemoryPolicyStore,
        document: PolicyDocument,
        coordinator: ActivationCoordinator,
    ) -> None:
        v1 = make_version(document, 1, is_active=True)
        v2 = make_version(document, 2)
        with store.transaction() as tx:
            tx.add_version(v1)
            tx.add_version(v2)

        with store.transaction() as tx:
            coordinator.activate(tx, tx.get_version(v2.id), T0, supersede=True)

        with store.transaction() as tx:
            assert tx.get_version(v1.id).status == VersionStatus.archived

    def test_other_locales_untouched(
        self,
        store: InMemoryPolicyStore,
        document: PolicyDocument,
        coordinator: ActivationCoordinator,
    ) -> None:
        fr = make_version(document, 1, locale="fr", is_active=True)
        en = make_version(document, 1)
        with store.transaction() as tx:
            tx.add_version(fr)
            tx.add_version(en)

        with store.transaction() as tx:
            result = coordinator.activate(tx, tx.get_version(en.id), T0)

        assert result.previous is None
        with store.transaction() as tx:
            assert tx.get_version(fr.id).is_active is True

    @pytest.mark.parametrize(
        "status", [VersionStatus.draft, VersionStatus.approved, VersionStatus.archived]
    )
    def test_only_published_versions_activate(
        self,
        store: InMemoryPolicyStore,
        document: PolicyDocument,
        coordinator: ActivationCoordinator,
        status: VersionStatus,
    ) -> None:
        version = make_version(document, 1, status=status)
        with store.transaction() as tx:
            tx.add_version(version)

        with pytest.raises(InvalidStateError) as exc_info:
            with store.transaction() as tx:
                coordinator.activate(tx, tx.get_version(version.id), T0)

        assert exc_info.value.details["current"] == status.value
        assert exc_info.value.details["attempted"] == "activate"

    def test_stale_expected_revision_conflicts(
        self,
        store: InMemoryPolicyStore,
        document: PolicyDocument,
        coordinator: ActivationCoordinator,
    ) -> None:
        version = make_version(document, 1)
        with store.transaction() as tx:
            tx.add_version(version)
            tx.claim_locale(document.id, "en")

        with pytest.raises(ConflictError):
            with store.transaction() as tx:
                coordinator.activate(tx, tx.get_version(version.id), T0, expected_revision=0)

    def test_deactivate_clears_marker(
        self,
        store: InMemoryPolicyStore,
        document: PolicyDocument,
        coordinator: ActivationCoordinator,
    ) -> None:
        version = make_version(document, 1, is_active=True)
        with store.transaction() as tx:
            tx.add_version(version)

        with store.transaction() as tx:
            cleared = coordinator.deactivate(tx, tx.get_version(version.id), T0)

        assert cleared.is_active is False
        with store.transaction() as tx:
            assert tx.get_version(version.id).is_active is False
            assert tx.locale_revisions(document.id) == {"en": 1}


class TestRefreshDocument:
    """Test derived document fields."""

    def test_no_versions_stays_draft_and_returns_same_object(
        self, coordinator: ActivationCoordinator
    ) -> None:
        document = make_document()
        assert coordinator.refresh_document(document, [], T0) is document

    def test_active_default_locale_version_makes_document_active(
        self, coordinator: ActivationCoordinator
    ) -> None:
        document = make_document()
        active = make_version(document, 1, is_active=True)

        refreshed = coordinator.refresh_document(document, [active], T0, activated=True)

        assert refreshed.status == DocumentStatus.active
        assert refreshed.active_version_id == active.id
        assert refreshed.published_at == T0

    def test_active_only_in_other_locale(self, coordinator: ActivationCoordinator) -> None:
        document = make_document()
        fr = make_version(document, 1, locale="fr", is_active=True)

        refreshed = coordinator.refresh_document(document, [fr], T0)

        assert refreshed.status == DocumentStatus.draft
        assert refreshed.active_version_id is None

    def test_active_in_other_locale_with_default_locale_present(
        self, coordinator: ActivationCoordinator
    ) -> None:
        document = make_document()
        fr = make_version(document, 1, locale="fr", is_active=True)
        en = make_version(document, 1, status=VersionStatus.draft)

        refreshed = coordinator.refresh_document(document, [fr, en], T0)

        assert refreshed.status == DocumentStatus.active
        assert refreshed.active_version_id is None

    def test_all_archived_retires_document(self, coordinator: ActivationCoordinator) -> None:
        document = make_document()
        versions = [
            make_version(document, 1, status=VersionStatus.archived),
            make_version(document, 2, status=VersionStatus.archived),
        ]

        retired = coordinator.refresh_document(document, versions, T0)
        assert retired.status == DocumentStatus.archived
        assert retired.retired_at == T0

        revived = coordinator.refresh_document(
            retired, versions + [make_version(document, 3, status=VersionStatus.draft)], T0
        )
        assert revived.status == DocumentStatus.draft
        assert revived.retired_at is None
