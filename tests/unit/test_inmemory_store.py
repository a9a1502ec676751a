"""Unit tests for the in-memory unit of work."""

from datetime import datetime, timezone
from uuid import uuid4

import pytest

from policyhub.app.db.inmemory import InMemoryAuditStore, InMemoryPolicyStore
from policyhub.app.lifecycle.errors import ConflictError
from policyhub.app.models.common import DocumentCategory, VersionStatus
from policyhub.app.models.policies import AuditEvent, PolicyDocument, PolicyVersion

NOW = datetime(2026, 2, 1, tzinfo=timezone.utc)


def make_document(slug: str = "terms", title: str = "Terms") -> PolicyDocument:
    return PolicyDocument(
        id=uuid4(),
        slug=slug,
        title=title,
        category=DocumentCategory.terms,
        created_at=NOW,
        updated_at=NOW,
    )


def make_version(document: PolicyDocument, number: int = 1, locale: str = "en") -> PolicyVersion:
    return PolicyVersion(
        id=uuid4(),
        document_id=document.id,
        locale=locale,
        version=number,
        status=VersionStatus.draft,
        content="Body",
        created_at=NOW,
        updated_at=NOW,
    )


@pytest.fixture
def seeded(store: InMemoryPolicyStore) -> PolicyDocument:
    document = make_document()
    with store.transaction() as tx:
        tx.add_document(document)
    return document


class TestTransactions:
    """Test commit and discard behavior."""

    def test_writes_visible_after_commit(self, store: InMemoryPolicyStore) -> None:
        document = make_document()
        with store.transaction() as tx:
            tx.add_document(document)
            assert tx.get_document(document.id) is not None

        with store.transaction() as tx:
            assert tx.get_document_by_slug("terms") == document

    def test_writes_discarded_when_block_raises(self, store: InMemoryPolicyStore) -> None:
        document = make_document()
        with pytest.raises(RuntimeError):
            with store.transaction() as tx:
                tx.add_document(document)
                raise RuntimeError("boom")

        with store.transaction() as tx:
            assert tx.get_document(document.id) is None

    def test_uncommitted_writes_invisible_to_other_transactions(
        self, store: InMemoryPolicyStore
    ) -> None:
        document = make_document()
        with store.transaction() as tx:
            tx.add_document(document)
            with store.transaction() as other:
                assert other.get_document(document.id) is None

    def test_returned_models_are_copies(
        self, store: InMemoryPolicyStore, seeded: PolicyDocument
    ) -> None:
        with store.transaction() as tx:
            loaded = tx.get_document(seeded.id)
            assert loaded is not None
            loaded.tags.append("mutated")

        with store.transaction() as tx:
            assert tx.get_document(seeded.id).tags == []


class TestDocuments:
    """Test slug uniqueness and revision CAS."""

    def test_duplicate_slug_conflicts(
        self, store: InMemoryPolicyStore, seeded: PolicyDocument
    ) -> None:
        with pytest.raises(ConflictError, match="already in use"):
            with store.transaction() as tx:
                tx.add_document(make_document(slug="terms", title="Other"))

    def test_save_bumps_revision(self, store: InMemoryPolicyStore, seeded: PolicyDocument) -> None:
        with store.transaction() as tx:
            saved = tx.save_document(seeded.model_copy(update={"title": "Terms v2"}))
            assert saved.revision == 1

        with store.transaction() as tx:
            stored = tx.get_document(seeded.id)
            assert stored.title == "Terms v2"
            assert stored.revision == 1

    def test_concurrent_document_saves_conflict(
        self, store: InMemoryPolicyStore, seeded: PolicyDocument
    ) -> None:
        with pytest.raises(ConflictError, match="modified concurrently"):
            with store.transaction() as first:
                doc = first.get_document(seeded.id)
                first.save_document(doc.model_copy(update={"title": "First"}))
                with store.transaction() as second:
                    doc2 = second.get_document(seeded.id)
                    second.save_document(doc2.model_copy(update={"title": "Second"}))

        with store.transaction() as tx:
            assert tx.get_document(seeded.id).title == "Second"

    def test_list_documents_ordered_by_title(self, store: InMemoryPolicyStore) -> None:
        with store.transaction() as tx:
            tx.add_document(make_document(slug="privacy", title="privacy Policy"))
            tx.add_document(make_document(slug="cookies", title="Cookie Policy"))

        with store.transaction() as tx:
            assert [doc.slug for doc in tx.list_documents()] == ["cookies", "privacy"]


class TestVersions:
    """Test version numbering and ordering."""

    def test_next_version_number_per_locale(
        self, store: InMemoryPolicyStore, seeded: PolicyDocument
    ) -> None:
        with store.transaction() as tx:
            tx.add_version(make_version(seeded, 1, "en"))
            tx.add_version(make_version(seeded, 2, "en"))
            tx.add_version(make_version(seeded, 1, "fr"))
            assert tx.next_version_number(seeded.id, "en") == 3
            assert tx.next_version_number(seeded.id, "fr") == 2
            assert tx.next_version_number(seeded.id, "de") == 1

    def test_list_versions_sorted_by_locale_then_version_desc(
        self, store: InMemoryPolicyStore, seeded: PolicyDocument
    ) -> None:
        with store.transaction() as tx:
            tx.add_version(make_version(seeded, 1, "fr"))
            tx.add_version(make_version(seeded, 1, "en"))
            tx.add_version(make_version(seeded, 2, "en"))

        with store.transaction() as tx:
            ordered = [(v.locale, v.version) for v in tx.list_versions(seeded.id)]
        assert ordered == [("en", 2), ("en", 1), ("fr", 1)]

    def test_duplicate_version_number_conflicts(
        self, store: InMemoryPolicyStore, seeded: PolicyDocument
    ) -> None:
        with pytest.raises(ConflictError):
            with store.transaction() as tx:
                tx.add_version(make_version(seeded, 1))
                tx.add_version(make_version(seeded, 1))


class TestLocaleTokens:
    """Test the per-locale compare-and-swap."""

    def test_claim_returns_post_commit_revision(
        self, store: InMemoryPolicyStore, seeded: PolicyDocument
    ) -> None:
        with store.transaction() as tx:
            assert tx.claim_locale(seeded.id, "en") == 1
            assert tx.claim_locale(seeded.id, "en") == 1
            assert tx.locale_revisions(seeded.id) == {"en": 1}

        with store.transaction() as tx:
            assert tx.claim_locale(seeded.id, "en", expected_revision=1) == 2

    def test_expected_revision_mismatch_fails_immediately(
        self, store: InMemoryPolicyStore, seeded: PolicyDocument
    ) -> None:
        with store.transaction() as tx:
            with pytest.raises(ConflictError) as exc_info:
                tx.claim_locale(seeded.id, "en", expected_revision=4)

        assert exc_info.value.details["current_revision"] == 0

    def test_interleaved_claims_only_first_commit_wins(
        self, store: InMemoryPolicyStore, seeded: PolicyDocument
    ) -> None:
        with pytest.raises(ConflictError, match="modified concurrently"):
            with store.transaction() as slow:
                slow.claim_locale(seeded.id, "en")
                with store.transaction() as fast:
                    fast.claim_locale(seeded.id, "en")

        with store.transaction() as tx:
            assert tx.locale_revisions(seeded.id) == {"en": 1}

    def test_claims_on_different_locales_do_not_conflict(
        self, store: InMemoryPolicyStore, seeded: PolicyDocument
    ) -> None:
        with store.transaction() as first:
            first.claim_locale(seeded.id, "en")
            with store.transaction() as second:
                second.claim_locale(seeded.id, "fr")

        with store.transaction() as tx:
            assert tx.locale_revisions(seeded.id) == {"en": 1, "fr": 1}


class TestAuditStore:
    """Test sequence assignment and newest-first listing."""

    def test_append_assigns_increasing_sequence(self) -> None:
        audit_store = InMemoryAuditStore()
        document_id = uuid4()
        for action in ("document.created", "version.created", "version.submitted"):
            audit_store.append(
                AuditEvent(
                    id=uuid4(),
                    document_id=document_id,
                    action=action,
                    actor_id="legal@example.com",
                    created_at=NOW,
                )
            )

        events = audit_store.list_events(document_id, limit=10)
        assert [event.sequence for event in events] == [3, 2, 1]
        assert [event.action for event in audit_store.list_events(document_id, 10, 3)] == [
            "version.created",
            "document.created",
        ]
