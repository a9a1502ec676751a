"""Shared pytest fixtures for all test suites."""

from collections.abc import Callable, Generator
from datetime import datetime, timedelta, timezone
from uuid import UUID

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from policyhub.app.cache import InMemoryDocumentCache
from policyhub.app.db.context import RequestContext
from policyhub.app.db.inmemory import InMemoryAuditStore, InMemoryPolicyStore
from policyhub.app.db.models import Base
from policyhub.app.lifecycle.audit import AuditRecorder
from policyhub.app.lifecycle.service import PolicyService
from policyhub.app.models.common import VersionStatus
from policyhub.app.models.policies import DocumentDraft, DocumentView, VersionDraft


class FakeClock:
    """Deterministic UTC clock that advances one second per read."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ctx() -> RequestContext:
    return RequestContext(actor_id="legal@example.com")


@pytest.fixture
def store() -> InMemoryPolicyStore:
    return InMemoryPolicyStore()


@pytest.fixture
def audit_store() -> InMemoryAuditStore:
    return InMemoryAuditStore()


@pytest.fixture
def recorder(audit_store: InMemoryAuditStore, clock: FakeClock) -> AuditRecorder:
    return AuditRecorder(audit_store, sleep_fn=lambda _: None, clock=clock)


@pytest.fixture
def service(
    store: InMemoryPolicyStore, recorder: AuditRecorder, clock: FakeClock
) -> PolicyService:
    """Service over in-memory stores with the read cache disabled."""
    return PolicyService(store, recorder, clock=clock)


@pytest.fixture
def cached_service(
    store: InMemoryPolicyStore, recorder: AuditRecorder, clock: FakeClock
) -> PolicyService:
    """Service over in-memory stores with a 30s read cache."""
    return PolicyService(
        store, recorder, cache=InMemoryDocumentCache(), cache_ttl_seconds=30, clock=clock
    )


@pytest.fixture
def terms(service: PolicyService, ctx: RequestContext) -> DocumentView:
    """A draft terms-of-service document with no versions."""
    return service.create_document(
        DocumentDraft(title="Terms of Service", slug="terms-of-service"), ctx
    )


@pytest.fixture
def publish(
    service: PolicyService, ctx: RequestContext
) -> Callable[..., UUID]:
    """Factory: create a version and walk it to published. Returns the version id."""

    def _publish(document_id: UUID, content: str = "Terms body", locale: str | None = None) -> UUID:
        view = service.create_version(
            document_id, VersionDraft(locale=locale, content=content), ctx
        )
        created = max(
            (v for v in view.versions or [] if v.status == VersionStatus.draft),
            key=lambda v: v.created_at,
        )
        service.transition_version(document_id, created.id, VersionStatus.in_review, ctx)
        service.transition_version(document_id, created.id, VersionStatus.approved, ctx)
        service.publish_version(document_id, created.id, ctx)
        return created.id

    return _publish


@pytest.fixture
def sqlite_session_factory() -> Generator[sessionmaker[Session], None, None]:
    """Session factory over a shared in-memory SQLite database."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):  # type: ignore[no-untyped-def]
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, expire_on_commit=False)
    Base.metadata.drop_all(engine)
    engine.dispose()
