"""Service wiring from settings."""

import logging
from functools import lru_cache

import redis

from policyhub.app.cache import DocumentCache, InMemoryDocumentCache, RedisDocumentCache
from policyhub.app.config import Settings, get_settings
from policyhub.app.db.engine import create_engine_from_settings, create_session_factory
from policyhub.app.db.inmemory import InMemoryAuditStore, InMemoryPolicyStore
from policyhub.app.db.repositories import AuditStore, PolicyStore
from policyhub.app.db.sql_repositories import SqlAuditStore, SqlPolicyStore
from policyhub.app.lifecycle.audit import AuditRecorder
from policyhub.app.lifecycle.service import PolicyService
from policyhub.app.utils.logging import StructuredPolicyLogger
from policyhub.app.utils.metrics import PrometheusPolicyMetrics

logger = logging.getLogger(__name__)


def build_policy_service(settings: Settings) -> PolicyService:
    """Assemble a PolicyService for the given settings.

    SQL stores when database_url is set, in-memory otherwise. Redis backs the
    read cache when redis_url is set.
    """
    store: PolicyStore
    audit_store: AuditStore
    if settings.database_url:
        session_factory = create_session_factory(create_engine_from_settings(settings))
        store = SqlPolicyStore(session_factory)
        audit_store = SqlAuditStore(session_factory)
    else:
        logger.warning("DATABASE_URL not set; using in-memory policy store")
        store = InMemoryPolicyStore()
        audit_store = InMemoryAuditStore()

    cache: DocumentCache
    if settings.redis_url:
        cache = RedisDocumentCache(redis.from_url(settings.redis_url))
    else:
        cache = InMemoryDocumentCache()

    metrics = PrometheusPolicyMetrics()
    policy_logger = StructuredPolicyLogger()
    audit = AuditRecorder(
        audit_store,
        retry_attempts=settings.audit_retry_attempts,
        retry_backoff_ms=settings.audit_retry_backoff_ms,
        page_max=settings.audit_page_max,
        metrics=metrics,
        logger=policy_logger,
    )
    return PolicyService(
        store,
        audit,
        cache=cache,
        cache_ttl_seconds=settings.read_cache_ttl_seconds,
        supported_locales=settings.locale_allowlist(),
        metrics=metrics,
        logger=policy_logger,
    )


@lru_cache
def get_policy_service() -> PolicyService:
    """Get the process-wide PolicyService (FastAPI dependency)."""
    return build_policy_service(get_settings())
