"""Read cache for document views.

Reads may be served stale for up to the configured TTL and are flagged with
from_cache; every mutation deletes the document's keys.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

import redis

from policyhub.app.models.policies import DocumentView

logger = logging.getLogger(__name__)

_KEY_PREFIX = "policyhub:document"


def make_cache_key(slug: str, include_versions: bool, include_audit: bool) -> str:
    """Deterministic cache key for a document read shape."""
    return f"{_KEY_PREFIX}:{slug}:v{int(include_versions)}:a{int(include_audit)}"


def cache_keys_for(slug: str) -> list[str]:
    """All keys a document's reads can occupy."""
    return [
        make_cache_key(slug, include_versions, include_audit)
        for include_versions in (False, True)
        for include_audit in (False, True)
    ]


class DocumentCache(Protocol):
    """Cache interface for document views."""

    def get(self, key: str, now: datetime) -> DocumentView | None:
        """Get cached view if fresh, None otherwise."""
        ...

    def set(self, key: str, view: DocumentView, ttl_seconds: int, now: datetime) -> None:
        """Store view with TTL."""
        ...

    def delete(self, keys: list[str]) -> None:
        """Drop keys."""
        ...


@dataclass
class CacheEntry:
    """Cached view with metadata."""

    value: DocumentView
    cached_at: datetime
    ttl_seconds: int

    def is_fresh(self, now: datetime) -> bool:
        """Check if cache entry is still valid."""
        return (now - self.cached_at).total_seconds() < self.ttl_seconds


class InMemoryDocumentCache:
    """In-memory cache for document views."""

    def __init__(self) -> None:
        self._cache: dict[str, CacheEntry] = {}

    def get(self, key: str, now: datetime) -> DocumentView | None:
        """Get cached view if fresh, None otherwise."""
        entry = self._cache.get(key)
        if entry and entry.is_fresh(now):
            return entry.value.model_copy(deep=True)
        elif entry:
            # Expired - remove
            self._cache.pop(key, None)
        return None

    def set(self, key: str, view: DocumentView, ttl_seconds: int, now: datetime) -> None:
        """Store view in cache with TTL."""
        self._cache[key] = CacheEntry(
            value=view.model_copy(deep=True), cached_at=now, ttl_seconds=ttl_seconds
        )

    def delete(self, keys: list[str]) -> None:
        """Drop keys."""
        for key in keys:
            self._cache.pop(key, None)


class RedisDocumentCache:
    """Redis-backed cache using SETEX; expiry is enforced by Redis."""

    def __init__(self, redis_client: redis.Redis) -> None:
        self._redis = redis_client

    def get(self, key: str, now: datetime) -> DocumentView | None:
        """Get cached view; Redis failures read as a miss."""
        try:
            raw = self._redis.get(key)
        except redis.RedisError as e:
            logger.warning(
                "Document cache read failed",
                extra={"structured": {"key": key, "error": type(e).__name__}},
            )
            return None
        if raw is None:
            return None
        return DocumentView.model_validate_json(raw)

    def set(self, key: str, view: DocumentView, ttl_seconds: int, now: datetime) -> None:
        """Store view with TTL."""
        try:
            self._redis.setex(key, ttl_seconds, view.model_dump_json())
        except redis.RedisError as e:
            logger.warning(
                "Document cache write failed",
                extra={"structured": {"key": key, "error": type(e).__name__}},
            )

    def delete(self, keys: list[str]) -> None:
        """Drop keys; if Redis is unreachable the entries expire by TTL."""
        if not keys:
            return
        try:
            self._redis.delete(*keys)
        except redis.RedisError as e:
            logger.error(
                "Document cache invalidation failed",
                extra={"structured": {"keys": keys, "error": type(e).__name__}},
            )
