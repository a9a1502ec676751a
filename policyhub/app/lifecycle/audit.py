"""Audit recorder - append-only trail with best-effort, monitored writes.

Audit writes happen after the state change has committed. A write that still
fails after the configured retries never undoes the mutation; the event is
queued for reconciliation and surfaced through logs and metrics instead.
"""

import base64
import binascii
import random
import threading
import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from policyhub.app.db.context import RequestContext
from policyhub.app.db.repositories import AuditStore
from policyhub.app.lifecycle.errors import ValidationError
from policyhub.app.lifecycle.instrumentation import PolicyLogger, PolicyMetrics
from policyhub.app.models.common import AuditAction
from policyhub.app.models.policies import AuditEvent, AuditPage

_CURSOR_PREFIX = "seq:"


def encode_cursor(sequence: int) -> str:
    """Encode an opaque pagination cursor."""
    return base64.urlsafe_b64encode(f"{_CURSOR_PREFIX}{sequence}".encode()).decode("ascii")


def decode_cursor(cursor: str) -> int:
    """Decode a pagination cursor.

    Raises:
        ValidationError: If the cursor was not produced by encode_cursor
    """
    try:
        raw = base64.urlsafe_b64decode(cursor.encode("ascii")).decode("ascii")
    except (binascii.Error, UnicodeError, ValueError):
        raise ValidationError("Invalid audit cursor") from None
    if not raw.startswith(_CURSOR_PREFIX) or not raw[len(_CURSOR_PREFIX):].isdigit():
        raise ValidationError("Invalid audit cursor")
    return int(raw[len(_CURSOR_PREFIX):])


class AuditRecorder:
    """Writes audit events with bounded retries and a reconciliation queue."""

    def __init__(
        self,
        store: AuditStore,
        *,
        retry_attempts: int = 2,
        retry_backoff_ms: int = 50,
        page_max: int = 200,
        metrics: PolicyMetrics | None = None,
        logger: PolicyLogger | None = None,
        sleep_fn: Callable[[float], None] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize recorder.

        Args:
            store: Audit store implementation
            retry_attempts: Extra attempts after the first failed write
            retry_backoff_ms: Base backoff between attempts (jittered up to 2x)
            page_max: Largest page list_events will return
            metrics: Metrics recorder (optional, defaults to no-op)
            logger: Structured logger (optional, defaults to no-op)
            sleep_fn: Injectable sleep function (default: time.sleep)
            clock: Injectable clock (default: UTC now)
        """
        self._store = store
        self._retry_attempts = max(0, retry_attempts)
        self._retry_backoff_ms = max(0, retry_backoff_ms)
        self._page_max = page_max
        self._metrics = metrics or PolicyMetrics()
        self._logger = logger or PolicyLogger()
        self._sleep = sleep_fn or time.sleep
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.Lock()
        self._unreconciled: list[AuditEvent] = []

    def record(
        self,
        document_id: UUID,
        version_id: UUID | None,
        action: AuditAction | str,
        ctx: RequestContext,
        metadata: dict[str, Any] | None = None,
    ) -> AuditEvent | None:
        """Append an audit event.

        Returns:
            The stored event, or None when it was queued for reconciliation
        """
        event = AuditEvent(
            id=uuid4(),
            document_id=document_id,
            version_id=version_id,
            action=action.value if isinstance(action, AuditAction) else action,
            actor_id=ctx.actor_id,
            actor_type=ctx.actor_type,
            metadata=metadata or {},
            created_at=self._clock(),
        )

        stored = self._write(event)
        if stored is None:
            with self._lock:
                self._unreconciled.append(event)
                backlog = len(self._unreconciled)
            self._metrics.set_reconciliation_backlog(backlog)
        return stored

    def _write(self, event: AuditEvent) -> AuditEvent | None:
        attempts = self._retry_attempts + 1
        for attempt in range(1, attempts + 1):
            try:
                return self._store.append(event)
            except Exception as e:
                final = attempt == attempts
                self._metrics.inc_audit_failure(type(e).__name__)
                self._logger.log_audit_failure(
                    event.model_dump(mode="json", exclude={"metadata"}),
                    attempt,
                    type(e).__name__,
                    final,
                )
                if not final and self._retry_backoff_ms:
                    jitter_ms = random.uniform(self._retry_backoff_ms, self._retry_backoff_ms * 2)
                    self._sleep(jitter_ms / 1000)
        return None

    def pending_reconciliation(self) -> list[AuditEvent]:
        """Events whose write failed after all retries."""
        with self._lock:
            return [event.model_copy(deep=True) for event in self._unreconciled]

    def reconcile(self) -> int:
        """Retry queued events once each.

        Returns:
            Number of events written
        """
        with self._lock:
            queued = list(self._unreconciled)
            self._unreconciled.clear()

        written = 0
        failed: list[AuditEvent] = []
        for event in queued:
            if self._write(event) is None:
                failed.append(event)
            else:
                written += 1

        with self._lock:
            self._unreconciled[:0] = failed
            backlog = len(self._unreconciled)
        self._metrics.set_reconciliation_backlog(backlog)
        return written

    def list_events(
        self, document_id: UUID, limit: int = 50, cursor: str | None = None
    ) -> AuditPage:
        """List events newest first.

        Args:
            document_id: Document ID
            limit: Page size (1..page_max)
            cursor: Cursor from a previous page's next_cursor

        Raises:
            ValidationError: If limit is out of range or the cursor is malformed
        """
        if limit < 1 or limit > self._page_max:
            raise ValidationError(
                f"limit must be between 1 and {self._page_max}", limit=limit
            )
        before = decode_cursor(cursor) if cursor else None

        # One extra row tells us whether another page exists
        events = self._store.list_events(document_id, limit + 1, before)
        next_cursor = None
        if len(events) > limit:
            events = events[:limit]
            next_cursor = encode_cursor(events[-1].sequence)
        return AuditPage(events=events, next_cursor=next_cursor)
