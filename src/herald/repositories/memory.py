"""In-memory repositories.

Drop-in replacements for the PostgreSQL repositories, selected with
``storage.backend: memory``.  State lives in a dict guarded by a lock,
so the compare-and-set :meth:`InMemoryNotificationRepository.transition`
is as atomic as its SQL counterpart within one process.  Nothing
survives a restart.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from herald.core.types import NotificationChannel, NotificationStatus

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from herald.models.notification import Notification
    from herald.models.template import Template


def _creation_key(n: Notification) -> tuple:
    return (n.created_at, str(n.id))


class InMemoryNotificationRepository:
    """Thread-safe dict-backed notification store."""

    def __init__(self) -> None:
        self._rows: dict[UUID, Notification] = {}
        self._lock = threading.Lock()

    def create(self, entity: Notification) -> Notification:
        with self._lock:
            if entity.id in self._rows:
                msg = f"Duplicate notification id {entity.id}"
                raise ValueError(msg)
            self._rows[entity.id] = entity
        return entity

    def update(self, entity: Notification) -> Notification:
        with self._lock:
            self._rows[entity.id] = entity
        return entity

    def find_by_id(self, notification_id: UUID) -> Notification | None:
        with self._lock:
            return self._rows.get(notification_id)

    def find_by_status(
        self,
        status: NotificationStatus,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Notification]:
        with self._lock:
            rows = sorted(
                (n for n in self._rows.values() if n.status == status),
                key=_creation_key,
            )
        return rows[offset : offset + limit]

    def find_due_pending(self, now: datetime, limit: int) -> list[Notification]:
        with self._lock:
            rows = sorted(
                (
                    n
                    for n in self._rows.values()
                    if n.status == NotificationStatus.PENDING
                    and (n.scheduled_at is None or n.scheduled_at <= now)
                ),
                key=_creation_key,
            )
        return rows[:limit]

    def find_all_paginated(self, limit: int = 50, offset: int = 0) -> list[Notification]:
        with self._lock:
            rows = sorted(self._rows.values(), key=_creation_key, reverse=True)
        return rows[offset : offset + limit]

    def find_by_recipient(self, recipient: str) -> list[Notification]:
        with self._lock:
            return sorted(
                (n for n in self._rows.values() if n.recipient == recipient),
                key=_creation_key,
            )

    def find_created_between(self, start: datetime, end: datetime) -> list[Notification]:
        with self._lock:
            return sorted(
                (n for n in self._rows.values() if start <= n.created_at < end),
                key=_creation_key,
            )

    def find_retryable(self, limit: int | None = None) -> list[Notification]:
        with self._lock:
            rows = sorted(
                (
                    n
                    for n in self._rows.values()
                    if n.status == NotificationStatus.FAILED and n.retry_count < n.max_retries
                ),
                key=_creation_key,
            )
        return rows if limit is None else rows[:limit]

    def transition(
        self,
        updated: Notification,
        expected_status: NotificationStatus,
        expected_retry_count: int | None = None,
    ) -> Notification | None:
        with self._lock:
            current = self._rows.get(updated.id)
            if current is None or current.status != expected_status:
                return None
            if expected_retry_count is not None and current.retry_count != expected_retry_count:
                return None
            self._rows[updated.id] = updated
            return updated

    def count_by_status(self, status: NotificationStatus) -> int:
        with self._lock:
            return sum(1 for n in self._rows.values() if n.status == status)

    def count_sent_since(self, since: datetime) -> int:
        with self._lock:
            return sum(
                1
                for n in self._rows.values()
                if n.status == NotificationStatus.SENT and n.sent_at and n.sent_at >= since
            )

    def count_failed_since(self, since: datetime) -> int:
        with self._lock:
            return sum(
                1
                for n in self._rows.values()
                if n.status == NotificationStatus.FAILED and n.failed_at and n.failed_at >= since
            )

    def success_rate_since(self, since: datetime) -> float:
        with self._lock:
            created = [n for n in self._rows.values() if n.created_at >= since]
        if not created:
            return 0.0
        sent = sum(1 for n in created if n.status == NotificationStatus.SENT)
        return sent * 100.0 / len(created)


class InMemoryTemplateRepository:
    """Thread-safe dict-backed template store."""

    def __init__(self) -> None:
        self._rows: dict[UUID, Template] = {}
        self._lock = threading.Lock()

    def create(self, entity: Template) -> Template:
        with self._lock:
            if entity.id in self._rows:
                msg = f"Duplicate template id {entity.id}"
                raise ValueError(msg)
            self._rows[entity.id] = entity
        return entity

    def update(self, entity: Template) -> Template:
        with self._lock:
            self._rows[entity.id] = entity
        return entity

    def find_by_id(self, template_id: UUID) -> Template | None:
        with self._lock:
            return self._rows.get(template_id)

    def find_all(self) -> list[Template]:
        with self._lock:
            return sorted(self._rows.values(), key=lambda t: t.name)

    def find_by_name(self, name: str) -> Template | None:
        with self._lock:
            for template in self._rows.values():
                if template.name == name:
                    return template
        return None

    def exists_by_name(self, name: str, exclude_id: UUID | None = None) -> bool:
        with self._lock:
            return any(t.name == name and t.id != exclude_id for t in self._rows.values())

    def find_active(self) -> list[Template]:
        return [t for t in self.find_all() if t.is_active]

    def find_active_by_channel(self, channel: NotificationChannel) -> list[Template]:
        return [t for t in self.find_active() if t.channel == channel]
