"""Notification repository."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pypgkit import BaseRepository, Database

from herald.core.types import NotificationChannel, NotificationPriority, NotificationStatus
from herald.models.notification import Notification

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID


class NotificationRepository(BaseRepository[Notification]):
    table_name = "notifications"
    primary_key = "id"

    def _row_to_entity(self, row: dict) -> Notification:
        return Notification(
            id=row["id"],
            recipient=row["recipient"],
            subject=row.get("subject"),
            content=row["content"],
            template_id=row.get("template_id"),
            channel=NotificationChannel(row["channel"]),
            priority=NotificationPriority(row["priority"]),
            status=NotificationStatus(row["status"]),
            retry_count=row.get("retry_count", 0),
            max_retries=row.get("max_retries", 3),
            error_message=row.get("error_message"),
            scheduled_at=row.get("scheduled_at"),
            sent_at=row.get("sent_at"),
            failed_at=row.get("failed_at"),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _entity_to_row(self, entity: Notification) -> dict:
        return {
            "id": entity.id,
            "recipient": entity.recipient,
            "subject": entity.subject,
            "content": entity.content,
            "template_id": entity.template_id,
            "channel": entity.channel.value,
            "priority": entity.priority.value,
            "status": entity.status.value,
            "retry_count": entity.retry_count,
            "max_retries": entity.max_retries,
            "error_message": entity.error_message,
            "scheduled_at": entity.scheduled_at,
            "sent_at": entity.sent_at,
            "failed_at": entity.failed_at,
            "created_at": entity.created_at,
            "updated_at": entity.updated_at,
        }

    # -- lookups ------------------------------------------------------------

    def find_by_status(
        self,
        status: NotificationStatus,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Notification]:
        """Return a page of notifications in *status*, oldest first."""
        db = Database.get_instance()
        rows = db.fetch_all(
            "SELECT * FROM notifications "
            "WHERE status = %s "
            "ORDER BY created_at, id "
            "LIMIT %s OFFSET %s",
            (status.value, limit, offset),
            as_dict=True,
        )
        return [self._row_to_entity(r) for r in rows]

    def find_due_pending(self, now: datetime, limit: int) -> list[Notification]:
        """Return up to *limit* PENDING notifications whose ``scheduled_at`` has passed."""
        db = Database.get_instance()
        rows = db.fetch_all(
            "SELECT * FROM notifications "
            "WHERE status = %s AND (scheduled_at IS NULL OR scheduled_at <= %s) "
            "ORDER BY created_at, id "
            "LIMIT %s",
            (NotificationStatus.PENDING.value, now, limit),
            as_dict=True,
        )
        return [self._row_to_entity(r) for r in rows]

    def find_all_paginated(self, limit: int = 50, offset: int = 0) -> list[Notification]:
        """Return a page of all notifications, newest first."""
        db = Database.get_instance()
        rows = db.fetch_all(
            "SELECT * FROM notifications ORDER BY created_at DESC, id LIMIT %s OFFSET %s",
            (limit, offset),
            as_dict=True,
        )
        return [self._row_to_entity(r) for r in rows]

    def find_by_recipient(self, recipient: str) -> list[Notification]:
        """Return every notification addressed to *recipient*."""
        db = Database.get_instance()
        rows = db.fetch_all(
            "SELECT * FROM notifications WHERE recipient = %s ORDER BY created_at, id",
            (recipient,),
            as_dict=True,
        )
        return [self._row_to_entity(r) for r in rows]

    def find_created_between(self, start: datetime, end: datetime) -> list[Notification]:
        """Return notifications with ``start <= created_at < end``."""
        db = Database.get_instance()
        rows = db.fetch_all(
            "SELECT * FROM notifications "
            "WHERE created_at >= %s AND created_at < %s "
            "ORDER BY created_at, id",
            (start, end),
            as_dict=True,
        )
        return [self._row_to_entity(r) for r in rows]

    def find_retryable(self, limit: int | None = None) -> list[Notification]:
        """Return FAILED notifications that still have retry budget."""
        db = Database.get_instance()
        sql = (
            "SELECT * FROM notifications "
            "WHERE status = %s AND retry_count < max_retries "
            "ORDER BY created_at, id"
        )
        params: tuple = (NotificationStatus.FAILED.value,)
        if limit is not None:
            sql += " LIMIT %s"
            params += (limit,)
        rows = db.fetch_all(sql, params, as_dict=True)
        return [self._row_to_entity(r) for r in rows]

    # -- atomic transitions -------------------------------------------------

    def transition(
        self,
        updated: Notification,
        expected_status: NotificationStatus,
        expected_retry_count: int | None = None,
    ) -> Notification | None:
        """Persist *updated* only if the stored row still matches the expected state.

        Compare-and-set on ``status`` (and, when given, ``retry_count``)
        makes every transition an atomic read-modify-write.  Guarding the
        retry count as well stops a snapshot taken before a retry from
        overwriting the record after it came back to the same status.
        Returns the stored row, or ``None`` when the guard failed.
        """
        db = Database.get_instance()
        sql = (
            "UPDATE notifications "
            "SET status = %s, retry_count = %s, error_message = %s, "
            "    sent_at = %s, failed_at = %s, updated_at = %s "
            "WHERE id = %s AND status = %s"
        )
        params: tuple = (
            updated.status.value,
            updated.retry_count,
            updated.error_message,
            updated.sent_at,
            updated.failed_at,
            updated.updated_at,
            updated.id,
            expected_status.value,
        )
        if expected_retry_count is not None:
            sql += " AND retry_count = %s"
            params += (expected_retry_count,)
        row = db.fetch_one(sql + " RETURNING *", params, as_dict=True)
        return self._row_to_entity(row) if row else None

    # -- statistics ---------------------------------------------------------

    def count_by_status(self, status: NotificationStatus) -> int:
        return self.count({"status": status.value})

    def count_sent_since(self, since: datetime) -> int:
        db = Database.get_instance()
        return int(
            db.fetch_value(
                "SELECT COUNT(*) FROM notifications WHERE status = %s AND sent_at >= %s",
                (NotificationStatus.SENT.value, since),
            )
            or 0
        )

    def count_failed_since(self, since: datetime) -> int:
        db = Database.get_instance()
        return int(
            db.fetch_value(
                "SELECT COUNT(*) FROM notifications WHERE status = %s AND failed_at >= %s",
                (NotificationStatus.FAILED.value, since),
            )
            or 0
        )

    def success_rate_since(self, since: datetime) -> float:
        """Percentage of notifications created since *since* that are SENT."""
        db = Database.get_instance()
        value = db.fetch_value(
            "SELECT COUNT(*) FILTER (WHERE status = %s) * 100.0 / NULLIF(COUNT(*), 0) "
            "FROM notifications WHERE created_at >= %s",
            (NotificationStatus.SENT.value, since),
        )
        return float(value) if value is not None else 0.0
