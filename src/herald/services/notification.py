"""Notification service: submission, lookup, manual retry and stats.

``submit`` validates the request, renders the template (when one is
referenced) and persists a PENDING record.  It never delivers; the
scheduler's pending sweep picks the record up.
"""

from __future__ import annotations

import logging
import re
import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from herald.core.errors import (
    InvalidRequestError,
    NotificationNotFoundError,
    TemplateNotFoundError,
)
from herald.core.state import can_retry, log_transition, requeue
from herald.core.types import NotificationStatus
from herald.models.notification import Notification
from herald.models.request import NotificationStats
from herald.notifications.renderer import TemplateRenderer
from herald.services.scheduler import start_of_day

if TYPE_CHECKING:
    from uuid import UUID

    from herald.metrics.collector import MetricsCollector
    from herald.models.request import NotificationRequest
    from herald.repositories.notification import NotificationRepository
    from herald.repositories.template import TemplateRepository

log = logging.getLogger(__name__)

MAX_RECIPIENT_LENGTH = 255
MAX_SUBJECT_LENGTH = 500
MAX_CONTENT_LENGTH = 5000

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class NotificationService:
    def __init__(
        self,
        notifications: NotificationRepository,
        templates: TemplateRepository,
        renderer: TemplateRenderer | None = None,
        max_retries: int = 3,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._notifications = notifications
        self._templates = templates
        self._renderer = renderer or TemplateRenderer()
        self._max_retries = max_retries
        self._metrics = metrics

    # -- submission ---------------------------------------------------------

    def submit(self, request: NotificationRequest) -> Notification:
        """Validate, render and persist a new PENDING notification.

        Raises
        ------
        InvalidRequestError
            The request is malformed, references an inactive template,
            or is scheduled in the past.  Nothing is persisted.
        TemplateNotFoundError
            ``template_id`` does not exist.

        """
        now = datetime.now(UTC)
        self._validate(request, now)

        if request.template_id is not None:
            template = self._templates.find_by_id(request.template_id)
            if template is None:
                raise TemplateNotFoundError(request.template_id)
            if not template.is_active:
                msg = f"Template is not active: {template.name}"
                raise InvalidRequestError(msg)
            subject, content = self._renderer.render(
                template.subject,
                template.body,
                request.variables,
            )
        else:
            subject, content = request.subject, request.content

        notification = Notification(
            id=uuid.uuid4(),
            recipient=request.recipient,
            subject=subject,
            content=content or "",
            template_id=request.template_id,
            channel=request.channel,
            priority=request.priority,
            status=NotificationStatus.PENDING,
            retry_count=0,
            max_retries=self._max_retries,
            scheduled_at=_as_utc(request.scheduled_at) if request.scheduled_at else None,
            created_at=now,
            updated_at=now,
        )
        saved = self._notifications.create(notification)
        log.info(
            "Notification created with id: %s for recipient: %s",
            saved.id,
            saved.recipient,
            extra={"notification_id": str(saved.id)},
        )
        if self._metrics:
            self._metrics.increment("herald_notifications_submitted_total")
        return saved

    def _validate(self, request: NotificationRequest, now: datetime) -> None:
        recipient = (request.recipient or "").strip()
        if not recipient:
            msg = "Recipient is required"
            raise InvalidRequestError(msg)
        if len(recipient) > MAX_RECIPIENT_LENGTH:
            msg = "Recipient email too long"
            raise InvalidRequestError(msg)
        if not _EMAIL_RE.match(recipient):
            msg = "Invalid email format"
            raise InvalidRequestError(msg)
        if request.subject is not None and len(request.subject) > MAX_SUBJECT_LENGTH:
            msg = "Subject too long"
            raise InvalidRequestError(msg)
        if request.content is not None and len(request.content) > MAX_CONTENT_LENGTH:
            msg = "Content too long"
            raise InvalidRequestError(msg)

        if not request.has_body():
            msg = "Either content or templateId must be provided"
            raise InvalidRequestError(msg)
        if request.template_id is None and not (request.subject and request.subject.strip()):
            msg = "Subject is required when not using a template"
            raise InvalidRequestError(msg)
        if request.scheduled_at is not None and _as_utc(request.scheduled_at) < now:
            msg = "Scheduled time cannot be in the past"
            raise InvalidRequestError(msg)

    # -- queries ------------------------------------------------------------

    def get_by_id(self, notification_id: UUID) -> Notification:
        notification = self._notifications.find_by_id(notification_id)
        if notification is None:
            raise NotificationNotFoundError(notification_id)
        return notification

    def list_all(self, limit: int = 50, offset: int = 0) -> list[Notification]:
        return self._notifications.find_all_paginated(limit=limit, offset=offset)

    def list_by_status(
        self,
        status: NotificationStatus,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Notification]:
        return self._notifications.find_by_status(status, limit=limit, offset=offset)

    def list_by_recipient(self, recipient: str) -> list[Notification]:
        return self._notifications.find_by_recipient(recipient)

    # -- manual retry -------------------------------------------------------

    def retry(self, notification_id: UUID) -> Notification:
        """Re-queue a FAILED notification as PENDING.

        Consumes one unit of the retry budget and clears the last error.
        The pending sweep delivers it on its next run.
        """
        notification = self.get_by_id(notification_id)
        if not can_retry(notification):
            msg = "Notification cannot be retried. Max retries reached or status not FAILED."
            raise InvalidRequestError(msg)

        stored = self._notifications.transition(
            requeue(notification),
            NotificationStatus.FAILED,
            expected_retry_count=notification.retry_count,
        )
        if stored is None:
            msg = "Notification changed state while the retry was being applied"
            raise InvalidRequestError(msg)

        log_transition(stored.id, NotificationStatus.FAILED, stored.status, reason="manual retry")
        log.info(
            "Notification %s queued for retry. Attempt: %d",
            stored.id,
            stored.retry_count,
        )
        if self._metrics:
            self._metrics.increment("herald_manual_retries_total")
        return stored

    # -- statistics ---------------------------------------------------------

    def get_today_stats(self) -> NotificationStats:
        since = start_of_day()
        return NotificationStats(
            sent_today=self._notifications.count_sent_since(since),
            failed_today=self._notifications.count_failed_since(since),
            success_rate_percent=self._notifications.success_rate_since(since),
        )

    def status_counts(self) -> dict[str, int]:
        return {
            status.value: self._notifications.count_by_status(status)
            for status in NotificationStatus
        }
