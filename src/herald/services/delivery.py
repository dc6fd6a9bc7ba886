"""Delivery executor.

Performs exactly one send attempt for one notification:

1. PENDING/RETRYING → SENDING, persisted with compare-and-set;
2. hand the message to the transport;
3. SENDING → SENT or SENDING → FAILED, persisted.

Every transport outcome, including an exception escaping the transport,
is absorbed into the record.  Once step 1 succeeds the record always
leaves SENDING before this method returns.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import TYPE_CHECKING

from herald.core.state import begin_sending, log_transition, mark_failed, mark_sent
from herald.core.types import NotificationChannel, NotificationStatus
from herald.transport.base import SendResult

if TYPE_CHECKING:
    from herald.metrics.collector import MetricsCollector
    from herald.models.notification import Notification
    from herald.repositories.notification import NotificationRepository
    from herald.transport.base import Transport

log = logging.getLogger(__name__)


class DeliveryOutcome(StrEnum):
    SENT = "sent"
    FAILED = "failed"
    # The record was not in a sendable state, or another worker claimed it.
    SKIPPED = "skipped"


class DeliveryExecutor:
    """Runs single delivery attempts against a :class:`Transport`."""

    def __init__(
        self,
        notifications: NotificationRepository,
        transport: Transport,
        from_address: str,
        from_name: str = "",
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._notifications = notifications
        self._transport = transport
        self._from_address = from_address
        self._from_name = from_name
        self._metrics = metrics

    def attempt_send(self, notification: Notification) -> DeliveryOutcome:
        """Make one delivery attempt for *notification*.

        The job may have been queued long before it runs, so the attempt
        is built from the stored record, not from the snapshot passed in.
        """
        current = self._notifications.find_by_id(notification.id)
        if current is None:
            log.warning("Notification %s no longer exists; skipping", notification.id)
            return DeliveryOutcome.SKIPPED
        notification = current
        try:
            sending = begin_sending(notification)
        except ValueError:
            log.debug(
                "Notification %s is %s; not sendable",
                notification.id,
                notification.status.value,
            )
            return DeliveryOutcome.SKIPPED

        claimed = self._notifications.transition(
            sending,
            notification.status,
            expected_retry_count=notification.retry_count,
        )
        if claimed is None:
            log.debug("Notification %s was claimed elsewhere; skipping", notification.id)
            return DeliveryOutcome.SKIPPED
        log_transition(claimed.id, notification.status, NotificationStatus.SENDING)
        self._count("herald_delivery_attempts_total")

        result = self._send(claimed)

        if result.success:
            final = mark_sent(claimed)
            outcome = DeliveryOutcome.SENT
        else:
            final = mark_failed(claimed, result.error or "Unknown delivery error")
            outcome = DeliveryOutcome.FAILED

        stored = self._notifications.transition(
            final,
            NotificationStatus.SENDING,
            expected_retry_count=claimed.retry_count,
        )
        if stored is None:
            log.error(
                "Notification %s left SENDING while a send was in flight",
                claimed.id,
                extra={"notification_id": str(claimed.id)},
            )
            return outcome

        log_transition(
            stored.id,
            NotificationStatus.SENDING,
            stored.status,
            reason=stored.error_message,
        )
        if outcome is DeliveryOutcome.SENT:
            log.info("Email sent to %s (notification %s)", stored.recipient, stored.id)
            self._count("herald_delivery_success_total")
        else:
            log.warning(
                "Delivery of notification %s to %s failed: %s",
                stored.id,
                stored.recipient,
                stored.error_message,
            )
            self._count("herald_delivery_failures_total")
        return outcome

    def _send(self, notification: Notification) -> SendResult:
        if notification.channel != NotificationChannel.EMAIL:
            return SendResult.failed(f"Channel {notification.channel.value} not supported")
        try:
            return self._transport.send(
                self._from_address,
                self._from_name,
                notification.recipient,
                notification.subject,
                notification.content,
            )
        except Exception as exc:
            log.exception("Transport raised while sending notification %s", notification.id)
            return SendResult.failed(f"Unexpected error: {exc}")

    def _count(self, name: str) -> None:
        if self._metrics:
            self._metrics.increment(name, labels={"transport": self._transport.name})
