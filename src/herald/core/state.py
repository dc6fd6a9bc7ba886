"""Notification delivery state machine.

Defines the valid status transitions for notification records and the
pure transition functions that produce the next record value.  Every
status change in the package goes through one of the functions below,
each of which calls :func:`assert_transition` first.

Usage::

    from herald.core.state import begin_sending, mark_sent

    sending = begin_sending(notification)
    sent = mark_sent(sending)
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from herald.core.types import NotificationStatus

if TYPE_CHECKING:
    from herald.models.notification import Notification

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# pending → sending, sending → sent/failed, failed → retrying/pending,
# retrying → sending.  sent is terminal; failed is terminal once the
# retry budget is spent.
# ---------------------------------------------------------------------------

NOTIFICATION_TRANSITIONS: dict[NotificationStatus, frozenset[NotificationStatus]] = {
    NotificationStatus.PENDING: frozenset({NotificationStatus.SENDING}),
    NotificationStatus.SENDING: frozenset(
        {
            NotificationStatus.SENT,
            NotificationStatus.FAILED,
        }
    ),
    NotificationStatus.FAILED: frozenset(
        {
            NotificationStatus.RETRYING,
            NotificationStatus.PENDING,  # manual retry
        }
    ),
    NotificationStatus.RETRYING: frozenset({NotificationStatus.SENDING}),
    NotificationStatus.SENT: frozenset(),
}


def assert_transition(
    current: NotificationStatus,
    target: NotificationStatus,
    table: dict = NOTIFICATION_TRANSITIONS,
) -> None:
    """Raise :class:`ValueError` if *current* → *target* is not allowed."""
    allowed = table.get(current)
    if allowed is None:
        msg = f"Unknown status {current!r}"
        raise ValueError(msg)
    if target not in allowed:
        msg = (
            f"Invalid transition {current.value!r} -> {target.value!r}; "
            f"allowed targets: {sorted(s.value for s in allowed) or '(terminal)'}"
        )
        raise ValueError(
            msg,
        )


def can_retry(notification: Notification) -> bool:
    """Whether *notification* is FAILED with retry budget remaining."""
    return (
        notification.status == NotificationStatus.FAILED
        and notification.retry_count < notification.max_retries
    )


def is_terminal(notification: Notification) -> bool:
    """SENT, or FAILED with the retry budget exhausted."""
    if notification.status == NotificationStatus.SENT:
        return True
    return (
        notification.status == NotificationStatus.FAILED
        and notification.retry_count >= notification.max_retries
    )


def _now() -> datetime:
    return datetime.now(UTC)


def _require_budget(notification: Notification) -> None:
    if notification.retry_count >= notification.max_retries:
        msg = (
            f"Retry budget exhausted for notification {notification.id} "
            f"({notification.retry_count}/{notification.max_retries})"
        )
        raise ValueError(msg)


# ---------------------------------------------------------------------------
# Transition functions
# ---------------------------------------------------------------------------


def begin_sending(notification: Notification, now: datetime | None = None) -> Notification:
    """PENDING/RETRYING → SENDING."""
    assert_transition(notification.status, NotificationStatus.SENDING)
    return replace(
        notification,
        status=NotificationStatus.SENDING,
        updated_at=now or _now(),
    )


def mark_sent(notification: Notification, now: datetime | None = None) -> Notification:
    """SENDING → SENT, stamping ``sent_at``."""
    assert_transition(notification.status, NotificationStatus.SENT)
    ts = now or _now()
    return replace(
        notification,
        status=NotificationStatus.SENT,
        sent_at=ts,
        updated_at=ts,
    )


def mark_failed(
    notification: Notification,
    error_message: str,
    now: datetime | None = None,
) -> Notification:
    """SENDING → FAILED, recording the reason and ``failed_at``."""
    assert_transition(notification.status, NotificationStatus.FAILED)
    ts = now or _now()
    return replace(
        notification,
        status=NotificationStatus.FAILED,
        error_message=error_message,
        failed_at=ts,
        updated_at=ts,
    )


def begin_retry(notification: Notification, now: datetime | None = None) -> Notification:
    """FAILED → RETRYING, consuming one unit of the retry budget."""
    assert_transition(notification.status, NotificationStatus.RETRYING)
    _require_budget(notification)
    return replace(
        notification,
        status=NotificationStatus.RETRYING,
        retry_count=notification.retry_count + 1,
        updated_at=now or _now(),
    )


def requeue(notification: Notification, now: datetime | None = None) -> Notification:
    """FAILED → PENDING for an operator-requested retry.

    Consumes one unit of the retry budget and clears ``error_message``.
    """
    assert_transition(notification.status, NotificationStatus.PENDING)
    _require_budget(notification)
    return replace(
        notification,
        status=NotificationStatus.PENDING,
        retry_count=notification.retry_count + 1,
        error_message=None,
        updated_at=now or _now(),
    )


def log_transition(
    resource_id,
    from_status,
    to_status,
    *,
    reason: str | None = None,
) -> None:
    """Emit a structured log entry for a notification state transition."""
    extra = {
        "event": "state_transition",
        "resource_type": "notification",
        "notification_id": str(resource_id),
        "from_status": from_status.value if hasattr(from_status, "value") else str(from_status),
        "to_status": to_status.value if hasattr(to_status, "value") else str(to_status),
    }
    if reason:
        extra["reason"] = reason
    log.info(
        "notification %s: %s -> %s%s",
        resource_id,
        extra["from_status"],
        extra["to_status"],
        f" ({reason})" if reason else "",
        extra=extra,
    )
