"""Tests for herald.services.delivery -- single delivery attempts."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from herald.core.types import NotificationChannel, NotificationStatus
from herald.metrics.collector import MetricsCollector
from herald.services.delivery import DeliveryExecutor, DeliveryOutcome
from herald.transport.base import SendResult

S = NotificationStatus


@pytest.fixture()
def metrics() -> MetricsCollector:
    return MetricsCollector()


@pytest.fixture()
def executor(notification_repo, scripted_transport, metrics) -> DeliveryExecutor:
    return DeliveryExecutor(
        notification_repo,
        scripted_transport,
        from_address="noreply@example.com",
        from_name="Herald",
        metrics=metrics,
    )


# ---------------------------------------------------------------------------
# TestAttemptSend
# ---------------------------------------------------------------------------


class TestAttemptSend:
    def test_success_marks_sent(
        self, executor, notification_repo, scripted_transport, make_notification, metrics
    ):
        n = notification_repo.create(make_notification(subject="Hi", content="<p>x</p>"))

        assert executor.attempt_send(n) is DeliveryOutcome.SENT

        stored = notification_repo.find_by_id(n.id)
        assert stored.status == S.SENT
        assert stored.sent_at is not None
        assert stored.error_message is None
        assert scripted_transport.calls == [
            {
                "from_address": "noreply@example.com",
                "from_name": "Herald",
                "to_address": "user@example.com",
                "subject": "Hi",
                "html_body": "<p>x</p>",
            }
        ]
        labels = {"transport": "scripted"}
        assert metrics.get("herald_delivery_attempts_total", labels=labels) == 1
        assert metrics.get("herald_delivery_success_total", labels=labels) == 1

    def test_failure_records_reason(
        self, executor, notification_repo, scripted_transport, make_notification, metrics
    ):
        scripted_transport.default = SendResult.failed("SendGrid returned status 500: oops")
        n = notification_repo.create(make_notification())

        assert executor.attempt_send(n) is DeliveryOutcome.FAILED

        stored = notification_repo.find_by_id(n.id)
        assert stored.status == S.FAILED
        assert stored.error_message == "SendGrid returned status 500: oops"
        assert stored.failed_at is not None
        assert stored.retry_count == 0
        assert metrics.get("herald_delivery_failures_total", labels={"transport": "scripted"}) == 1

    def test_failure_without_reason_gets_default(
        self, executor, notification_repo, scripted_transport, make_notification
    ):
        scripted_transport.default = SendResult(success=False)
        n = notification_repo.create(make_notification())
        executor.attempt_send(n)
        assert notification_repo.find_by_id(n.id).error_message == "Unknown delivery error"

    def test_transport_exception_is_absorbed(self, notification_repo, make_notification):
        transport = MagicMock()
        transport.name = "mock"
        transport.send.side_effect = RuntimeError("socket exploded")
        executor = DeliveryExecutor(notification_repo, transport, "noreply@example.com")
        n = notification_repo.create(make_notification())

        assert executor.attempt_send(n) is DeliveryOutcome.FAILED

        stored = notification_repo.find_by_id(n.id)
        assert stored.status == S.FAILED
        assert stored.error_message == "Unexpected error: socket exploded"

    @pytest.mark.parametrize(
        "channel", [NotificationChannel.SMS, NotificationChannel.SLACK, NotificationChannel.PUSH]
    )
    def test_non_email_channel_fails(
        self, executor, notification_repo, scripted_transport, make_notification, channel
    ):
        n = notification_repo.create(make_notification(channel=channel))

        assert executor.attempt_send(n) is DeliveryOutcome.FAILED

        assert notification_repo.find_by_id(n.id).error_message == (
            f"Channel {channel.value} not supported"
        )
        assert scripted_transport.calls == []

    def test_retrying_record_is_sendable(self, executor, notification_repo, make_notification):
        n = notification_repo.create(make_notification(status=S.RETRYING, retry_count=1))
        assert executor.attempt_send(n) is DeliveryOutcome.SENT
        stored = notification_repo.find_by_id(n.id)
        assert stored.status == S.SENT
        assert stored.retry_count == 1

    @pytest.mark.parametrize("status", [S.SENT, S.SENDING, S.FAILED])
    def test_unsendable_status_skipped(
        self, executor, notification_repo, scripted_transport, make_notification, status
    ):
        n = notification_repo.create(make_notification(status=status))
        assert executor.attempt_send(n) is DeliveryOutcome.SKIPPED
        assert scripted_transport.calls == []
        assert notification_repo.find_by_id(n.id).status == status

    def test_stale_snapshot_skipped(
        self, executor, notification_repo, scripted_transport, make_notification
    ):
        n = notification_repo.create(make_notification())
        # A second worker already claimed the record.
        assert executor.attempt_send(n) is DeliveryOutcome.SENT
        assert executor.attempt_send(n) is DeliveryOutcome.SKIPPED
        assert len(scripted_transport.calls) == 1

    def test_record_never_left_in_sending(self, executor, notification_repo, make_notification):
        n = notification_repo.create(make_notification())
        executor.attempt_send(n)
        assert notification_repo.count_by_status(S.SENDING) == 0
