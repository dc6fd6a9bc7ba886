"""Tests for herald.services.scheduler -- periodic sweeps."""

from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest

from herald.config.settings import build_settings
from herald.core.types import NotificationStatus
from herald.metrics.collector import MetricsCollector
from herald.services.delivery import DeliveryExecutor
from herald.services.retry import RetryController
from herald.services.scheduler import NotificationScheduler, start_of_day

S = NotificationStatus


@pytest.fixture()
def metrics() -> MetricsCollector:
    return MetricsCollector()


@pytest.fixture()
def executor(notification_repo, scripted_transport) -> DeliveryExecutor:
    return DeliveryExecutor(notification_repo, scripted_transport, "noreply@example.com")


@pytest.fixture()
def retry_controller(notification_repo, executor, inline_pool, manual_timer) -> RetryController:
    return RetryController(notification_repo, executor, inline_pool, manual_timer)


@pytest.fixture()
def scheduler(
    notification_repo, executor, retry_controller, inline_pool, metrics
) -> NotificationScheduler:
    settings = build_settings({}).scheduler
    return NotificationScheduler(
        notification_repo,
        executor,
        retry_controller,
        inline_pool,
        settings,
        pending_batch_size=10,
        metrics=metrics,
    )


# ---------------------------------------------------------------------------
# TestStartOfDay
# ---------------------------------------------------------------------------


class TestStartOfDay:
    def test_truncates_to_midnight(self):
        now = datetime(2026, 7, 4, 17, 45, 12, 999, tzinfo=UTC)
        assert start_of_day(now) == datetime(2026, 7, 4, tzinfo=UTC)

    def test_defaults_to_today_utc(self):
        today = start_of_day()
        assert today.tzinfo is UTC
        assert today.hour == 0


# ---------------------------------------------------------------------------
# TestPendingSweep
# ---------------------------------------------------------------------------


class TestPendingSweep:
    def test_dispatches_due_pending(self, scheduler, notification_repo, make_notification):
        n = notification_repo.create(make_notification())
        assert scheduler.run_pending_sweep() == 1
        assert notification_repo.find_by_id(n.id).status == S.SENT

    def test_empty(self, scheduler):
        assert scheduler.run_pending_sweep() == 0

    def test_skips_future_scheduled(
        self, scheduler, notification_repo, inline_pool, make_notification
    ):
        later = datetime.now(UTC) + timedelta(hours=1)
        n = notification_repo.create(make_notification(scheduled_at=later))
        assert scheduler.run_pending_sweep() == 0
        assert inline_pool.submitted == []
        assert notification_repo.find_by_id(n.id).status == S.PENDING

    def test_past_scheduled_is_due(self, scheduler, notification_repo, make_notification):
        earlier = datetime.now(UTC) - timedelta(minutes=1)
        notification_repo.create(make_notification(scheduled_at=earlier))
        assert scheduler.run_pending_sweep() == 1

    def test_batch_size_limits_examined_records(
        self, scheduler, notification_repo, make_notification
    ):
        base = datetime(2026, 1, 1, tzinfo=UTC)
        for i in range(12):
            notification_repo.create(make_notification(created_at=base + timedelta(seconds=i)))
        assert scheduler.run_pending_sweep() == 10
        assert notification_repo.count_by_status(S.PENDING) == 2

    def test_future_scheduled_backlog_does_not_block_due_record(
        self, scheduler, notification_repo, make_notification
    ):
        base = datetime(2026, 1, 1, tzinfo=UTC)
        next_week = datetime.now(UTC) + timedelta(days=7)
        future = [
            notification_repo.create(
                make_notification(created_at=base + timedelta(seconds=i), scheduled_at=next_week)
            )
            for i in range(10)
        ]
        due = notification_repo.create(make_notification(created_at=base + timedelta(minutes=1)))

        assert scheduler.run_pending_sweep() == 1
        assert notification_repo.find_by_id(due.id).status == S.SENT
        assert all(notification_repo.find_by_id(n.id).status == S.PENDING for n in future)

    def test_rejected_dispatch_leaves_pending(
        self, scheduler, notification_repo, inline_pool, make_notification
    ):
        inline_pool.accept = False
        n = notification_repo.create(make_notification())
        assert scheduler.run_pending_sweep() == 0
        assert inline_pool.submitted == [f"deliver-{n.id}"]
        assert notification_repo.find_by_id(n.id).status == S.PENDING


# ---------------------------------------------------------------------------
# TestRetrySweep
# ---------------------------------------------------------------------------


class TestRetrySweep:
    def test_schedules_eligible_failed(
        self, scheduler, notification_repo, manual_timer, make_notification
    ):
        eligible = notification_repo.create(make_notification(status=S.FAILED, retry_count=0))
        notification_repo.create(make_notification(status=S.FAILED, retry_count=3))

        assert scheduler.run_retry_sweep() == 1
        assert notification_repo.find_by_id(eligible.id).status == S.RETRYING
        assert manual_timer.pending_count == 1

    def test_nothing_to_retry(self, scheduler):
        assert scheduler.run_retry_sweep() == 0

    def test_recovers_stranded_first(self, notification_repo, make_notification):
        retry = MagicMock()
        retry.schedule_retry.return_value = 2.0
        scheduler = NotificationScheduler(
            notification_repo,
            MagicMock(),
            retry,
            MagicMock(),
            build_settings({}).scheduler,
        )
        notification_repo.create(make_notification(status=S.FAILED))
        assert scheduler.run_retry_sweep() == 1
        retry.recover_stranded.assert_called_once_with()


# ---------------------------------------------------------------------------
# TestStatsSweep
# ---------------------------------------------------------------------------


class TestStatsSweep:
    def test_counts_and_gauges(self, scheduler, notification_repo, make_notification, metrics):
        now = datetime.now(UTC)
        notification_repo.create(make_notification())
        notification_repo.create(make_notification(status=S.SENT, sent_at=now))
        notification_repo.create(make_notification(status=S.FAILED, failed_at=now))
        notification_repo.create(
            make_notification(status=S.FAILED, failed_at=now - timedelta(days=2)),
        )

        counts = scheduler.run_stats_sweep()

        assert counts == {
            "PENDING": 1,
            "SENDING": 0,
            "SENT": 1,
            "FAILED": 2,
            "RETRYING": 0,
            "sent_today": 1,
            "failed_today": 1,
        }
        assert metrics.get_gauge("herald_notifications", labels={"status": "FAILED"}) == 2
        assert metrics.get_gauge("herald_sent_today") == 1
        assert metrics.get_gauge("herald_failed_today") == 1


# ---------------------------------------------------------------------------
# TestTaskLoop
# ---------------------------------------------------------------------------


class TestTaskLoop:
    def test_task_names(self, scheduler):
        assert scheduler.task_names == ["pending_sweep", "retry_sweep", "stats_sweep"]

    def test_failing_task_is_counted_and_isolated(self, scheduler, metrics):
        task = scheduler._tasks[0]
        task.func = MagicMock(side_effect=RuntimeError("db down"))

        scheduler._execute_task(task)
        scheduler._execute_task(task)

        assert task.consecutive_failures == 2
        assert metrics.get("herald_sweep_errors_total", labels={"task": "pending_sweep"}) == 2

        task.func = MagicMock(return_value=0)
        scheduler._execute_task(task)
        assert task.consecutive_failures == 0
        assert metrics.get("herald_sweep_runs_total", labels={"task": "pending_sweep"}) == 1

    def test_start_and_stop_threads(self, notification_repo):
        ran = threading.Event()
        settings = build_settings(
            {
                "scheduler": {
                    "pending_interval_seconds": 0.01,
                    "pending_initial_delay_seconds": 0,
                    "retry_initial_delay_seconds": 3600,
                    "stats_initial_delay_seconds": 3600,
                }
            }
        ).scheduler
        scheduler = NotificationScheduler(
            notification_repo, MagicMock(), MagicMock(), MagicMock(), settings
        )
        scheduler._tasks[0].func = ran.set

        scheduler.start()
        try:
            assert scheduler.is_running is True
            assert ran.wait(timeout=5)
        finally:
            scheduler.stop(timeout=5)
        assert scheduler.is_running is False
