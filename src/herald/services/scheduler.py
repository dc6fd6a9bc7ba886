"""Periodic sweeps that drive delivery.

Three named tasks, each on its own daemon thread with an initial delay
and a fixed delay between runs:

``pending_sweep``
    Dispatch due PENDING notifications to the worker pool.
``retry_sweep``
    Hand eligible FAILED notifications to the retry controller.
``stats_sweep``
    Log per-status counts and refresh the metrics gauges.

A task never overlaps with itself (the next run is scheduled only after
the previous one returns) and one task's failure never affects the
others.  The sweeps only discover work; every send runs on the pool.

Usage::

    scheduler = NotificationScheduler(repo, executor, retry, pool, settings)
    scheduler.start()
    ...
    scheduler.stop()
"""

from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from herald.core.types import NotificationStatus

if TYPE_CHECKING:
    from collections.abc import Callable

    from herald.config.settings import SchedulerSettings
    from herald.metrics.collector import MetricsCollector
    from herald.repositories.notification import NotificationRepository
    from herald.services.delivery import DeliveryExecutor
    from herald.services.pool import DeliveryWorkerPool
    from herald.services.retry import RetryController

log = logging.getLogger(__name__)


def start_of_day(now: datetime | None = None) -> datetime:
    """Midnight UTC of the day containing *now*."""
    now = now or datetime.now(UTC)
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


class _PeriodicTask:
    """Internal: a named task with its own interval and failure tracking."""

    __slots__ = (
        "_run_lock",
        "consecutive_failures",
        "func",
        "initial_delay_seconds",
        "interval_seconds",
        "name",
        "thread",
    )

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        initial_delay_seconds: float,
        func: Callable[[], Any],
    ) -> None:
        self.name = name
        self.interval_seconds = interval_seconds
        self.initial_delay_seconds = initial_delay_seconds
        self.func = func
        self.consecutive_failures = 0
        self.thread: threading.Thread | None = None
        self._run_lock = threading.Lock()

    def run(self) -> Any:
        """Execute the task; concurrent calls are serialized."""
        with self._run_lock:
            return self.func()


class NotificationScheduler:
    """Runs the pending, retry and stats sweeps on independent threads.

    Parameters
    ----------
    notifications:
        Notification repository.
    executor:
        Delivery executor the pending sweep dispatches to.
    retry_controller:
        Receives every retry-eligible FAILED notification.
    pool:
        Bounded worker pool; a rejected dispatch is retried next sweep.
    settings:
        Sweep intervals and initial delays.
    pending_batch_size:
        Maximum PENDING notifications examined per sweep.

    """

    def __init__(
        self,
        notifications: NotificationRepository,
        executor: DeliveryExecutor,
        retry_controller: RetryController,
        pool: DeliveryWorkerPool,
        settings: SchedulerSettings,
        pending_batch_size: int = 10,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._notifications = notifications
        self._executor = executor
        self._retry = retry_controller
        self._pool = pool
        self._batch_size = pending_batch_size
        self._metrics = metrics
        self._stop_event = threading.Event()
        self._tasks = [
            _PeriodicTask(
                "pending_sweep",
                settings.pending_interval_seconds,
                settings.pending_initial_delay_seconds,
                self.run_pending_sweep,
            ),
            _PeriodicTask(
                "retry_sweep",
                settings.retry_interval_seconds,
                settings.retry_initial_delay_seconds,
                self.run_retry_sweep,
            ),
            _PeriodicTask(
                "stats_sweep",
                settings.stats_interval_seconds,
                settings.stats_initial_delay_seconds,
                self.run_stats_sweep,
            ),
        ]

    @property
    def task_names(self) -> list[str]:
        return [t.name for t in self._tasks]

    @property
    def is_running(self) -> bool:
        return any(t.thread is not None and t.thread.is_alive() for t in self._tasks)

    def start(self) -> None:
        """Start one daemon thread per task (idempotent)."""
        if self.is_running:
            return
        self._stop_event.clear()
        for task in self._tasks:
            task.thread = threading.Thread(
                target=self._run_task,
                args=(task,),
                name=f"herald-{task.name}",
                daemon=True,
            )
            task.thread.start()
        log.info("Notification scheduler started (tasks: %s)", self.task_names)

    def stop(self, timeout: float = 10.0) -> None:
        """Signal every task to stop and wait for the threads."""
        self._stop_event.set()
        for task in self._tasks:
            if task.thread is not None:
                task.thread.join(timeout=timeout)
        log.info("Notification scheduler stopped")

    # -- loop ---------------------------------------------------------------

    def _run_task(self, task: _PeriodicTask) -> None:
        if self._stop_event.wait(timeout=task.initial_delay_seconds):
            return
        while not self._stop_event.is_set():
            self._execute_task(task)
            self._stop_event.wait(timeout=task.interval_seconds)

    def _execute_task(self, task: _PeriodicTask) -> None:
        """Execute one run of *task* with error tracking and metrics."""
        try:
            task.run()
            task.consecutive_failures = 0
            if self._metrics:
                self._metrics.increment("herald_sweep_runs_total", labels={"task": task.name})
        except Exception:
            task.consecutive_failures += 1
            log.exception(
                "Scheduler task '%s' failed (consecutive: %d)",
                task.name,
                task.consecutive_failures,
            )
            if self._metrics:
                self._metrics.increment("herald_sweep_errors_total", labels={"task": task.name})

    # -- sweeps -------------------------------------------------------------

    def run_pending_sweep(self) -> int:
        """Dispatch due PENDING notifications; return how many were queued.

        Fetches the oldest ``pending_batch_size`` PENDING records whose
        ``scheduled_at`` is unset or has passed.  Records scheduled in the
        future are not fetched, so they never crowd out due ones.
        """
        pending = self._notifications.find_due_pending(datetime.now(UTC), self._batch_size)
        if not pending:
            log.debug("No pending notifications to process")
            return 0

        log.info("Found %d pending notifications to process", len(pending))
        dispatched = 0
        for notification in pending:
            accepted = self._pool.submit(
                f"deliver-{notification.id}",
                lambda n=notification: self._executor.attempt_send(n),
            )
            if accepted:
                dispatched += 1
        return dispatched

    def run_retry_sweep(self) -> int:
        """Schedule a retry for each eligible FAILED notification."""
        self._retry.recover_stranded()

        retryable = self._notifications.find_retryable()
        if not retryable:
            log.debug("No failed notifications to retry")
            return 0

        log.info("Found %d notifications eligible for retry", len(retryable))
        scheduled = 0
        for notification in retryable:
            if self._retry.schedule_retry(notification) is not None:
                scheduled += 1
        return scheduled

    def run_stats_sweep(self) -> dict[str, int]:
        """Log per-status counts plus today's sent/failed totals."""
        counts = {
            status.value: self._notifications.count_by_status(status)
            for status in NotificationStatus
        }
        since = start_of_day()
        counts["sent_today"] = self._notifications.count_sent_since(since)
        counts["failed_today"] = self._notifications.count_failed_since(since)

        log.info(
            "Notification statistics: PENDING=%d SENDING=%d SENT=%d FAILED=%d RETRYING=%d "
            "sent_today=%d failed_today=%d",
            counts["PENDING"],
            counts["SENDING"],
            counts["SENT"],
            counts["FAILED"],
            counts["RETRYING"],
            counts["sent_today"],
            counts["failed_today"],
            extra={"event": "notification_stats", "counts": counts},
        )
        if self._metrics:
            for status in NotificationStatus:
                self._metrics.set_gauge(
                    "herald_notifications",
                    counts[status.value],
                    labels={"status": status.value},
                )
            self._metrics.set_gauge("herald_sent_today", counts["sent_today"])
            self._metrics.set_gauge("herald_failed_today", counts["failed_today"])
        return counts
