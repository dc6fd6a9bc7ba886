"""Automatic retry with exponential backoff.

:class:`RetryController` moves an eligible FAILED notification to
RETRYING (consuming one unit of its retry budget) and arms a timer.
When the timer fires the delivery is handed to the worker pool; the
backoff delay itself never occupies a pool worker.

Delay for retry attempt *n* is ``min(base ** n, max_delay)``, i.e.
2, 4, 8, 16, 32, 60, 60 ... seconds with the defaults.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from herald.core.backoff import DEFAULT_BASE_SECONDS, DEFAULT_MAX_DELAY_SECONDS, retry_delay
from herald.core.state import begin_retry, can_retry, log_transition
from herald.core.types import NotificationStatus

if TYPE_CHECKING:
    from collections.abc import Callable
    from uuid import UUID

    from herald.metrics.collector import MetricsCollector
    from herald.models.notification import Notification
    from herald.repositories.notification import NotificationRepository
    from herald.services.delivery import DeliveryExecutor, DeliveryOutcome
    from herald.services.pool import DeliveryWorkerPool

log = logging.getLogger(__name__)


class RetryTimer:
    """Single daemon thread firing callbacks after a delay.

    Pending callbacks live in a heap ordered by due time.  Callbacks run
    on the timer thread and must be cheap; :class:`RetryController`
    only enqueues onto the worker pool from them.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        thread_name: str = "herald-retry-timer",
    ) -> None:
        self._clock = clock
        self._thread_name = thread_name
        self._heap: list[tuple[float, int, str, Callable[[], None]]] = []
        self._seq = itertools.count()
        self._cond = threading.Condition()
        self._stopped = False
        self._thread: threading.Thread | None = None

    @property
    def pending_count(self) -> int:
        with self._cond:
            return len(self._heap)

    def schedule(self, delay: float, name: str, fn: Callable[[], None]) -> None:
        """Run *fn* once, no earlier than *delay* seconds from now."""
        due = self._clock() + max(delay, 0.0)
        with self._cond:
            heapq.heappush(self._heap, (due, next(self._seq), name, fn))
            self._cond.notify()

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        with self._cond:
            self._stopped = False
        self._thread = threading.Thread(target=self._run, name=self._thread_name, daemon=True)
        self._thread.start()
        log.info("Retry timer started")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the timer thread.  Callbacks not yet due are dropped."""
        with self._cond:
            self._stopped = True
            dropped = len(self._heap)
            self._heap.clear()
            self._cond.notify_all()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            log.info("Retry timer stopped (%d pending retries dropped)", dropped)

    def run_due(self) -> int:
        """Fire every callback whose due time has passed; return how many."""
        now = self._clock()
        due: list[tuple[str, Callable[[], None]]] = []
        with self._cond:
            while self._heap and self._heap[0][0] <= now:
                _, _, name, fn = heapq.heappop(self._heap)
                due.append((name, fn))
        for name, fn in due:
            try:
                fn()
            except Exception:
                log.exception("Retry timer callback %s failed", name)
        return len(due)

    def _run(self) -> None:
        while True:
            with self._cond:
                if self._stopped:
                    return
                if not self._heap:
                    self._cond.wait()
                    continue
                wait_for = self._heap[0][0] - self._clock()
                if wait_for > 0:
                    self._cond.wait(timeout=wait_for)
                    continue
            self.run_due()


class RetryController:
    """Schedules delayed re-delivery of failed notifications.

    Parameters
    ----------
    notifications:
        Notification repository (database or in-memory).
    executor:
        Runs the delivery attempt once the delay has elapsed.
    pool:
        Worker pool the attempt is submitted to.
    timer:
        Delay source.
    base_seconds, max_delay_seconds:
        Backoff curve, see :func:`herald.core.backoff.retry_delay`.

    """

    def __init__(
        self,
        notifications: NotificationRepository,
        executor: DeliveryExecutor,
        pool: DeliveryWorkerPool,
        timer: RetryTimer,
        base_seconds: float = DEFAULT_BASE_SECONDS,
        max_delay_seconds: float = DEFAULT_MAX_DELAY_SECONDS,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._notifications = notifications
        self._executor = executor
        self._pool = pool
        self._timer = timer
        self._base = base_seconds
        self._max_delay = max_delay_seconds
        self._metrics = metrics
        self._armed: set[UUID] = set()
        self._armed_lock = threading.Lock()

    def delay_for(self, attempt: int) -> float:
        return retry_delay(attempt, self._base, self._max_delay)

    def schedule_retry(self, notification: Notification) -> float | None:
        """Start retry attempt ``retry_count + 1`` for *notification*.

        Returns the backoff delay in seconds, or ``None`` when the
        notification is not eligible or changed state concurrently.
        """
        if not can_retry(notification):
            log.debug(
                "Notification %s not eligible for retry (status=%s, %d/%d)",
                notification.id,
                notification.status.value,
                notification.retry_count,
                notification.max_retries,
            )
            return None

        retrying = begin_retry(notification)
        stored = self._notifications.transition(
            retrying,
            NotificationStatus.FAILED,
            expected_retry_count=notification.retry_count,
        )
        if stored is None:
            log.info("Notification %s changed state before retry; skipping", notification.id)
            return None
        log_transition(
            stored.id,
            NotificationStatus.FAILED,
            NotificationStatus.RETRYING,
            reason=f"attempt {stored.retry_count}/{stored.max_retries}",
        )

        delay = self._arm(stored.id, stored.retry_count)
        log.info(
            "Retrying notification %s in %.0fs (attempt %d/%d)",
            stored.id,
            delay,
            stored.retry_count,
            stored.max_retries,
        )
        if self._metrics:
            self._metrics.increment("herald_retries_scheduled_total")
        return delay

    def on_retry_due(self, notification_id: UUID, attempt: int) -> DeliveryOutcome | None:
        """Run the delivery attempt for a retry whose delay has elapsed.

        A no-op unless the stored record is still RETRYING for the same
        *attempt*; anything else means it was resolved or re-queued in
        the meantime.
        """
        with self._armed_lock:
            self._armed.discard(notification_id)

        current = self._notifications.find_by_id(notification_id)
        if (
            current is None
            or current.status != NotificationStatus.RETRYING
            or current.retry_count != attempt
        ):
            log.info(
                "Retry %d for notification %s no longer applicable; dropping",
                attempt,
                notification_id,
            )
            return None
        return self._executor.attempt_send(current)

    def recover_stranded(self, older_than: timedelta | None = None) -> int:
        """Re-arm RETRYING notifications that have no timer in this process.

        Timers are in-memory only; after a restart a RETRYING record
        would otherwise never leave that state.  Records updated less
        than *older_than* ago (default: twice the maximum delay) are
        left alone because another instance may still own their timer.
        """
        if older_than is None:
            older_than = timedelta(seconds=2 * self._max_delay)
        cutoff = datetime.now(UTC) - older_than
        recovered = 0
        for n in self._notifications.find_by_status(NotificationStatus.RETRYING, limit=100):
            with self._armed_lock:
                if n.id in self._armed:
                    continue
            if n.updated_at > cutoff:
                continue
            self._arm(n.id, n.retry_count, delay=0.0)
            recovered += 1
        if recovered:
            log.warning("Re-armed %d stranded RETRYING notifications", recovered)
        return recovered

    # -- internals ----------------------------------------------------------

    def _arm(self, notification_id: UUID, attempt: int, delay: float | None = None) -> float:
        if delay is None:
            delay = self.delay_for(attempt)
        with self._armed_lock:
            self._armed.add(notification_id)
        self._timer.schedule(
            delay,
            f"retry-{notification_id}",
            lambda: self._dispatch(notification_id, attempt),
        )
        return delay

    def _dispatch(self, notification_id: UUID, attempt: int) -> None:
        accepted = self._pool.submit(
            f"retry-{notification_id}",
            lambda: self.on_retry_due(notification_id, attempt),
        )
        if not accepted:
            # Record stays RETRYING; try again after another backoff step.
            self._arm(notification_id, attempt)
