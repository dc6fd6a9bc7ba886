"""Bounded delivery worker pool.

A fixed number of daemon threads consume a bounded FIFO queue of
delivery jobs.  :meth:`DeliveryWorkerPool.submit` never blocks: when
the queue is full the job is rejected, a warning is logged and the
``herald_dispatch_rejected_total`` counter is bumped.  A rejected
notification keeps its current status and is picked up again by the
next sweep.

Usage::

    pool = DeliveryWorkerPool(max_workers=5, queue_capacity=100)
    pool.start()
    pool.submit("deliver-<id>", lambda: executor.attempt_send(n))
    ...
    pool.shutdown()
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

    from herald.app.shutdown import ShutdownCoordinator
    from herald.metrics.collector import MetricsCollector

log = logging.getLogger(__name__)

# Sentinel telling a worker thread to exit.
_STOP = object()


class DeliveryWorkerPool:
    """Fixed-size thread pool in front of a bounded job queue.

    Parameters
    ----------
    max_workers:
        Number of worker threads.
    queue_capacity:
        Maximum number of jobs waiting for a worker.
    thread_name_prefix:
        Worker threads are named ``<prefix>-<n>``.
    metrics:
        Optional :class:`MetricsCollector`.
    shutdown_coordinator:
        When given, every job runs inside
        :meth:`ShutdownCoordinator.track` so shutdown waits for it.

    """

    def __init__(
        self,
        max_workers: int = 5,
        queue_capacity: int = 100,
        thread_name_prefix: str = "herald-delivery",
        metrics: MetricsCollector | None = None,
        shutdown_coordinator: ShutdownCoordinator | None = None,
    ) -> None:
        if max_workers < 1:
            msg = f"max_workers must be >= 1, got {max_workers}"
            raise ValueError(msg)
        if queue_capacity < 1:
            msg = f"queue_capacity must be >= 1, got {queue_capacity}"
            raise ValueError(msg)
        self._max_workers = max_workers
        self._capacity = queue_capacity
        self._prefix = thread_name_prefix
        self._metrics = metrics
        self._coordinator = shutdown_coordinator
        self._queue: queue.Queue[Any] = queue.Queue(maxsize=queue_capacity)
        self._threads: list[threading.Thread] = []
        self._closed = threading.Event()
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def queue_depth(self) -> int:
        """Approximate number of jobs waiting for a worker."""
        return self._queue.qsize()

    @property
    def is_running(self) -> bool:
        return any(t.is_alive() for t in self._threads)

    def start(self) -> None:
        """Start the worker threads (idempotent)."""
        with self._lock:
            if self._threads and self.is_running:
                return
            self._closed.clear()
            self._threads = [
                threading.Thread(
                    target=self._worker,
                    name=f"{self._prefix}-{i}",
                    daemon=True,
                )
                for i in range(self._max_workers)
            ]
            for t in self._threads:
                t.start()
        log.info(
            "Delivery worker pool started (workers=%d, queue_capacity=%d)",
            self._max_workers,
            self._capacity,
        )

    def submit(self, name: str, fn: Callable[[], Any]) -> bool:
        """Enqueue *fn* without blocking; return ``False`` if rejected."""
        if self._closed.is_set():
            log.warning("Worker pool is shut down; rejecting job %s", name)
            self._count_rejection("shutdown")
            return False
        try:
            self._queue.put_nowait((name, fn))
        except queue.Full:
            log.warning(
                "Delivery queue full (%d/%d); rejecting job %s",
                self._queue.qsize(),
                self._capacity,
                name,
            )
            self._count_rejection("queue_full")
            return False
        if self._metrics:
            self._metrics.set_gauge("herald_dispatch_queue_depth", self._queue.qsize())
        return True

    def shutdown(self, wait: bool = True, timeout: float | None = None) -> None:
        """Stop accepting jobs and let workers finish the queued ones.

        Jobs already in the queue are still executed; each worker exits
        when it reaches its stop sentinel.
        """
        if self._closed.is_set():
            return
        self._closed.set()
        # Blocking put: the sentinels queue up behind the remaining jobs.
        for _ in self._threads:
            self._queue.put(_STOP)
        if wait:
            for t in self._threads:
                t.join(timeout=timeout)
        log.info("Delivery worker pool stopped")

    def _count_rejection(self, reason: str) -> None:
        if self._metrics:
            self._metrics.increment(
                "herald_dispatch_rejected_total",
                labels={"reason": reason},
            )

    def _worker(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                name, fn = item
                self._run_job(name, fn)
            finally:
                self._queue.task_done()

    def _run_job(self, name: str, fn: Callable[[], Any]) -> None:
        try:
            if self._coordinator is not None:
                with self._coordinator.track(name):
                    fn()
            else:
                fn()
        except Exception:
            # One job's failure never takes a worker down.
            log.exception("Delivery job %s failed", name)
            if self._metrics:
                self._metrics.increment("herald_dispatch_errors_total")
