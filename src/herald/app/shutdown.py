"""Graceful shutdown for the delivery threads.

Stop hooks silence the producers (scheduler sweeps, retry timers) and
close the worker pool; the coordinator then waits, up to
``graceful_timeout`` seconds, for the deliveries already running to
reach SENT or FAILED.  A send cut off mid-flight would leave its record
in SENDING.

Usage::

    coordinator = ShutdownCoordinator(graceful_timeout=30)
    coordinator.add_stop_hook("scheduler", scheduler.stop)

    with coordinator.track(f"deliver-{notification.id}"):
        executor.attempt_send(notification)

    coordinator.initiate()
"""

from __future__ import annotations

import logging
import signal
import threading
import time
from collections import Counter
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

log = logging.getLogger(__name__)


class ShutdownCoordinator:
    """Runs stop hooks, then drains tracked deliveries."""

    def __init__(self, graceful_timeout: int = 30) -> None:
        self._graceful_timeout = graceful_timeout
        self._stopping = threading.Event()
        self._stopped = threading.Event()
        self._cond = threading.Condition()
        self._running: Counter[str] = Counter()
        self._stop_hooks: list[tuple[str, Callable[[], None]]] = []

    @property
    def is_shutting_down(self) -> bool:
        return self._stopping.is_set()

    @property
    def in_flight_count(self) -> int:
        with self._cond:
            return sum(self._running.values())

    def add_stop_hook(self, name: str, hook: Callable[[], None]) -> None:
        """Run *hook* when shutdown starts, after any hooks added earlier."""
        self._stop_hooks.append((name, hook))

    @contextmanager
    def track(self, name: str) -> Iterator[None]:
        """Hold shutdown open while the block runs.

        Work that begins after shutdown started is still tracked so the
        drain waits for it, but it is logged.
        """
        if self._stopping.is_set():
            log.warning("%s started after shutdown began", name)
        with self._cond:
            self._running[name] += 1
        try:
            yield
        finally:
            with self._cond:
                self._running[name] -= 1
                if self._running[name] <= 0:
                    del self._running[name]
                if not self._running:
                    self._cond.notify_all()

    def initiate(self) -> None:
        """Stop producers and wait for in-flight deliveries.  Idempotent."""
        if self._stopping.is_set():
            return
        self._stopping.set()
        log.info("Shutting down (grace period %ss)", self._graceful_timeout)

        for name, hook in self._stop_hooks:
            try:
                hook()
            except Exception:
                log.exception("Stop hook '%s' raised", name)

        deadline = time.monotonic() + self._graceful_timeout
        with self._cond:
            while self._running:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    log.warning(
                        "Grace period over; abandoning %d in-flight deliveries: %s",
                        sum(self._running.values()),
                        ", ".join(sorted(self._running)),
                    )
                    break
                self._cond.wait(timeout=remaining)
            else:
                log.info("In-flight deliveries drained")

        self._stopped.set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until :meth:`initiate` has finished.  Returns ``False`` on timeout."""
        return self._stopped.wait(timeout)

    def register_signals(self) -> None:
        """Start shutdown on SIGTERM or SIGINT.  Only works from the main thread."""
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                signal.signal(sig, self._signal_handler)
            except (ValueError, OSError):
                log.debug("Cannot install handler for %s outside the main thread", sig.name)

    def _signal_handler(self, signum: int, frame) -> None:
        log.info("Received %s", signal.Signals(signum).name)
        # initiate() blocks for the grace period; keep the handler short.
        threading.Thread(target=self.initiate, name="herald-shutdown", daemon=True).start()
