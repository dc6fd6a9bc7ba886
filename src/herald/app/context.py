"""Dependency injection container for Herald.

Created once during startup (by :func:`herald.app.factory.create_app`
or by the ``worker`` CLI command) and stored on the Flask app via
``app.extensions["container"]``.  Accessible from any request context
with :func:`get_container`.

Usage::

    from herald.app.context import get_container

    c = get_container()
    notification = c.notification_service.get_by_id(notification_id)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from flask import current_app

from herald.metrics.collector import MetricsCollector
from herald.repositories import (
    InMemoryNotificationRepository,
    InMemoryTemplateRepository,
    NotificationRepository,
    TemplateRepository,
)
from herald.services.delivery import DeliveryExecutor
from herald.services.notification import NotificationService
from herald.services.pool import DeliveryWorkerPool
from herald.services.retry import RetryController, RetryTimer
from herald.services.scheduler import NotificationScheduler
from herald.services.template import TemplateService
from herald.transport import create_transport

if TYPE_CHECKING:
    from pypgkit import Database

    from herald.app.shutdown import ShutdownCoordinator
    from herald.config.settings import HeraldSettings
    from herald.transport.base import Transport

log = logging.getLogger(__name__)


class Container:
    """Application-wide dependency container.

    Wires repositories (PostgreSQL or in-memory, per
    ``storage.backend``), the transport, the delivery pipeline and the
    services.  Background threads are not started until
    :meth:`start_background` is called.
    """

    def __init__(
        self,
        settings: HeraldSettings,
        db: Database | None = None,
        shutdown_coordinator: ShutdownCoordinator | None = None,
        transport: Transport | None = None,
    ) -> None:
        self.settings = settings
        self.db = db
        self.shutdown_coordinator = shutdown_coordinator
        self.metrics = MetricsCollector()

        # Repositories
        if settings.storage.backend == "memory":
            self.notifications = InMemoryNotificationRepository()
            self.templates = InMemoryTemplateRepository()
        else:
            if db is None:
                msg = "storage.backend 'database' requires an initialised Database"
                raise ValueError(msg)
            self.notifications = NotificationRepository(db)
            self.templates = TemplateRepository(db)

        # Delivery pipeline
        self.transport = transport or create_transport(settings.transport)
        self.pool = DeliveryWorkerPool(
            max_workers=settings.workers.max_workers,
            queue_capacity=settings.workers.queue_capacity,
            thread_name_prefix=settings.workers.thread_name_prefix,
            metrics=self.metrics,
            shutdown_coordinator=shutdown_coordinator,
        )
        self.executor = DeliveryExecutor(
            self.notifications,
            self.transport,
            from_address=settings.transport.from_address,
            from_name=settings.transport.from_name,
            metrics=self.metrics,
        )
        self.retry_timer = RetryTimer()
        self.retry_controller = RetryController(
            self.notifications,
            self.executor,
            self.pool,
            self.retry_timer,
            base_seconds=settings.delivery.retry_base_seconds,
            max_delay_seconds=settings.delivery.retry_max_delay_seconds,
            metrics=self.metrics,
        )
        self.scheduler = NotificationScheduler(
            self.notifications,
            self.executor,
            self.retry_controller,
            self.pool,
            settings.scheduler,
            pending_batch_size=settings.delivery.pending_batch_size,
            metrics=self.metrics,
        )

        # Services
        self.notification_service = NotificationService(
            self.notifications,
            self.templates,
            max_retries=settings.delivery.max_retries,
            metrics=self.metrics,
        )
        self.template_service = TemplateService(self.templates)

        self._background_started = False

    @property
    def background_started(self) -> bool:
        return self._background_started

    def start_background(self) -> None:
        """Start the worker pool, retry timer and (if enabled) the scheduler."""
        if self._background_started:
            return
        self.pool.start()
        self.retry_timer.start()
        if self.settings.scheduler.enabled:
            self.scheduler.start()
        else:
            log.warning("Scheduler disabled; notifications will not be delivered")
        if self.shutdown_coordinator is not None:
            # Producers first, so the pool drains a queue nobody refills.
            self.shutdown_coordinator.add_stop_hook("scheduler", self.scheduler.stop)
            self.shutdown_coordinator.add_stop_hook("retry_timer", self.retry_timer.stop)
            self.shutdown_coordinator.add_stop_hook(
                "worker_pool",
                lambda: self.pool.shutdown(
                    wait=True,
                    timeout=self.settings.server.graceful_timeout,
                ),
            )
        self._background_started = True

    def stop_background(self) -> None:
        """Stop every background thread, letting queued deliveries finish."""
        if not self._background_started:
            return
        self.scheduler.stop()
        self.retry_timer.stop()
        self.pool.shutdown(wait=True, timeout=self.settings.server.graceful_timeout)
        self._background_started = False


def get_container() -> Container:
    """Return the :class:`Container` from the current Flask app.

    Raises :class:`RuntimeError` if the app was created without one
    (database backend selected but no database given).
    """
    container = current_app.extensions.get("container")
    if container is None:
        msg = (
            "Dependency container not available -- "
            "was the database initialised before create_app()?"
        )
        raise RuntimeError(msg)
    return container
