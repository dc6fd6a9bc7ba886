"""End-to-end delivery scenarios across service, sweeps, retries and pool.

The pool and retry timer are driven synchronously so each step of the
pipeline can be observed.
"""

from __future__ import annotations

import pytest

from herald.config.settings import build_settings
from herald.core.errors import InvalidRequestError
from herald.core.types import NotificationStatus
from herald.models.request import NotificationRequest
from herald.services.delivery import DeliveryExecutor, DeliveryOutcome
from herald.services.notification import NotificationService
from herald.services.retry import RetryController
from herald.services.scheduler import NotificationScheduler
from herald.transport.base import SendResult

S = NotificationStatus


@pytest.fixture()
def pipeline(notification_repo, template_repo, scripted_transport, inline_pool, manual_timer):
    executor = DeliveryExecutor(notification_repo, scripted_transport, "noreply@example.com")
    retry = RetryController(notification_repo, executor, inline_pool, manual_timer)
    scheduler = NotificationScheduler(
        notification_repo,
        executor,
        retry,
        inline_pool,
        build_settings({}).scheduler,
    )
    service = NotificationService(notification_repo, template_repo, max_retries=2)
    return service, scheduler


def _submit(service):
    return service.submit(
        NotificationRequest(recipient="user@example.com", subject="Hi", content="<p>x</p>"),
    )


class TestHappyPath:
    def test_submit_then_sweep_sends(self, pipeline, notification_repo, scripted_transport):
        service, scheduler = pipeline
        n = _submit(service)

        # Submission never delivers by itself.
        assert scripted_transport.calls == []
        assert service.get_by_id(n.id).status == S.PENDING

        scheduler.run_pending_sweep()

        stored = service.get_by_id(n.id)
        assert stored.status == S.SENT
        assert stored.retry_count == 0
        assert len(scripted_transport.calls) == 1


class TestFailThenRecover:
    def test_retry_succeeds_after_one_failure(
        self, pipeline, scripted_transport, manual_timer
    ):
        service, scheduler = pipeline
        scripted_transport.results = [SendResult.failed("temporarily unavailable")]
        n = _submit(service)

        scheduler.run_pending_sweep()
        assert service.get_by_id(n.id).status == S.FAILED

        scheduler.run_retry_sweep()
        assert service.get_by_id(n.id).status == S.RETRYING
        assert manual_timer.scheduled[0][0] == 2.0

        manual_timer.fire_all()
        stored = service.get_by_id(n.id)
        assert stored.status == S.SENT
        assert stored.retry_count == 1


class TestAlwaysFailing:
    def test_budget_exhausts_and_manual_retry_rejected(
        self, pipeline, scripted_transport, manual_timer
    ):
        service, scheduler = pipeline
        scripted_transport.default = SendResult.failed("mailbox unavailable")
        n = _submit(service)

        scheduler.run_pending_sweep()
        delays = []
        for _ in range(2):
            scheduler.run_retry_sweep()
            delays.extend(d for d, _, _ in manual_timer.scheduled)
            manual_timer.fire_all()

        stored = service.get_by_id(n.id)
        assert stored.status == S.FAILED
        assert stored.retry_count == 2
        assert stored.error_message == "mailbox unavailable"
        assert delays == [2.0, 4.0]
        assert len(scripted_transport.calls) == 3

        # Budget spent: further sweeps and manual retries do nothing.
        assert scheduler.run_retry_sweep() == 0
        with pytest.raises(InvalidRequestError, match="Max retries reached"):
            service.retry(n.id)


class TestManualRetry:
    def test_manual_retry_redelivers_on_next_sweep(self, pipeline, scripted_transport):
        service, scheduler = pipeline
        scripted_transport.results = [SendResult.failed("bounce")]
        n = _submit(service)
        scheduler.run_pending_sweep()

        requeued = service.retry(n.id)
        assert requeued.status == S.PENDING
        assert requeued.error_message is None

        scheduler.run_pending_sweep()
        stored = service.get_by_id(n.id)
        assert stored.status == S.SENT
        assert stored.retry_count == 1


class QueuedPool:
    """Pool stand-in that holds jobs until ``run_next`` is called."""

    def __init__(self) -> None:
        self.jobs: list = []

    def submit(self, name, fn) -> bool:
        self.jobs.append(fn)
        return True

    def run_next(self) -> None:
        self.jobs.pop(0)()


class TestQueuedJobsAcrossManualRetry:
    def test_late_job_keeps_consumed_retry_budget(
        self, notification_repo, template_repo, scripted_transport, manual_timer
    ):
        pool = QueuedPool()
        executor = DeliveryExecutor(notification_repo, scripted_transport, "noreply@example.com")
        retry = RetryController(notification_repo, executor, pool, manual_timer)
        scheduler = NotificationScheduler(
            notification_repo, executor, retry, pool, build_settings({}).scheduler
        )
        service = NotificationService(notification_repo, template_repo, max_retries=2)
        scripted_transport.results = [SendResult.failed("bounce")]
        n = _submit(service)

        # Two overlapping sweeps queue the same PENDING snapshot twice.
        scheduler.run_pending_sweep()
        scheduler.run_pending_sweep()
        assert len(pool.jobs) == 2

        pool.run_next()
        assert service.get_by_id(n.id).status == S.FAILED
        assert service.retry(n.id).retry_count == 1

        pool.run_next()
        stored = service.get_by_id(n.id)
        assert stored.status == S.SENT
        assert stored.retry_count == 1
        assert len(scripted_transport.calls) == 2

    def test_job_for_unknown_record_is_skipped(
        self, notification_repo, scripted_transport, make_notification
    ):
        executor = DeliveryExecutor(notification_repo, scripted_transport, "noreply@example.com")
        assert executor.attempt_send(make_notification()) == DeliveryOutcome.SKIPPED
        assert scripted_transport.calls == []
