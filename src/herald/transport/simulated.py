"""Simulated transport used when ``transport.enabled`` is false.

Sleeps for the configured latency and then succeeds with the configured
probability.  The random source and the sleep function are injectable
so tests can make the outcome deterministic.
"""

from __future__ import annotations

import logging
import random
import time
from typing import TYPE_CHECKING

from herald.transport.base import SendResult, Transport

if TYPE_CHECKING:
    from collections.abc import Callable

log = logging.getLogger(__name__)

SIMULATED_FAILURE = "Simulated failure for testing"


class SimulatedTransport(Transport):
    name = "simulated"

    def __init__(
        self,
        success_rate: float = 0.9,
        latency_seconds: float = 0.5,
        rng: random.Random | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not 0.0 <= success_rate <= 1.0:
            msg = f"success_rate must be within [0, 1], got {success_rate}"
            raise ValueError(msg)
        self._success_rate = success_rate
        self._latency = latency_seconds
        self._rng = rng or random.Random()
        self._sleep = sleep

    def send(
        self,
        from_address: str,
        from_name: str,
        to_address: str,
        subject: str | None,
        html_body: str,
    ) -> SendResult:
        log.info("SIMULATED: sending email to %s with subject %r", to_address, subject)
        log.debug("SIMULATED: email content: %s", html_body)

        if self._latency > 0:
            self._sleep(self._latency)

        if self._rng.random() < self._success_rate:
            log.info("SIMULATED: email sent to %s", to_address)
            return SendResult.ok()

        log.warning("SIMULATED: email to %s failed", to_address)
        return SendResult.failed(SIMULATED_FAILURE)
