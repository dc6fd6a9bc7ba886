"""Outbound delivery transports.

Usage::

    from herald.transport import create_transport

    transport = create_transport(settings.transport)
    result = transport.send(from_addr, from_name, to_addr, subject, html)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from herald.transport.base import SendResult, Transport
from herald.transport.sendgrid import SendGridTransport
from herald.transport.simulated import SimulatedTransport
from herald.transport.smtp import SmtpTransport

if TYPE_CHECKING:
    from herald.config.settings import TransportSettings

log = logging.getLogger(__name__)


def create_transport(settings: TransportSettings) -> Transport:
    """Build the transport selected by *settings*.

    ``enabled=False`` always yields the :class:`SimulatedTransport`.
    """
    if not settings.enabled:
        log.warning(
            "Email transport disabled; simulating delivery (success rate %.0f%%)",
            settings.simulated_success_rate * 100,
        )
        return SimulatedTransport(
            success_rate=settings.simulated_success_rate,
            latency_seconds=settings.simulated_latency_seconds,
        )
    if settings.backend == "sendgrid":
        return SendGridTransport(settings.sendgrid)
    if settings.backend == "smtp":
        return SmtpTransport(settings.smtp)
    msg = f"Unknown transport backend '{settings.backend}'"
    raise ValueError(msg)


__all__ = [
    "SendGridTransport",
    "SendResult",
    "SimulatedTransport",
    "SmtpTransport",
    "Transport",
    "create_transport",
]
