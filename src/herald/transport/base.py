"""Transport abstraction.

A transport makes exactly one outbound delivery attempt and reports the
outcome as a :class:`SendResult`.  It never raises for delivery
problems: HTTP errors, network failures and unexpected exceptions all
become ``SendResult(success=False, error=...)`` with a human-readable
reason that ends up in ``Notification.error_message``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class SendResult:
    success: bool
    error: str | None = None

    @classmethod
    def ok(cls) -> SendResult:
        return cls(success=True)

    @classmethod
    def failed(cls, error: str) -> SendResult:
        return cls(success=False, error=error)


class Transport(ABC):
    """Outbound email transport."""

    #: Short name used in log lines and metric labels.
    name = "transport"

    @abstractmethod
    def send(
        self,
        from_address: str,
        from_name: str,
        to_address: str,
        subject: str | None,
        html_body: str,
    ) -> SendResult:
        """Attempt one delivery of an HTML message to *to_address*."""
