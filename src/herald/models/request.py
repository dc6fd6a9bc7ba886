"""Inbound request and outbound statistics value objects."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from herald.core.types import NotificationChannel, NotificationPriority

if TYPE_CHECKING:
    from uuid import UUID


@dataclass(frozen=True)
class NotificationRequest:
    """A delivery request: raw content, or a template plus variables."""

    recipient: str
    subject: str | None = None
    content: str | None = None
    template_id: UUID | None = None
    variables: dict[str, Any] = field(default_factory=dict)
    priority: NotificationPriority = NotificationPriority.MEDIUM
    channel: NotificationChannel = NotificationChannel.EMAIL
    scheduled_at: datetime | None = None

    def has_body(self) -> bool:
        """Either non-blank content or a template reference is present."""
        return bool(self.content and self.content.strip()) or self.template_id is not None


@dataclass(frozen=True)
class TemplateRequest:
    name: str
    subject: str
    body: str
    description: str | None = None
    variables: list[str] = field(default_factory=list)
    channel: NotificationChannel = NotificationChannel.EMAIL
    is_active: bool = True


@dataclass(frozen=True)
class NotificationStats:
    sent_today: int
    failed_today: int
    success_rate_percent: float
