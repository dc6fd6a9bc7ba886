"""Template entity."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from herald.core.types import NotificationChannel

if TYPE_CHECKING:
    from uuid import UUID

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


@dataclass(frozen=True)
class Template:
    id: UUID
    name: str
    subject: str
    body: str
    description: str | None = None
    # JSON-encoded list of declared variable names; opaque to delivery.
    variables: str | None = None
    channel: NotificationChannel = NotificationChannel.EMAIL
    is_active: bool = True
    version: int = 1
    created_at: datetime = _EPOCH
    updated_at: datetime = _EPOCH
