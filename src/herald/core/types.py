"""Enumerated types for the Herald persistence layer.

All enums inherit from ``StrEnum`` so their ``.value`` is a plain
string that psycopg serialises as TEXT and JSON round-trips naturally.
"""

from __future__ import annotations

from enum import StrEnum

# ---------------------------------------------------------------------------
# Notification
# ---------------------------------------------------------------------------


class NotificationStatus(StrEnum):
    PENDING = "PENDING"
    SENDING = "SENDING"
    SENT = "SENT"
    FAILED = "FAILED"
    RETRYING = "RETRYING"


class NotificationChannel(StrEnum):
    """Delivery channel tag.  Only ``EMAIL`` has a transport."""

    EMAIL = "EMAIL"
    SMS = "SMS"
    SLACK = "SLACK"
    PUSH = "PUSH"


class NotificationPriority(StrEnum):
    """Advisory priority.  Dispatch order does not depend on it."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
