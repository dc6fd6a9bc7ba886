"""JSON (de)serialization for the HTTP API.

``serialize_*`` turn entities into dicts suitable for
``flask.jsonify``; ``parse_*`` turn request bodies into request value
objects, raising :class:`InvalidRequestError` on malformed input.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from herald.core.errors import InvalidRequestError
from herald.core.types import NotificationChannel, NotificationPriority, NotificationStatus
from herald.models.request import NotificationRequest, TemplateRequest
from herald.services.template import decode_variables

if TYPE_CHECKING:
    from enum import Enum

    from herald.models.notification import Notification
    from herald.models.request import NotificationStats
    from herald.models.template import Template


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def serialize_notification(notification: Notification, message: str | None = None) -> dict:
    """Serialize a notification entity."""
    result = {
        "id": str(notification.id),
        "recipient": notification.recipient,
        "subject": notification.subject,
        "content": notification.content,
        "template_id": str(notification.template_id) if notification.template_id else None,
        "channel": notification.channel.value,
        "priority": notification.priority.value,
        "status": notification.status.value,
        "retry_count": notification.retry_count,
        "max_retries": notification.max_retries,
        "error_message": notification.error_message,
        "scheduled_at": _iso(notification.scheduled_at),
        "sent_at": _iso(notification.sent_at),
        "failed_at": _iso(notification.failed_at),
        "created_at": _iso(notification.created_at),
        "updated_at": _iso(notification.updated_at),
    }
    if message is not None:
        result["message"] = message
    return result


def serialize_template(template: Template) -> dict:
    return {
        "id": str(template.id),
        "name": template.name,
        "subject": template.subject,
        "body": template.body,
        "description": template.description,
        "variables": decode_variables(template),
        "channel": template.channel.value,
        "is_active": template.is_active,
        "version": template.version,
        "created_at": _iso(template.created_at),
        "updated_at": _iso(template.updated_at),
    }


def serialize_stats(stats: NotificationStats) -> dict:
    return {
        "sent_today": stats.sent_today,
        "failed_today": stats.failed_today,
        "success_rate_percent": round(stats.success_rate_percent, 2),
    }


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_uuid(value: Any, field: str = "id") -> UUID:  # noqa: ANN401
    try:
        return UUID(str(value))
    except ValueError:
        msg = f"'{field}' is not a valid UUID: {value}"
        raise InvalidRequestError(msg) from None


def parse_enum(enum_cls: type[Enum], value: Any, field: str) -> Any:  # noqa: ANN401
    try:
        return enum_cls(str(value).upper())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        msg = f"'{field}' must be one of {allowed} (got '{value}')"
        raise InvalidRequestError(msg) from None


def parse_status(value: Any) -> NotificationStatus:  # noqa: ANN401
    return parse_enum(NotificationStatus, value, "status")


def _parse_datetime(value: Any, field: str) -> datetime | None:  # noqa: ANN401
    if value in (None, ""):
        return None
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        msg = f"'{field}' is not an ISO 8601 timestamp: {value}"
        raise InvalidRequestError(msg) from None


def _optional_str(data: dict, field: str) -> str | None:
    value = data.get(field)
    if value is None:
        return None
    if not isinstance(value, str):
        msg = f"'{field}' must be a string"
        raise InvalidRequestError(msg)
    return value


def parse_notification_request(data: Any) -> NotificationRequest:  # noqa: ANN401
    if not isinstance(data, dict):
        msg = "Request body must be a JSON object"
        raise InvalidRequestError(msg)

    variables = data.get("variables") or {}
    if not isinstance(variables, dict):
        msg = "'variables' must be an object"
        raise InvalidRequestError(msg)

    template_id = data.get("template_id")
    return NotificationRequest(
        recipient=_optional_str(data, "recipient") or "",
        subject=_optional_str(data, "subject"),
        content=_optional_str(data, "content"),
        template_id=parse_uuid(template_id, "template_id") if template_id else None,
        variables=variables,
        priority=parse_enum(NotificationPriority, data.get("priority", "MEDIUM"), "priority"),
        channel=parse_enum(NotificationChannel, data.get("channel", "EMAIL"), "channel"),
        scheduled_at=_parse_datetime(data.get("scheduled_at"), "scheduled_at"),
    )


def parse_template_request(data: Any) -> TemplateRequest:  # noqa: ANN401
    if not isinstance(data, dict):
        msg = "Request body must be a JSON object"
        raise InvalidRequestError(msg)

    variables = data.get("variables") or []
    if not isinstance(variables, list):
        msg = "'variables' must be a list"
        raise InvalidRequestError(msg)

    is_active = data.get("is_active", True)
    if not isinstance(is_active, bool):
        msg = "'is_active' must be a boolean"
        raise InvalidRequestError(msg)

    return TemplateRequest(
        name=_optional_str(data, "name") or "",
        subject=_optional_str(data, "subject") or "",
        body=_optional_str(data, "body") or "",
        description=_optional_str(data, "description"),
        variables=variables,
        channel=parse_enum(NotificationChannel, data.get("channel", "EMAIL"), "channel"),
        is_active=is_active,
    )
