"""Notification and template endpoints, mounted at ``/api``."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from flask import Blueprint, jsonify, request

from herald.api.serializers import (
    parse_enum,
    parse_notification_request,
    parse_status,
    parse_template_request,
    parse_uuid,
    serialize_notification,
    serialize_stats,
    serialize_template,
)
from herald.app.context import get_container
from herald.core.errors import InvalidRequestError
from herald.core.types import NotificationChannel

if TYPE_CHECKING:
    from flask.typing import ResponseReturnValue

log = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__)

_DEFAULT_LIMIT = 20
_MAX_LIMIT = 100


def _page_args() -> tuple[int, int]:
    try:
        limit = int(request.args.get("limit", _DEFAULT_LIMIT))
        offset = int(request.args.get("offset", 0))
    except ValueError:
        msg = "'limit' and 'offset' must be integers"
        raise InvalidRequestError(msg) from None
    if limit < 1 or offset < 0:
        msg = "'limit' must be >= 1 and 'offset' >= 0"
        raise InvalidRequestError(msg)
    return min(limit, _MAX_LIMIT), offset


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


@api_bp.route("/notifications", methods=["POST"])
def submit_notification() -> ResponseReturnValue:
    """Validate and queue a notification for delivery."""
    notification_request = parse_notification_request(request.get_json(silent=True))
    notification = get_container().notification_service.submit(notification_request)
    return jsonify(serialize_notification(notification, "Notification queued successfully")), 201


@api_bp.route("/notifications", methods=["GET"])
def list_notifications() -> ResponseReturnValue:
    limit, offset = _page_args()
    service = get_container().notification_service
    status = request.args.get("status")
    if status:
        notifications = service.list_by_status(parse_status(status), limit=limit, offset=offset)
    else:
        notifications = service.list_all(limit=limit, offset=offset)
    return jsonify(
        {
            "items": [serialize_notification(n) for n in notifications],
            "limit": limit,
            "offset": offset,
        }
    )


@api_bp.route("/notifications/stats/today", methods=["GET"])
def today_stats() -> ResponseReturnValue:
    return jsonify(serialize_stats(get_container().notification_service.get_today_stats()))


@api_bp.route("/notifications/<notification_id>", methods=["GET"])
def get_notification(notification_id: str) -> ResponseReturnValue:
    notification = get_container().notification_service.get_by_id(parse_uuid(notification_id))
    return jsonify(serialize_notification(notification))


@api_bp.route("/notifications/recipient/<recipient>", methods=["GET"])
def notifications_by_recipient(recipient: str) -> ResponseReturnValue:
    notifications = get_container().notification_service.list_by_recipient(recipient)
    return jsonify([serialize_notification(n) for n in notifications])


@api_bp.route("/notifications/<notification_id>/retry", methods=["POST"])
def retry_notification(notification_id: str) -> ResponseReturnValue:
    """Manually re-queue a FAILED notification."""
    notification = get_container().notification_service.retry(parse_uuid(notification_id))
    return jsonify(serialize_notification(notification, "Notification queued for retry"))


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


@api_bp.route("/templates", methods=["POST"])
def create_template() -> ResponseReturnValue:
    template_request = parse_template_request(request.get_json(silent=True))
    template = get_container().template_service.create(template_request)
    return jsonify(serialize_template(template)), 201


@api_bp.route("/templates", methods=["GET"])
def list_templates() -> ResponseReturnValue:
    """List templates; ``?active=true`` and ``?channel=`` narrow the result."""
    service = get_container().template_service
    channel = request.args.get("channel")
    active_only = request.args.get("active", "").lower() in ("1", "true", "yes")
    if channel:
        templates = service.list_active_by_channel(
            parse_enum(NotificationChannel, channel, "channel"),
        )
    elif active_only:
        templates = service.list_active()
    else:
        templates = service.list_all()
    return jsonify([serialize_template(t) for t in templates])


@api_bp.route("/templates/<template_id>", methods=["GET"])
def get_template(template_id: str) -> ResponseReturnValue:
    template = get_container().template_service.get_by_id(parse_uuid(template_id))
    return jsonify(serialize_template(template))


@api_bp.route("/templates/name/<name>", methods=["GET"])
def get_template_by_name(name: str) -> ResponseReturnValue:
    return jsonify(serialize_template(get_container().template_service.get_by_name(name)))


@api_bp.route("/templates/<template_id>", methods=["PUT"])
def update_template(template_id: str) -> ResponseReturnValue:
    template_request = parse_template_request(request.get_json(silent=True))
    template = get_container().template_service.update(parse_uuid(template_id), template_request)
    return jsonify(serialize_template(template))


@api_bp.route("/templates/<template_id>", methods=["DELETE"])
def delete_template(template_id: str) -> ResponseReturnValue:
    """Deactivate a template."""
    get_container().template_service.delete(parse_uuid(template_id))
    return "", 204
