"""Domain exceptions raised synchronously to callers of the service layer.

Transport failures are *not* represented here: they are absorbed into
the notification record (``status=FAILED``, ``error_message``) and never
escape the background dispatch path.

The HTTP layer maps each class onto a problem+json response in
:mod:`herald.app.errors`.
"""

from __future__ import annotations


class HeraldError(Exception):
    """Base class for all Herald domain errors."""

    #: Short machine-readable error code used in API responses.
    code = "error"

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


class InvalidRequestError(HeraldError):
    """A request failed validation and nothing was persisted."""

    code = "invalid_request"


class NotificationNotFoundError(HeraldError):
    code = "notification_not_found"

    def __init__(self, notification_id: object) -> None:
        self.notification_id = notification_id
        super().__init__(f"Notification not found with id: {notification_id}")


class TemplateNotFoundError(HeraldError):
    code = "template_not_found"

    def __init__(self, identifier: object) -> None:
        self.identifier = identifier
        if isinstance(identifier, str):
            detail = f"Template not found with name: {identifier}"
        else:
            detail = f"Template not found with id: {identifier}"
        super().__init__(detail)


class TemplateProcessingError(HeraldError):
    """Template variables could not be encoded at create/update time."""

    code = "template_processing_error"
