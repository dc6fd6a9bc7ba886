"""problem+json error responses for the Herald HTTP API.

Every error leaving the API, whether a domain error from the service
layer, a Werkzeug HTTP error or an unexpected crash, is rendered as an
RFC 7807 document.  Domain errors carry their ``code`` as an extension
member so clients can branch without parsing ``detail``::

    {"type": "urn:herald:error:notificationNotFound",
     "status": 404,
     "code": "notification_not_found",
     "detail": "Notification not found with id: ..."}
"""

from __future__ import annotations

import logging
from typing import Any

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from herald.core.errors import (
    HeraldError,
    InvalidRequestError,
    NotificationNotFoundError,
    TemplateNotFoundError,
    TemplateProcessingError,
)

log = logging.getLogger(__name__)

_URN = "urn:herald:error:"

INVALID_REQUEST = _URN + "invalidRequest"
NOTIFICATION_NOT_FOUND = _URN + "notificationNotFound"
TEMPLATE_NOT_FOUND = _URN + "templateNotFound"
TEMPLATE_PROCESSING = _URN + "templateProcessing"
SERVER_INTERNAL = _URN + "serverInternal"

PROBLEM_CONTENT_TYPE = "application/problem+json"

_STATUS_BY_ERROR: dict[type[HeraldError], tuple[str, int]] = {
    InvalidRequestError: (INVALID_REQUEST, 400),
    NotificationNotFoundError: (NOTIFICATION_NOT_FOUND, 404),
    TemplateNotFoundError: (TEMPLATE_NOT_FOUND, 404),
    TemplateProcessingError: (TEMPLATE_PROCESSING, 422),
}


class Problem(Exception):
    """Raise from a view to answer with a problem document.

    ``code`` is optional and only emitted when set.
    """

    def __init__(
        self,
        error_type: str,
        detail: str,
        status: int = 400,
        *,
        title: str | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(detail)
        self.error_type = error_type
        self.detail = detail
        self.status = status
        self.title = title
        self.code = code

    @classmethod
    def from_domain(cls, exc: HeraldError) -> Problem:
        # Walk the MRO so subclasses of a mapped error inherit its status.
        for klass in type(exc).__mro__:
            if klass in _STATUS_BY_ERROR:
                error_type, status = _STATUS_BY_ERROR[klass]
                return cls(error_type, exc.detail, status, code=exc.code)
        return cls(SERVER_INTERNAL, exc.detail, 500, code=exc.code)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "type": self.error_type,
            "detail": self.detail,
            "status": self.status,
        }
        if self.title is not None:
            body["title"] = self.title
        if self.code is not None:
            body["code"] = self.code
        return body

    def to_response(self):
        response = jsonify(self.to_dict())
        response.status_code = self.status
        response.content_type = PROBLEM_CONTENT_TYPE
        response.headers["Cache-Control"] = "no-store"
        return response


def register_error_handlers(app: Flask) -> None:
    """Render every error raised while handling a request as problem+json."""

    @app.errorhandler(Problem)
    def _problem(exc: Problem):
        return exc.to_response()

    @app.errorhandler(HeraldError)
    def _domain_error(exc: HeraldError):
        problem = Problem.from_domain(exc)
        if problem.status >= 500:  # noqa: PLR2004
            log.error("Domain error without an HTTP mapping: %r", exc)
        else:
            log.info("Request rejected (%s): %s", exc.code, exc.detail)
        return problem.to_response()

    @app.errorhandler(HTTPException)
    def _http_error(exc: HTTPException):
        return Problem(
            "about:blank",
            exc.description or exc.name,
            exc.code or 500,
            title=exc.name,
        ).to_response()

    @app.errorhandler(Exception)
    def _crash(exc: Exception):
        log.exception("Unhandled exception while serving request")
        return Problem(SERVER_INTERNAL, "An unexpected internal error occurred", 500).to_response()
