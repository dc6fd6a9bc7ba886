"""Template management."""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from herald.core.errors import (
    InvalidRequestError,
    TemplateNotFoundError,
    TemplateProcessingError,
)
from herald.models.template import Template
from herald.notifications.renderer import render

if TYPE_CHECKING:
    from collections.abc import Mapping
    from uuid import UUID

    from herald.core.types import NotificationChannel
    from herald.models.request import TemplateRequest
    from herald.repositories.template import TemplateRepository

log = logging.getLogger(__name__)

MAX_NAME_LENGTH = 255
MAX_DESCRIPTION_LENGTH = 1000
MAX_SUBJECT_LENGTH = 500


def _encode_variables(variables: Any) -> str | None:  # noqa: ANN401
    if not variables:
        return None
    try:
        return json.dumps(list(variables))
    except (TypeError, ValueError) as exc:
        msg = f"Failed to process template variables: {exc}"
        raise TemplateProcessingError(msg) from exc


def decode_variables(template: Template) -> list[str]:
    """Declared variable names of *template* (empty when none)."""
    if not template.variables:
        return []
    try:
        value = json.loads(template.variables)
    except ValueError:
        log.warning("Template %s has undecodable variables %r", template.id, template.variables)
        return []
    return [str(v) for v in value] if isinstance(value, list) else []


class TemplateService:
    """CRUD for templates plus rendering.

    Deleting a template only deactivates it: notifications keep
    referencing it and a deactivated template can no longer be used for
    new submissions.
    """

    def __init__(self, templates: TemplateRepository) -> None:
        self._templates = templates

    def create(self, request: TemplateRequest) -> Template:
        self._validate(request)
        if self._templates.exists_by_name(request.name):
            msg = f"Template with name '{request.name}' already exists"
            raise InvalidRequestError(msg)

        now = datetime.now(UTC)
        template = Template(
            id=uuid.uuid4(),
            name=request.name,
            subject=request.subject,
            body=request.body,
            description=request.description,
            variables=_encode_variables(request.variables),
            channel=request.channel,
            is_active=request.is_active,
            version=1,
            created_at=now,
            updated_at=now,
        )
        saved = self._templates.create(template)
        log.info("Template created with id: %s and name: %s", saved.id, saved.name)
        return saved

    def update(self, template_id: UUID, request: TemplateRequest) -> Template:
        """Replace every field of an existing template and bump its version."""
        existing = self.get_by_id(template_id)
        self._validate(request)
        if request.name != existing.name and self._templates.exists_by_name(
            request.name, exclude_id=template_id
        ):
            msg = f"Template with name '{request.name}' already exists"
            raise InvalidRequestError(msg)

        updated = replace(
            existing,
            name=request.name,
            subject=request.subject,
            body=request.body,
            description=request.description,
            variables=_encode_variables(request.variables),
            channel=request.channel,
            is_active=request.is_active,
            version=existing.version + 1,
            updated_at=datetime.now(UTC),
        )
        saved = self._templates.update(updated)
        log.info("Template updated: %s (version %d)", saved.name, saved.version)
        return saved

    def get_by_id(self, template_id: UUID) -> Template:
        template = self._templates.find_by_id(template_id)
        if template is None:
            raise TemplateNotFoundError(template_id)
        return template

    def get_by_name(self, name: str) -> Template:
        template = self._templates.find_by_name(name)
        if template is None:
            raise TemplateNotFoundError(name)
        return template

    def list_all(self) -> list[Template]:
        return self._templates.find_all()

    def list_active(self) -> list[Template]:
        return self._templates.find_active()

    def list_active_by_channel(self, channel: NotificationChannel) -> list[Template]:
        return self._templates.find_active_by_channel(channel)

    def delete(self, template_id: UUID) -> Template:
        """Soft-delete: mark the template inactive."""
        existing = self.get_by_id(template_id)
        saved = self._templates.update(
            replace(existing, is_active=False, updated_at=datetime.now(UTC)),
        )
        log.info("Template deactivated: %s", saved.name)
        return saved

    @staticmethod
    def render_template(text: str | None, variables: Mapping[str, Any] | None) -> str | None:
        return render(text, variables)

    @staticmethod
    def _validate(request: TemplateRequest) -> None:
        if not (request.name and request.name.strip()):
            msg = "Template name is required"
            raise InvalidRequestError(msg)
        if len(request.name) > MAX_NAME_LENGTH:
            msg = "Template name too long"
            raise InvalidRequestError(msg)
        if request.description and len(request.description) > MAX_DESCRIPTION_LENGTH:
            msg = "Description too long"
            raise InvalidRequestError(msg)
        if not (request.subject and request.subject.strip()):
            msg = "Subject is required"
            raise InvalidRequestError(msg)
        if len(request.subject) > MAX_SUBJECT_LENGTH:
            msg = "Subject too long"
            raise InvalidRequestError(msg)
        if not (request.body and request.body.strip()):
            msg = "Body is required"
            raise InvalidRequestError(msg)
