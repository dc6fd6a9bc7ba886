"""Placeholder renderer for notification subjects and bodies.

Replaces ``{{ name }}`` tokens with values from a variable mapping.
Rendering never fails: a token whose name is not in the mapping is left
in the output exactly as written and a warning is logged.

Usage::

    from herald.notifications.renderer import render

    render("Welcome {{user_name}}!", {"user_name": "John"})
    # -> "Welcome John!"
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping

log = logging.getLogger(__name__)

# Non-greedy body that cannot itself contain '}'; mirrors the token
# grammar accepted by template authors: {{name}}, {{ name }}.
PLACEHOLDER_RE = re.compile(r"\{\{([^}]+)\}\}")


def render(text: str | None, variables: Mapping[str, Any] | None) -> str | None:
    """Render *text* by substituting placeholders from *variables*.

    Parameters
    ----------
    text:
        Template text.  ``None`` and ``""`` are returned unchanged.
    variables:
        Name → value mapping.  ``None`` or empty returns *text* unchanged.
        Values are substituted via :func:`str`.

    Returns
    -------
    str | None
        The rendered text.

    """
    if not text:
        return text
    if not variables:
        return text

    def _substitute(match: re.Match[str]) -> str:
        name = match.group(1).strip()
        if name in variables:
            return str(variables[name])
        log.warning("Variable '%s' not found in provided variables", name)
        return match.group(0)

    return PLACEHOLDER_RE.sub(_substitute, text)


class TemplateRenderer:
    """Renders a subject/body pair with one shared variable mapping."""

    def render(
        self,
        subject: str | None,
        body: str | None,
        variables: Mapping[str, Any] | None,
    ) -> tuple[str | None, str | None]:
        """Return ``(subject, body)`` rendered with the same *variables*."""
        return render(subject, variables), render(body, variables)
