"""Notification content rendering."""

from herald.notifications.renderer import TemplateRenderer, render

__all__ = ["TemplateRenderer", "render"]
