"""Entity models for the Herald persistence layer.

All models are frozen dataclasses.  Use :func:`dataclasses.replace`
for modifications (copy-on-write).
"""

from herald.models.notification import Notification
from herald.models.request import NotificationRequest, NotificationStats, TemplateRequest
from herald.models.template import Template

__all__ = [
    "Notification",
    "NotificationRequest",
    "NotificationStats",
    "Template",
    "TemplateRequest",
]
