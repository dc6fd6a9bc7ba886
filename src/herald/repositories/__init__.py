"""Repository classes for the Herald persistence layer.

The PostgreSQL repositories extend :class:`pypgkit.BaseRepository` with
custom query methods; the in-memory variants expose the same methods.
"""

from herald.repositories.memory import InMemoryNotificationRepository, InMemoryTemplateRepository
from herald.repositories.notification import NotificationRepository
from herald.repositories.template import TemplateRepository

__all__ = [
    "InMemoryNotificationRepository",
    "InMemoryTemplateRepository",
    "NotificationRepository",
    "TemplateRepository",
]
