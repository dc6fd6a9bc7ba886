"""Template repository."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pypgkit import BaseRepository, Database

from herald.core.types import NotificationChannel
from herald.models.template import Template

if TYPE_CHECKING:
    from uuid import UUID


class TemplateRepository(BaseRepository[Template]):
    table_name = "templates"
    primary_key = "id"

    def _row_to_entity(self, row: dict) -> Template:
        return Template(
            id=row["id"],
            name=row["name"],
            subject=row["subject"],
            body=row["body"],
            description=row.get("description"),
            variables=row.get("variables"),
            channel=NotificationChannel(row["channel"]),
            is_active=row["is_active"],
            version=row["version"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _entity_to_row(self, entity: Template) -> dict:
        return {
            "id": entity.id,
            "name": entity.name,
            "subject": entity.subject,
            "body": entity.body,
            "description": entity.description,
            "variables": entity.variables,
            "channel": entity.channel.value,
            "is_active": entity.is_active,
            "version": entity.version,
            "created_at": entity.created_at,
            "updated_at": entity.updated_at,
        }

    def find_all(self) -> list[Template]:
        return self.find_by({}, order_by="name")

    def find_by_name(self, name: str) -> Template | None:
        return self.find_one_by({"name": name})

    def exists_by_name(self, name: str, exclude_id: UUID | None = None) -> bool:
        """Whether a template called *name* exists, optionally ignoring *exclude_id*."""
        db = Database.get_instance()
        if exclude_id is None:
            value = db.fetch_value(
                "SELECT EXISTS (SELECT 1 FROM templates WHERE name = %s)",
                (name,),
            )
        else:
            value = db.fetch_value(
                "SELECT EXISTS (SELECT 1 FROM templates WHERE name = %s AND id <> %s)",
                (name, exclude_id),
            )
        return bool(value)

    def find_active(self) -> list[Template]:
        return self.find_by({"is_active": True}, order_by="name")

    def find_active_by_channel(self, channel: NotificationChannel) -> list[Template]:
        return self.find_by(
            {"is_active": True, "channel": channel.value},
            order_by="name",
        )
