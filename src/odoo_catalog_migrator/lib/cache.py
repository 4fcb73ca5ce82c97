"""Read-through cache of remote attributes and attribute values.

Keyed by the same identity as the remote entities: the case-insensitive
name for attributes, ``(attribute id, case-insensitive name)`` for values.
"""

from typing import Optional

from ..enums import TaskStatus, TaskType
from ..logging_config import log
from ..models import MigrationTask, RemoteAttribute, RemoteAttributeValue
from .internal.tools import name_key


class MetadataCache:
    """Attributes and values known remotely, including the ones created this run."""

    def __init__(self) -> None:
        self._attributes: dict[str, RemoteAttribute] = {}
        self._values: dict[tuple[int, str], RemoteAttributeValue] = {}

    @classmethod
    def from_remote(
        cls,
        attributes: list[RemoteAttribute],
        values: list[RemoteAttributeValue],
    ) -> "MetadataCache":
        cache = cls()
        for attribute in attributes:
            cache.add_attribute(attribute)
        for value in values:
            cache.add_value(value)
        return cache

    def add_attribute(self, attribute: RemoteAttribute) -> None:
        self._attributes.setdefault(name_key(attribute.name), attribute)

    def add_value(self, value: RemoteAttributeValue) -> None:
        self._values.setdefault((value.attribute_id, name_key(value.name)), value)

    def find_attribute(self, name: str) -> Optional[RemoteAttribute]:
        return self._attributes.get(name_key(name))

    def find_value(self, attribute_id: int, name: str) -> Optional[RemoteAttributeValue]:
        return self._values.get((attribute_id, name_key(name)))

    @property
    def attributes(self) -> list[RemoteAttribute]:
        return list(self._attributes.values())

    @property
    def values(self) -> list[RemoteAttributeValue]:
        return list(self._values.values())

    def seed_from_tasks(self, tasks: list[MigrationTask]) -> int:
        """Re-adds entities created by successful tasks of a persisted plan.

        Successful attribute and value tasks record the id they created in
        ``data["remote_id"]``. This makes a resumed run independent of what
        the remote snapshot happened to contain.

        Returns:
            The number of entries added.
        """
        added = 0
        for task in tasks:
            if task.status != TaskStatus.SUCCESS or "remote_id" not in task.data:
                continue
            remote_id = int(task.data["remote_id"])
            if task.type == TaskType.ATTRIBUTE:
                self.add_attribute(RemoteAttribute(id=remote_id, name=task.data["name"]))
                added += 1
            elif task.type == TaskType.VALUE and "attribute_id" in task.data:
                self.add_value(
                    RemoteAttributeValue(
                        id=remote_id,
                        name=task.data["val_name"],
                        attribute_id=int(task.data["attribute_id"]),
                    )
                )
                added += 1
        if added:
            log.debug(f"Seeded {added} cache entries from completed tasks.")
        return added
