"""Tests for the metadata cache."""

from odoo_catalog_migrator.enums import TaskStatus, TaskType
from odoo_catalog_migrator.lib.cache import MetadataCache
from odoo_catalog_migrator.models import (
    MigrationTask,
    RemoteAttribute,
    RemoteAttributeValue,
)


class TestMetadataCache:
    """Tests for MetadataCache."""

    def test_lookups_are_case_insensitive(self) -> None:
        cache = MetadataCache.from_remote(
            [RemoteAttribute(id=1, name="Color")],
            [RemoteAttributeValue(id=10, name="Red", attribute_id=1)],
        )

        assert cache.find_attribute(" color ") == RemoteAttribute(id=1, name="Color")
        assert cache.find_value(1, "RED").id == 10
        assert cache.find_value(2, "Red") is None
        assert cache.find_attribute("Size") is None

    def test_first_entry_wins(self) -> None:
        cache = MetadataCache()
        cache.add_attribute(RemoteAttribute(id=1, name="Color"))
        cache.add_attribute(RemoteAttribute(id=2, name="COLOR"))

        assert cache.find_attribute("color").id == 1
        assert len(cache.attributes) == 1

    def test_seed_from_successful_tasks(self) -> None:
        tasks = [
            MigrationTask(
                "attr_Width",
                TaskType.ATTRIBUTE,
                "Width",
                {"name": "Width", "remote_id": 7},
                status=TaskStatus.SUCCESS,
            ),
            MigrationTask(
                "val_Width_1.10m",
                TaskType.VALUE,
                "Width: 1.10m",
                {"attr_name": "Width", "val_name": "1.10m", "remote_id": 8, "attribute_id": 7},
                status=TaskStatus.SUCCESS,
            ),
            MigrationTask(
                "val_Width_1.60m",
                TaskType.VALUE,
                "Width: 1.60m",
                {"attr_name": "Width", "val_name": "1.60m", "remote_id": 9, "attribute_id": 7},
                status=TaskStatus.FAILED,
            ),
            MigrationTask(
                "tmpl_Banner Roll",
                TaskType.TEMPLATE,
                "Banner Roll",
                {"tmpl_name": "Banner Roll", "variants": [], "remote_id": 20},
                status=TaskStatus.SUCCESS,
            ),
        ]
        cache = MetadataCache()

        assert cache.seed_from_tasks(tasks) == 2
        assert cache.find_attribute("width").id == 7
        assert cache.find_value(7, "1.10M").id == 8
        assert cache.find_value(7, "1.60m") is None

    def test_seed_keeps_remote_snapshot_entries(self) -> None:
        cache = MetadataCache.from_remote([RemoteAttribute(id=3, name="Width")], [])
        task = MigrationTask(
            "attr_Width",
            TaskType.ATTRIBUTE,
            "Width",
            {"name": "Width", "remote_id": 7},
            status=TaskStatus.SUCCESS,
        )

        cache.seed_from_tasks([task])

        assert cache.find_attribute("Width").id == 3
