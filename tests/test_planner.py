"""Tests for the migration plan builder."""

from conftest import banner_roll, make_product

from odoo_catalog_migrator.enums import TaskStatus, TaskType, TemplatePolicy
from odoo_catalog_migrator.lib import planner
from odoo_catalog_migrator.models import RemoteAttribute, RemoteAttributeValue


def _catalog():
    return [
        make_product("T-Shirt", "TS-R-S", attributes=[("Color", "Red"), ("Size", "S")]),
        make_product("T-Shirt", "TS-B-S", attributes=[("Color", "Blue"), ("Size", "S")]),
        make_product("Mug", "MUG-R", attributes=[("Color", "Red")]),
        make_product("Sticker", "STK"),
    ]


class TestBuild:
    """Tests for planner.build."""

    def test_empty_remote_plans_everything(self) -> None:
        tasks = planner.build(_catalog(), [], [])

        assert [t.id for t in tasks] == [
            "attr_Color",
            "attr_Size",
            "val_Color_Red",
            "val_Color_Blue",
            "val_Size_S",
            "tmpl_T-Shirt",
            "tmpl_Mug",
            "tmpl_Sticker",
        ]
        assert all(t.status == TaskStatus.PENDING for t in tasks)
        assert tasks[2].name == "Color: Red"
        assert tasks[2].data == {"attr_name": "Color", "val_name": "Red"}
        assert tasks[0].data == {"name": "Color"}

    def test_task_ordering_invariant(self) -> None:
        tasks = planner.build(_catalog(), [], [])
        kinds = [t.type for t in tasks]

        last_attribute = max(i for i, k in enumerate(kinds) if k == TaskType.ATTRIBUTE)
        first_value = min(i for i, k in enumerate(kinds) if k == TaskType.VALUE)
        last_value = max(i for i, k in enumerate(kinds) if k == TaskType.VALUE)
        first_template = min(i for i, k in enumerate(kinds) if k == TaskType.TEMPLATE)
        assert last_attribute < first_value
        assert last_value < first_template

    def test_existing_attributes_and_values_are_left_out(self) -> None:
        remote_attributes = [RemoteAttribute(id=5, name="color")]
        remote_values = [RemoteAttributeValue(id=9, name="RED", attribute_id=5)]

        tasks = planner.build(_catalog(), remote_attributes, remote_values)

        ids = [t.id for t in tasks]
        assert "attr_Color" not in ids
        assert "val_Color_Red" not in ids
        assert "val_Color_Blue" in ids
        assert "attr_Size" in ids

    def test_value_of_another_attribute_does_not_count(self) -> None:
        remote_attributes = [RemoteAttribute(id=5, name="Color")]
        remote_values = [RemoteAttributeValue(id=9, name="Red", attribute_id=6)]

        tasks = planner.build(_catalog(), remote_attributes, remote_values)

        assert "val_Color_Red" in [t.id for t in tasks]

    def test_template_payload_carries_all_variants(self) -> None:
        tasks = planner.build(banner_roll(), [], [])

        template = tasks[-1]
        assert template.type == TaskType.TEMPLATE
        assert template.data["tmpl_name"] == "Banner Roll"
        assert [v["default_code"] for v in template.data["variants"]] == [
            "BR-110",
            "BR-160",
        ]

    def test_rebuild_after_migration_only_replans_templates(self) -> None:
        """Attributes and values converge; templates are planned again."""
        first = planner.build(banner_roll(), [], [])
        remote_attributes = [RemoteAttribute(id=1, name="Width")]
        remote_values = [
            RemoteAttributeValue(id=2, name="1.10m", attribute_id=1),
            RemoteAttributeValue(id=3, name="1.60m", attribute_id=1),
        ]

        second = planner.build(banner_roll(), remote_attributes, remote_values)

        assert len(first) == 4
        assert [t.id for t in second] == ["tmpl_Banner Roll"]

    def test_same_snapshot_gives_same_plan(self) -> None:
        first = planner.build(_catalog(), [], [])
        second = planner.build(_catalog(), [], [])
        assert [t.to_dict() for t in first] == [t.to_dict() for t in second]

    def test_skip_policy_marks_existing_templates(self) -> None:
        tasks = planner.build(
            _catalog(),
            [],
            [],
            existing_templates=["mug"],
            template_policy=TemplatePolicy.SKIP,
        )

        by_id = {t.id: t for t in tasks}
        assert by_id["tmpl_Mug"].status == TaskStatus.SKIPPED
        assert by_id["tmpl_Mug"].error == "Template already exists remotely."
        assert by_id["tmpl_T-Shirt"].status == TaskStatus.PENDING

    def test_create_policy_ignores_existing_templates(self) -> None:
        tasks = planner.build(_catalog(), [], [], existing_templates=["Mug"])
        assert all(t.status == TaskStatus.PENDING for t in tasks)

    def test_empty_catalog(self) -> None:
        assert planner.build([], [], []) == []

    def test_attribute_names_are_grouped_case_insensitively(self) -> None:
        products = [
            make_product("Banner", "B-1", attributes=[("Width", "1.10m")]),
            make_product("Banner", "B-2", attributes=[("width", "1.60M")]),
            make_product("Flag", "F-1", attributes=[("WIDTH", "1.60m")]),
        ]

        tasks = planner.build(products, [], [])

        assert [t.id for t in tasks] == [
            "attr_Width",
            "val_Width_1.10m",
            "val_Width_1.60M",
            "tmpl_Banner",
            "tmpl_Flag",
        ]
