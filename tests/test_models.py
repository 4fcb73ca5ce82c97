"""Tests for the migration state model."""

from odoo_catalog_migrator.enums import LogLevel, TaskStatus, TaskType
from odoo_catalog_migrator.models import MigrationState, MigrationTask, UomConflict


class TestMigrationState:
    """Tests for MigrationState helpers."""

    def test_log_buffer_keeps_most_recent_entries(self) -> None:
        state = MigrationState()
        for i in range(7):
            state.append_log(LogLevel.INFO, f"entry {i}", max_logs=5)

        assert [entry.message for entry in state.logs] == [
            "entry 2",
            "entry 3",
            "entry 4",
            "entry 5",
            "entry 6",
        ]

    def test_plan_and_conflict_helpers(self) -> None:
        state = MigrationState()
        assert not state.has_plan

        state.tasks = [
            MigrationTask("attr_A", TaskType.ATTRIBUTE, "A", {}, status=TaskStatus.FAILED),
            MigrationTask("attr_B", TaskType.ATTRIBUTE, "B", {}),
        ]
        state.uom_conflicts = [UomConflict("rolls", 3), UomConflict("boxes")]

        assert state.has_plan
        assert [t.id for t in state.failed_tasks()] == ["attr_A"]
        assert [c.local_uom for c in state.unresolved_conflicts()] == ["boxes"]

    def test_new_sessions_get_distinct_ids(self) -> None:
        assert MigrationState().id != MigrationState().id
