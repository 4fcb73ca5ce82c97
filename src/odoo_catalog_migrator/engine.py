"""Migration state machine.

This module contains the high-level logic for a catalog migration: the
analysis of the remote catalog, conflict resolution, plan building, and the
worker loop that executes the plan one task at a time with retries, backoff
and pause/resume. The full state is persisted after every change so that an
interrupted run resumes from the last completed task.
"""

import json
import math
import threading
import time
from pathlib import Path
from typing import Any, Callable, Optional, Union

from .catalog import collect_uoms
from .enums import LogLevel, MigrationPhase, TaskStatus, TemplatePolicy
from .lib import conflicts as conflict_analyzer
from .lib import planner
from .lib.cache import MetadataCache
from .lib.client import CatalogClient
from .lib.conf_lib import EngineSettings
from .lib.executor import TaskExecutor
from .lib.internal.exceptions import StateVersionError
from .lib.state_store import StateStore
from .logging_config import log
from .models import (
    LocalProduct,
    MigrationState,
    MigrationTask,
    RemoteAttribute,
    RemoteAttributeValue,
    RemoteUnit,
    UomConflict,
)

_LOG_METHODS = {
    LogLevel.INFO: log.info,
    LogLevel.SUCCESS: log.info,
    LogLevel.WARN: log.warning,
    LogLevel.ERROR: log.error,
}


class MigrationEngine:
    """Drives one migration session against a remote catalog.

    Usage:
        engine = MigrationEngine(client, products, StateStore(path))
        engine.run_analysis()
        if engine.state.phase == MigrationPhase.RESOLVING:
            engine.resolve_conflict("rolls", 12)
            engine.finish_resolution()
        engine.start_migration()
        engine.run()
    """

    def __init__(
        self,
        client: CatalogClient,
        products: list[LocalProduct],
        store: StateStore,
        settings: Optional[EngineSettings] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initializes the engine and loads the persisted session.

        Args:
            client: The remote catalog client.
            products: The local catalog, read-only for the whole run.
            store: Where the state is persisted.
            settings: Delays, retry limits and log buffer size.
            sleep: The sleep function, injectable for tests.
        """
        self.client = client
        self.products = products
        self.store = store
        self.settings = settings or EngineSettings()
        self.sleep = sleep

        self._tick_lock = threading.Lock()
        self._pause_requested = threading.Event()
        self._attributes: Optional[list[RemoteAttribute]] = None
        self._values: Optional[list[RemoteAttributeValue]] = None
        self._units: Optional[list[RemoteUnit]] = None
        self._templates: Optional[list[str]] = None
        self._executor: Optional[TaskExecutor] = None

        self.state = self._load_state()

    # --- State bookkeeping ---

    def _load_state(self) -> MigrationState:
        try:
            state = self.store.load()
        except StateVersionError as e:
            log.warning(f"Discarding persisted migration state: {e}")
            state = None

        if state is None:
            log.debug("No usable persisted state, starting a fresh session.")
            return MigrationState()

        if state.phase == MigrationPhase.ANALYZING:
            # Interrupted analysis leaves nothing worth keeping
            state.phase = MigrationPhase.IDLE
            state.tasks = []
            state.uom_conflicts = []
        log.info(
            f"Loaded migration session {state.id} in phase {state.phase.value} "
            f"({state.current_task_index}/{len(state.tasks)} tasks)."
        )
        return state

    def _persist(self) -> None:
        self.state.touch()
        self.store.save(self.state)

    def _log(
        self, level: LogLevel, message: str, details: Optional[Any] = None
    ) -> None:
        """Appends to the session log buffer, mirrors it and persists."""
        self.state.append_log(level, message, details, max_logs=self.settings.max_logs)
        _LOG_METHODS[level](message if details is None else f"{message} ({details})")
        self._persist()

    @property
    def template_policy(self) -> TemplatePolicy:
        return TemplatePolicy(self.settings.template_policy)

    # --- Remote metadata ---

    def _fetch_metadata(self) -> None:
        self._attributes = self.client.fetch_attributes()
        self._values = self.client.fetch_attribute_values()
        self._units = self.client.fetch_units()
        if self.template_policy == TemplatePolicy.SKIP:
            self._templates = self.client.fetch_template_names()
        self._executor = None

    def _ensure_metadata(self) -> None:
        if self._attributes is None or self._values is None or self._units is None:
            self._fetch_metadata()

    def _forget_metadata(self) -> None:
        self._attributes = self._values = self._units = self._templates = None
        self._executor = None

    def _get_executor(self) -> TaskExecutor:
        """Builds the executor, rebuilding the caches on first use.

        The cache starts from a fresh remote snapshot and is then seeded with
        the ids recorded by the successful tasks of the persisted plan.
        """
        if self._executor is None:
            self._ensure_metadata()
            cache = MetadataCache.from_remote(self._attributes or [], self._values or [])
            cache.seed_from_tasks(self.state.tasks)
            self._executor = TaskExecutor(
                self.client,
                cache,
                self.state.uom_conflicts,
                self._units or [],
                on_event=self._log,
                on_checkpoint=self._persist,
            )
        return self._executor

    # --- Analysis and resolution ---

    def run_analysis(self) -> MigrationPhase:
        """Fetches remote metadata, detects unit conflicts and builds the plan.

        Returns:
            The resulting phase: RESOLVING when conflicts need an operator
            decision, IDLE otherwise (with a plan unless the fetch failed).
        """
        if self.state.phase == MigrationPhase.MIGRATING:
            log.warning("Cannot analyze while a migration is running. Pause it first.")
            return self.state.phase

        state = self.state
        state.phase = MigrationPhase.ANALYZING
        state.tasks = []
        state.logs = []
        state.uom_conflicts = []
        state.progress = 0
        state.current_task_index = 0
        self._forget_metadata()
        self._persist()
        self._log(LogLevel.INFO, "Starting Analysis Phase...")

        try:
            self._log(LogLevel.INFO, "Fetching remote metadata...")
            self._fetch_metadata()
        except Exception as e:
            self._forget_metadata()
            state.phase = MigrationPhase.IDLE
            self._log(LogLevel.ERROR, f"Analysis Failed: {e}")
            return state.phase

        local_uoms = collect_uoms(self.products)
        conflicts = conflict_analyzer.analyze(local_uoms, self._units or [])
        if conflicts:
            state.uom_conflicts = conflicts
            state.phase = MigrationPhase.RESOLVING
            self._log(
                LogLevel.WARN,
                f"Found {len(conflicts)} UOM conflicts. User resolution required.",
                details=[c.local_uom for c in conflicts],
            )
            return state.phase

        self._build_plan()
        return state.phase

    def _build_plan(self) -> None:
        tasks = planner.build(
            self.products,
            self._attributes or [],
            self._values or [],
            existing_templates=self._templates,
            template_policy=self.template_policy,
        )
        self.state.tasks = tasks
        self.state.current_task_index = 0
        self.state.progress = 0
        self.state.phase = MigrationPhase.IDLE
        self._executor = None
        if tasks:
            self._log(LogLevel.INFO, f"Plan Built: {len(tasks)} tasks generated.")
        else:
            self._log(LogLevel.WARN, "Plan Built: nothing to migrate.")

    def _find_conflict(self, local_uom: str) -> UomConflict:
        for conflict in self.state.uom_conflicts:
            if conflict.local_uom == local_uom:
                return conflict
        raise ValueError(f"No unit conflict for '{local_uom}'.")

    def resolve_conflict(self, local_uom: str, unit_id: int) -> bool:
        """Maps one conflicting local unit to an existing remote unit."""
        if self.state.phase != MigrationPhase.RESOLVING:
            log.warning("There are no unit conflicts to resolve.")
            return False
        conflict = self._find_conflict(local_uom)
        conflict.resolved_odoo_id = int(unit_id)
        self._log(LogLevel.INFO, f"Mapped unit '{local_uom}' to remote unit {unit_id}.")
        return True

    def create_new_unit(self, local_uom: str) -> Optional[int]:
        """Creates the local unit remotely and uses it as the resolution.

        Raises:
            ValueError: If the unit is not one of the current conflicts.
            RemoteError: If the remote creation fails.
        """
        if self.state.phase != MigrationPhase.RESOLVING:
            log.warning("There are no unit conflicts to resolve.")
            return None
        conflict = self._find_conflict(local_uom)

        self._log(LogLevel.INFO, f"Creating new UOM remotely: {local_uom}...")
        try:
            unit_id = self.client.create_unit(local_uom)
        except Exception as e:
            self._log(LogLevel.ERROR, f"Failed to create UOM {local_uom}: {e}")
            raise

        if self._units is not None:
            self._units.append(RemoteUnit(id=unit_id, name=local_uom))
        conflict.resolved_odoo_id = unit_id
        self._log(LogLevel.SUCCESS, f"Created UOM: {local_uom}")
        return unit_id

    def finish_resolution(self) -> bool:
        """Builds the plan once every conflict is resolved.

        Returns:
            False, without any transition, while a conflict is unresolved.
        """
        if self.state.phase != MigrationPhase.RESOLVING:
            log.warning("Nothing to confirm: the migration is not resolving conflicts.")
            return False

        unresolved = self.state.unresolved_conflicts()
        if unresolved:
            names = ", ".join(c.local_uom for c in unresolved)
            self._log(
                LogLevel.WARN,
                f"Please resolve all UOM conflicts before proceeding ({names}).",
            )
            return False

        self._log(LogLevel.SUCCESS, "UOM Conflicts Resolved.")
        try:
            self._ensure_metadata()
        except Exception as e:
            self._log(LogLevel.ERROR, f"Could not fetch remote metadata: {e}")
            return False
        self._build_plan()
        return True

    # --- Execution ---

    def start_migration(self) -> bool:
        """Starts a ready plan, or resumes a paused one at the same task.

        A task that previously failed terminally gets a fresh retry budget.
        """
        state = self.state
        if state.phase == MigrationPhase.MIGRATING:
            self._log(LogLevel.INFO, "Resuming interrupted migration...")
            return True

        ready = state.phase == MigrationPhase.IDLE and state.has_plan
        if not ready and state.phase != MigrationPhase.PAUSED:
            log.warning(
                f"Cannot start a migration in phase {state.phase.value}"
                f"{'' if state.has_plan else ' without a plan'}."
            )
            return False

        resuming = state.phase == MigrationPhase.PAUSED
        if state.current_task_index < len(state.tasks):
            task = state.tasks[state.current_task_index]
            if task.status == TaskStatus.FAILED:
                task.status = TaskStatus.PENDING
                task.retries = 0
                task.error = None

        self._pause_requested.clear()
        state.phase = MigrationPhase.MIGRATING
        self._log(
            LogLevel.INFO,
            f"Migration {'resumed' if resuming else 'started'} at task "
            f"{state.current_task_index + 1}/{len(state.tasks)}.",
        )
        return True

    def pause_migration(self) -> bool:
        """Pauses a running migration.

        Safe to call while a task is in flight (from a signal handler or
        another thread): the task finishes and the worker loop then stops.
        """
        if self.state.phase != MigrationPhase.MIGRATING:
            return False
        if self._tick_lock.locked():
            self._pause_requested.set()
            return True
        self._apply_pause()
        return True

    def _apply_pause(self) -> None:
        self._pause_requested.clear()
        if self.state.phase == MigrationPhase.MIGRATING:
            self.state.phase = MigrationPhase.PAUSED
            self._log(LogLevel.WARN, "Migration Paused by User.")

    def tick(self) -> bool:
        """Advances the migration by one step.

        At most one tick runs at a time; a concurrent or re-entrant call
        returns immediately.

        Returns:
            True if the tick did any work.
        """
        if not self._tick_lock.acquire(blocking=False):
            log.debug("A tick is already in flight.")
            return False
        try:
            return self._tick()
        finally:
            self._tick_lock.release()

    def _tick(self) -> bool:
        state = self.state
        if state.phase != MigrationPhase.MIGRATING:
            return False

        if state.current_task_index >= len(state.tasks):
            self._finish()
            return True

        task = state.tasks[state.current_task_index]
        if task.status in (TaskStatus.SUCCESS, TaskStatus.SKIPPED):
            state.current_task_index += 1
            self._persist()
            return True

        self._log(LogLevel.INFO, f"Processing [{task.type.value}]: {task.name}...")
        try:
            self._get_executor().execute(task)
        except Exception as e:
            self._handle_failure(task, e)
            return True

        task.status = TaskStatus.SUCCESS
        task.error = None
        state.current_task_index += 1
        state.progress = math.floor(
            100 * state.current_task_index / len(state.tasks) + 0.5
        )
        self._persist()
        self.sleep(self.settings.throttle_delay)
        return True

    def _handle_failure(self, task: MigrationTask, error: Exception) -> None:
        message = getattr(error, "message", None) or str(error)
        retry = task.retries + 1
        if retry <= self.settings.max_retries:
            task.retries = retry
            self._log(
                LogLevel.WARN,
                f"Task failed. Retrying ({retry}/{self.settings.max_retries})...",
                details=message,
            )
            self.sleep(self.settings.base_retry_delay * retry)
            return

        task.status = TaskStatus.FAILED
        task.error = message
        self.state.phase = MigrationPhase.PAUSED
        self._log(LogLevel.ERROR, f"CRITICAL FAILURE on {task.name}: {message}")

    def _finish(self) -> None:
        self.state.phase = MigrationPhase.DONE
        self.state.progress = 100
        self._log(LogLevel.SUCCESS, "All tasks completed successfully!")
        try:
            self.client.refresh_catalog()
        except Exception as e:
            self._log(LogLevel.WARN, f"Catalog refresh after migration failed: {e}")

    def run(
        self, on_progress: Optional[Callable[[MigrationState], None]] = None
    ) -> MigrationPhase:
        """Worker loop: ticks until the migration is paused or done.

        Args:
            on_progress: Called with the state after every tick.

        Returns:
            The phase the loop stopped in.
        """
        while self.state.phase == MigrationPhase.MIGRATING:
            self.tick()
            if on_progress:
                on_progress(self.state)
            if self._pause_requested.is_set():
                self._apply_pause()
        return self.state.phase

    # --- Session management ---

    def reset_migration(self) -> MigrationState:
        """Discards the session (logs and progress included) and starts afresh."""
        self.store.clear()
        self._forget_metadata()
        self._pause_requested.clear()
        self.state = MigrationState()
        self._persist()
        log.info(f"Migration reset. New session {self.state.id}.")
        return self.state

    def export_logs(self, path: Union[str, Path]) -> int:
        """Writes the log buffer as a JSON list.

        Returns:
            The number of entries written.
        """
        entries = [entry.to_dict() for entry in self.state.logs]
        with open(path, "w", encoding="utf-8") as f:
            json.dump(entries, f, indent=2, ensure_ascii=False)
        log.info(f"Exported {len(entries)} log entries to {path}.")
        return len(entries)
