"""Enumerations shared by the migration engine and its persisted state."""

from enum import Enum


class MigrationPhase(str, Enum):
    """Coarse-grained state of the migration state machine."""

    IDLE = "IDLE"
    ANALYZING = "ANALYZING"
    RESOLVING = "RESOLVING"
    MIGRATING = "MIGRATING"
    PAUSED = "PAUSED"
    DONE = "DONE"


class TaskType(str, Enum):
    """Kind of remote entity a migration task creates."""

    ATTRIBUTE = "attribute"
    VALUE = "value"
    TEMPLATE = "template"


class TaskStatus(str, Enum):
    """Per-task outcome."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class LogLevel(str, Enum):
    """Severity of an entry in the migration log buffer."""

    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    SUCCESS = "success"


class TemplatePolicy(str, Enum):
    """What the planner does with templates that already exist remotely."""

    CREATE = "create"
    SKIP = "skip"
