"""Data model of the migration engine.

Local products are read-only input. Remote records mirror the handful of
fields the engine touches on the ERP side. ``MigrationState`` is the aggregate
that is persisted in full after every mutation.
"""

import time
import uuid
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from .enums import LogLevel, MigrationPhase, TaskStatus, TaskType


@dataclass(frozen=True)
class ProductAttribute:
    """One ``name: value`` pair on a local variant."""

    name: str
    value: str


@dataclass
class LocalProduct:
    """A variant of the local catalog."""

    id: str
    template_name: str
    default_code: str = ""
    uom: str = "Units"
    price: float = 0.0
    standard_price: float = 0.0
    attributes: list[ProductAttribute] = field(default_factory=list)
    detailed_type: str = "product"
    tracking: str = "none"
    barcode: Optional[str] = None
    weight: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        """Returns a JSON-serializable representation."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LocalProduct":
        """Builds a product from the output of :meth:`to_dict`."""
        values = dict(data)
        values["attributes"] = [
            ProductAttribute(name=a["name"], value=a["value"])
            for a in values.get("attributes") or []
        ]
        return cls(**values)


@dataclass(frozen=True)
class RemoteAttribute:
    id: int
    name: str


@dataclass(frozen=True)
class RemoteAttributeValue:
    id: int
    name: str
    attribute_id: int


@dataclass(frozen=True)
class RemoteUnit:
    id: int
    name: str


@dataclass(frozen=True)
class RemoteVariant:
    """A product variant generated remotely from a template."""

    id: int
    display_name: str
    default_code: Optional[str] = None


@dataclass
class UomConflict:
    """A local unit with no remote counterpart.

    ``resolved_odoo_id`` stays None until the operator maps the unit to an
    existing remote unit or creates a new one.
    """

    local_uom: str
    resolved_odoo_id: Optional[int] = None

    @property
    def is_resolved(self) -> bool:
        return self.resolved_odoo_id is not None


@dataclass
class MigrationTask:
    """One idempotent unit of remote-creation work."""

    id: str
    type: TaskType
    name: str
    data: dict[str, Any]
    status: TaskStatus = TaskStatus.PENDING
    error: Optional[str] = None
    retries: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "name": self.name,
            "data": self.data,
            "status": self.status.value,
            "error": self.error,
            "retries": self.retries,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MigrationTask":
        return cls(
            id=str(data["id"]),
            type=TaskType(data["type"]),
            name=str(data["name"]),
            data=dict(data.get("data") or {}),
            status=TaskStatus(data.get("status", TaskStatus.PENDING.value)),
            error=data.get("error"),
            retries=int(data.get("retries", 0)),
        )


@dataclass
class MigrationLog:
    timestamp: float
    level: LogLevel
    message: str
    details: Optional[Any] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "level": self.level.value,
            "message": self.message,
            "details": self.details,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MigrationLog":
        return cls(
            timestamp=float(data["timestamp"]),
            level=LogLevel(data["level"]),
            message=str(data["message"]),
            details=data.get("details"),
        )


@dataclass
class MigrationState:
    """The persisted aggregate of one migration session."""

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    phase: MigrationPhase = MigrationPhase.IDLE
    progress: int = 0
    uom_conflicts: list[UomConflict] = field(default_factory=list)
    tasks: list[MigrationTask] = field(default_factory=list)
    logs: list[MigrationLog] = field(default_factory=list)
    current_task_index: int = 0
    last_updated: float = field(default_factory=time.time)

    @property
    def has_plan(self) -> bool:
        """True when IDLE means "plan ready" rather than "nothing done yet"."""
        return bool(self.tasks)

    def unresolved_conflicts(self) -> list[UomConflict]:
        return [c for c in self.uom_conflicts if not c.is_resolved]

    def failed_tasks(self) -> list[MigrationTask]:
        return [t for t in self.tasks if t.status == TaskStatus.FAILED]

    def append_log(
        self,
        level: LogLevel,
        message: str,
        details: Optional[Any] = None,
        max_logs: int = 500,
    ) -> MigrationLog:
        """Appends a log entry, dropping the oldest ones beyond ``max_logs``."""
        entry = MigrationLog(
            timestamp=time.time(), level=level, message=message, details=details
        )
        self.logs.append(entry)
        if len(self.logs) > max_logs:
            del self.logs[: len(self.logs) - max_logs]
        return entry

    def touch(self) -> None:
        self.last_updated = time.time()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "phase": self.phase.value,
            "progress": self.progress,
            "uom_conflicts": [asdict(c) for c in self.uom_conflicts],
            "tasks": [t.to_dict() for t in self.tasks],
            "logs": [entry.to_dict() for entry in self.logs],
            "current_task_index": self.current_task_index,
            "last_updated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MigrationState":
        """Rebuilds a state from :meth:`to_dict` output.

        Raises:
            KeyError, TypeError, ValueError: If the payload has the wrong shape.
        """
        return cls(
            id=str(data["id"]),
            phase=MigrationPhase(data["phase"]),
            progress=int(data["progress"]),
            uom_conflicts=[
                UomConflict(
                    local_uom=str(c["local_uom"]),
                    resolved_odoo_id=c.get("resolved_odoo_id"),
                )
                for c in data["uom_conflicts"]
            ],
            tasks=[MigrationTask.from_dict(t) for t in data["tasks"]],
            logs=[MigrationLog.from_dict(entry) for entry in data["logs"]],
            current_task_index=int(data["current_task_index"]),
            last_updated=float(data["last_updated"]),
        )
