"""Task executor.

Performs the remote side effects of one migration task. It never retries:
every remote error propagates unchanged to the engine, which owns the
retry, backoff and pause policy.
"""

from typing import Any, Callable, Optional

from ..enums import LogLevel, TaskType
from ..logging_config import log
from ..models import (
    LocalProduct,
    MigrationTask,
    RemoteAttribute,
    RemoteAttributeValue,
    RemoteUnit,
    RemoteVariant,
    UomConflict,
)
from .cache import MetadataCache
from .client import CatalogClient
from .conflicts import resolve_unit_id
from .internal.exceptions import DependencyError, RemoteError
from .internal.tools import group_attribute_values

EventCallback = Callable[[LogLevel, str], None]

DEFAULT_CATEGORY_ID = 1
REJECTED_TYPE_MARKERS = ("wrong value", "selection", "not a valid")


def match_variant(
    remote: RemoteVariant, local_variants: list[LocalProduct]
) -> list[LocalProduct]:
    """Returns the local variants whose attribute values all appear in the
    remote variant's display name (case-insensitive substring match).
    """
    display_name = (remote.display_name or "").lower()
    return [
        local
        for local in local_variants
        if all(a.value.lower() in display_name for a in local.attributes)
    ]


class TaskExecutor:
    """Executes migration tasks against the remote catalog."""

    def __init__(
        self,
        client: CatalogClient,
        cache: MetadataCache,
        conflicts: list[UomConflict],
        units: list[RemoteUnit],
        on_event: Optional[EventCallback] = None,
        on_checkpoint: Optional[Callable[[], None]] = None,
    ) -> None:
        """Initializes the executor.

        Args:
            client: The remote catalog client.
            cache: Attributes and values known so far; updated in place.
            conflicts: The operator's unit resolutions.
            units: The remote units.
            on_event: Receives notable events for the migration log.
            on_checkpoint: Called once a template exists remotely, so the id
                recorded on the task is persisted before variants are patched.
        """
        self.client = client
        self.cache = cache
        self.conflicts = conflicts
        self.units = units
        self.on_event = on_event
        self.on_checkpoint = on_checkpoint

    def _emit(self, level: LogLevel, message: str) -> None:
        if self.on_event:
            self.on_event(level, message)
        else:
            log.info(message)

    def execute(self, task: MigrationTask) -> None:
        """Runs one task.

        Raises:
            RemoteError: If a remote call fails.
            DependencyError: If a prerequisite entity is missing from the cache.
        """
        if task.type == TaskType.ATTRIBUTE:
            self._execute_attribute(task)
        elif task.type == TaskType.VALUE:
            self._execute_value(task)
        elif task.type == TaskType.TEMPLATE:
            self._execute_template(task)
        else:
            raise ValueError(f"Unknown task type: {task.type}")

    def _execute_attribute(self, task: MigrationTask) -> None:
        name = task.data["name"]
        attribute_id = self.client.create_attribute(name)
        self.cache.add_attribute(RemoteAttribute(id=attribute_id, name=name))
        task.data["remote_id"] = attribute_id

    def _execute_value(self, task: MigrationTask) -> None:
        attr_name = task.data["attr_name"]
        val_name = task.data["val_name"]
        attribute = self.cache.find_attribute(attr_name)
        if attribute is None:
            raise DependencyError(
                f"Attribute {attr_name} not found (dependency failed)"
            )

        value_id = self.client.create_attribute_value(attribute.id, val_name)
        self.cache.add_value(
            RemoteAttributeValue(id=value_id, name=val_name, attribute_id=attribute.id)
        )
        task.data["remote_id"] = value_id
        task.data["attribute_id"] = attribute.id

    def build_attribute_lines(self, variants: list[LocalProduct]) -> list[Any]:
        """Builds the ``attribute_line_ids`` commands for a template.

        Attributes or values that cannot be resolved from the cache are left
        out; an attribute without any resolved value gets no line at all.
        """
        lines: list[Any] = []
        for attr_name, values in group_attribute_values(variants).items():
            attribute = self.cache.find_attribute(attr_name)
            if attribute is None:
                continue
            value_ids = []
            for val_name in values:
                value = self.cache.find_value(attribute.id, val_name)
                if value is not None:
                    value_ids.append(value.id)
            if value_ids:
                lines.append(
                    (0, 0, {"attribute_id": attribute.id, "value_ids": [(6, 0, value_ids)]})
                )
        return lines

    def build_template_values(
        self, tmpl_name: str, variants: list[LocalProduct]
    ) -> dict[str, Any]:
        base = variants[0]
        uom_id = resolve_unit_id(base.uom, self.conflicts, self.units)
        return {
            "name": tmpl_name,
            "detailed_type": base.detailed_type or "product",
            "uom_id": uom_id,
            "uom_po_id": uom_id,
            "list_price": base.price or 0,
            "standard_price": base.standard_price or 0,
            "attribute_line_ids": self.build_attribute_lines(variants),
            "tracking": base.tracking or "none",
            "sale_ok": True,
            "purchase_ok": True,
            "taxes_id": [(6, 0, [])],
            "categ_id": DEFAULT_CATEGORY_ID,
        }

    def _create_template(self, tmpl_name: str, values: dict[str, Any]) -> int:
        """Creates the template, downgrading a rejected storable type once.

        Servers without the inventory app reject ``detailed_type="product"``.
        In that case the template is created as a consumable instead.
        """
        try:
            return self.client.create_template(values)
        except RemoteError as e:
            message = e.message.lower()
            rejected = any(marker in message for marker in REJECTED_TYPE_MARKERS)
            if not rejected or values.get("detailed_type") != "product":
                raise
            self._emit(
                LogLevel.WARN,
                f"Remote rejected 'Storable' type for '{tmpl_name}'. "
                "Missing Inventory app? Creating it as 'Consumable' instead.",
            )
            downgraded = dict(values, detailed_type="consu", tracking="none")
            return self.client.create_template(downgraded)

    def _execute_template(self, task: MigrationTask) -> None:
        tmpl_name = task.data["tmpl_name"]
        variants = [LocalProduct.from_dict(v) for v in task.data["variants"]]
        if not variants:
            raise ValueError(f"Template task '{tmpl_name}' has no variants.")

        # A retry after a failure past creation must not create a second template
        template_id = task.data.get("remote_id")
        if template_id is None:
            values = self.build_template_values(tmpl_name, variants)
            template_id = self._create_template(tmpl_name, values)
            task.data["remote_id"] = template_id
            if self.on_checkpoint:
                self.on_checkpoint()
        else:
            log.info(f"Reusing template {template_id} created by an earlier attempt.")

        generated = self.client.wait_for_variants(template_id, len(variants))
        if len(generated) < len(variants):
            self._emit(
                LogLevel.WARN,
                f"Only {len(generated)} of {len(variants)} variants were generated "
                f"for '{tmpl_name}'.",
            )

        for remote in generated:
            matches = match_variant(remote, variants)
            if not matches:
                log.debug(f"No local variant matches '{remote.display_name}'.")
                continue
            if len(matches) > 1:
                self._emit(
                    LogLevel.WARN,
                    f"Variant '{remote.display_name}' matches {len(matches)} local "
                    f"variants; using '{matches[0].default_code}'.",
                )
            match = matches[0]
            self.client.update_variant(
                remote.id,
                {
                    "default_code": match.default_code,
                    "barcode": match.barcode,
                    "weight": float(match.weight or 0),
                    "standard_price": match.standard_price,
                },
            )
