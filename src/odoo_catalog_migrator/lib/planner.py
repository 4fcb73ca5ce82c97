"""Migration plan builder.

Turns the local catalog and a snapshot of the remote metadata into an
ordered list of creation tasks: attributes first, then their values, then
templates. The executor relies on this order, since a value task needs its
attribute and a template task needs both.
"""

from collections.abc import Iterable
from typing import Optional

from ..enums import TaskStatus, TaskType, TemplatePolicy
from ..logging_config import log
from ..models import (
    LocalProduct,
    MigrationTask,
    RemoteAttribute,
    RemoteAttributeValue,
)
from .internal.tools import group_attribute_values, name_key


def attribute_task_id(attr_name: str) -> str:
    return f"attr_{attr_name}"


def value_task_id(attr_name: str, val_name: str) -> str:
    return f"val_{attr_name}_{val_name}"


def template_task_id(tmpl_name: str) -> str:
    return f"tmpl_{tmpl_name}"


def _group_templates(
    products: Iterable[LocalProduct],
) -> dict[str, list[LocalProduct]]:
    grouped: dict[str, list[LocalProduct]] = {}
    for product in products:
        grouped.setdefault(product.template_name, []).append(product)
    return grouped


def build(
    local_products: list[LocalProduct],
    remote_attributes: list[RemoteAttribute],
    remote_values: list[RemoteAttributeValue],
    existing_templates: Optional[Iterable[str]] = None,
    template_policy: TemplatePolicy = TemplatePolicy.CREATE,
) -> list[MigrationTask]:
    """Builds the dependency-ordered task plan.

    Attributes and values that already exist remotely are left out. Templates
    are emitted for every local template name; with the ``skip`` policy, the
    ones found in ``existing_templates`` are emitted already ``skipped``.

    Args:
        local_products: The local variants to migrate.
        remote_attributes: The attributes currently known remotely.
        remote_values: The attribute values currently known remotely.
        existing_templates: Remote template names, used by the skip policy.
        template_policy: What to do with templates that already exist.

    Returns:
        The attribute tasks, then the value tasks, then the template tasks.
    """
    attributes_by_key = {name_key(a.name): a for a in remote_attributes}
    value_keys = {(v.attribute_id, name_key(v.name)) for v in remote_values}

    attribute_tasks: list[MigrationTask] = []
    value_tasks: list[MigrationTask] = []
    for attr_name, values in group_attribute_values(local_products).items():
        existing = attributes_by_key.get(name_key(attr_name))
        if existing is None:
            attribute_tasks.append(
                MigrationTask(
                    id=attribute_task_id(attr_name),
                    type=TaskType.ATTRIBUTE,
                    name=attr_name,
                    data={"name": attr_name},
                )
            )

        for val_name in values:
            # A value of an attribute that does not exist yet cannot exist either
            if existing is not None and (existing.id, name_key(val_name)) in value_keys:
                continue
            value_tasks.append(
                MigrationTask(
                    id=value_task_id(attr_name, val_name),
                    type=TaskType.VALUE,
                    name=f"{attr_name}: {val_name}",
                    data={"attr_name": attr_name, "val_name": val_name},
                )
            )

    existing_template_keys = {name_key(n) for n in existing_templates or []}
    template_tasks: list[MigrationTask] = []
    for tmpl_name, variants in _group_templates(local_products).items():
        task = MigrationTask(
            id=template_task_id(tmpl_name),
            type=TaskType.TEMPLATE,
            name=tmpl_name,
            data={
                "tmpl_name": tmpl_name,
                "variants": [v.to_dict() for v in variants],
            },
        )
        if (
            template_policy == TemplatePolicy.SKIP
            and name_key(tmpl_name) in existing_template_keys
        ):
            task.status = TaskStatus.SKIPPED
            task.error = "Template already exists remotely."
        template_tasks.append(task)

    log.debug(
        f"Plan: {len(attribute_tasks)} attributes, {len(value_tasks)} values, "
        f"{len(template_tasks)} templates."
    )
    return attribute_tasks + value_tasks + template_tasks
