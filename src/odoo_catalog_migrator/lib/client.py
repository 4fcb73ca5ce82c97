"""Remote Catalog Client.

This module defines the surface of the remote ERP catalog consumed by the
migration engine. Concrete clients only implement a few primitive calls
(read, create, write, call a method); everything built on top of them, such
as polling for generated variants, lives here.
"""

import time
from typing import Any, Callable, Optional

from ..logging_config import log
from ..models import (
    RemoteAttribute,
    RemoteAttributeValue,
    RemoteUnit,
    RemoteVariant,
)
from .internal.exceptions import RemoteError

ATTRIBUTE_MODEL = "product.attribute"
VALUE_MODEL = "product.attribute.value"
UNIT_MODEL = "uom.uom"
TEMPLATE_MODEL = "product.template"
VARIANT_MODEL = "product.product"

# Upper bound on the variants read when refreshing after a migration
REFRESH_LIMIT = 300

VARIANT_FIELDS = [
    "id",
    "product_template_attribute_value_ids",
    "default_code",
    "display_name",
]


def _m2o_id(value: Any) -> Optional[int]:
    """Extracts the id of a many2one value returned as ``[id, name]``."""
    if isinstance(value, (list, tuple)) and value:
        return int(value[0])
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def _local_to_remote_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """Maps the variant fields the engine patches onto remote field names."""
    values: dict[str, Any] = {}
    if fields.get("default_code") is not None:
        values["default_code"] = fields["default_code"]
    if fields.get("barcode"):
        values["barcode"] = fields["barcode"]
    if fields.get("weight") is not None:
        values["weight"] = fields["weight"]
    if fields.get("standard_price") is not None:
        values["standard_price"] = fields["standard_price"]
    return values


class CatalogClient:
    """Base class of the remote catalog clients.

    Subclasses implement ``_search_read``, ``_create``, ``_write`` and
    ``_call``. Each of them must raise :class:`RemoteError` on failure.
    """

    def __init__(self, sleep: Callable[[float], None] = time.sleep) -> None:
        self.sleep = sleep

    # --- Primitives ---

    def _search_read(
        self,
        model: str,
        domain: list[Any],
        fields: list[str],
        order: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        raise NotImplementedError

    def _create(self, model: str, values: dict[str, Any]) -> int:
        raise NotImplementedError

    def _write(self, model: str, record_id: int, values: dict[str, Any]) -> None:
        raise NotImplementedError

    def _call(
        self, model: str, method: str, ids: Optional[list[int]] = None
    ) -> Any:
        raise NotImplementedError

    def authenticate(self) -> None:
        """Establishes a session with the remote. No-op by default."""

    # --- Reads ---

    def fetch_attributes(self) -> list[RemoteAttribute]:
        records = self._search_read(
            ATTRIBUTE_MODEL, [], ["id", "name", "display_type"], "name asc"
        )
        return [RemoteAttribute(id=int(r["id"]), name=str(r["name"])) for r in records]

    def fetch_attribute_values(self) -> list[RemoteAttributeValue]:
        records = self._search_read(
            VALUE_MODEL, [], ["id", "name", "attribute_id"], "attribute_id asc, name asc"
        )
        values = []
        for r in records:
            attribute_id = _m2o_id(r.get("attribute_id"))
            if attribute_id is None:
                log.debug(f"Skipping attribute value {r.get('id')} without attribute.")
                continue
            values.append(
                RemoteAttributeValue(
                    id=int(r["id"]), name=str(r["name"]), attribute_id=attribute_id
                )
            )
        return values

    def fetch_units(self) -> list[RemoteUnit]:
        records = self._search_read(UNIT_MODEL, [], ["id", "name"], "id asc")
        return [RemoteUnit(id=int(r["id"]), name=str(r["name"])) for r in records]

    def fetch_template_names(self) -> list[str]:
        records = self._search_read(TEMPLATE_MODEL, [], ["id", "name"], "id asc")
        return [str(r["name"]) for r in records]

    def fetch_variants(self, template_id: int) -> list[RemoteVariant]:
        records = self._search_read(
            VARIANT_MODEL, [("product_tmpl_id", "=", template_id)], VARIANT_FIELDS
        )
        return [
            RemoteVariant(
                id=int(r["id"]),
                display_name=str(r.get("display_name") or ""),
                default_code=r.get("default_code") or None,
            )
            for r in records
        ]

    # --- Writes ---

    def create_attribute(self, name: str) -> int:
        return self._create(
            ATTRIBUTE_MODEL,
            {"name": name, "display_type": "select", "create_variant": "always"},
        )

    def create_attribute_value(self, attribute_id: int, name: str) -> int:
        return self._create(VALUE_MODEL, {"attribute_id": attribute_id, "name": name})

    def create_unit(self, name: str) -> int:
        """Creates a unit in the default "Unit" category."""
        return self._create(
            UNIT_MODEL,
            {"name": name, "category_id": 1, "uom_type": "smaller", "factor": 1.0},
        )

    def create_template(self, values: dict[str, Any]) -> int:
        """Creates a product template.

        Older servers do not know ``detailed_type``; when the server reports it
        as an invalid field the call is repeated once with ``type`` instead.
        """
        try:
            return self._create(TEMPLATE_MODEL, values)
        except RemoteError as e:
            message = e.message.lower()
            if "invalid field" in message and "detailed_type" in message:
                log.warning(
                    "Server does not support 'detailed_type', retrying with 'type'."
                )
                fallback = dict(values)
                fallback["type"] = fallback.pop("detailed_type", None)
                return self._create(TEMPLATE_MODEL, fallback)
            raise

    def update_variant(self, variant_id: int, fields: dict[str, Any]) -> None:
        """Patches the local-only fields of a generated variant."""
        self._write(VARIANT_MODEL, variant_id, _local_to_remote_fields(fields))

    def wait_for_variants(
        self, template_id: int, expected_count: int, max_attempts: int = 6
    ) -> list[RemoteVariant]:
        """Polls until the remote has generated the template's variants.

        Variant generation happens asynchronously after template creation.
        Gives up after ``max_attempts`` polls and returns whatever exists.

        Args:
            template_id: The id of the freshly created template.
            expected_count: The number of local variants of the template.
            max_attempts: How many polls to make before giving up.

        Returns:
            The variants currently known for the template, possibly fewer
            than expected.
        """
        for attempt in range(1, max_attempts + 1):
            variants = self.fetch_variants(template_id)
            if len(variants) >= expected_count:
                return variants
            self.sleep(0.5 * attempt)

        log.warning(f"Timeout waiting for variants of template {template_id}.")
        return self.fetch_variants(template_id)

    def refresh_catalog(self) -> None:
        """Re-reads the most recent saleable or purchasable variants.

        The records are only counted and logged to confirm that the catalog is
        reachable after a migration. Reads at most ``REFRESH_LIMIT`` rows.
        """
        records = self._search_read(
            VARIANT_MODEL,
            ["|", ("sale_ok", "=", True), ("purchase_ok", "=", True)],
            ["id", "display_name", "default_code"],
            "id desc",
            limit=REFRESH_LIMIT,
        )
        log.info(f"Remote catalog refreshed: {len(records)} variants available.")

    def check_system_health(self) -> dict[str, Any]:
        """Fetches the server's REST configuration and access-rights report."""
        report = self._call("res.company", "api_check_system_health", [1])
        if not isinstance(report, dict):
            raise RemoteError("Invalid health report received from server.")
        return report
