"""Shared fixtures: an in-memory remote catalog and catalog builders."""

import itertools
from typing import Any, Optional

import pytest

from odoo_catalog_migrator.lib.client import (
    ATTRIBUTE_MODEL,
    TEMPLATE_MODEL,
    UNIT_MODEL,
    VALUE_MODEL,
    VARIANT_MODEL,
    CatalogClient,
)
from odoo_catalog_migrator.lib.conf_lib import EngineSettings
from odoo_catalog_migrator.lib.internal.exceptions import RemoteError
from odoo_catalog_migrator.lib.state_store import StateStore
from odoo_catalog_migrator.models import LocalProduct, ProductAttribute


class FakeCatalogClient(CatalogClient):
    """A remote catalog held in dictionaries.

    Creating a template generates one variant per combination of its
    attribute line values, named like ``"Banner Roll (1.10m)"``. Errors queued
    in ``create_errors[model]`` are raised by the next creates on that model.
    """

    def __init__(self, units: Optional[list[tuple[int, str]]] = None) -> None:
        super().__init__(sleep=lambda seconds: None)
        self.records: dict[str, dict[int, dict[str, Any]]] = {
            ATTRIBUTE_MODEL: {},
            VALUE_MODEL: {},
            UNIT_MODEL: {},
            TEMPLATE_MODEL: {},
            VARIANT_MODEL: {},
        }
        self.create_errors: dict[str, list[Exception]] = {}
        self.read_errors: list[Exception] = []
        self.created: list[tuple[str, dict[str, Any]]] = []
        self.written: list[tuple[str, int, dict[str, Any]]] = []
        self.refresh_calls = 0
        self.health_report: Any = {"error": "not available"}
        self._next_id = 100
        for unit_id, name in units if units is not None else [(1, "Units")]:
            self.records[UNIT_MODEL][unit_id] = {"id": unit_id, "name": name}

    def add_attribute(self, attribute_id: int, name: str) -> None:
        self.records[ATTRIBUTE_MODEL][attribute_id] = {"id": attribute_id, "name": name}

    def add_value(self, value_id: int, attribute_id: int, name: str) -> None:
        self.records[VALUE_MODEL][value_id] = {
            "id": value_id,
            "name": name,
            "attribute_id": [attribute_id, "attr"],
        }

    def records_of(self, model: str) -> list[dict[str, Any]]:
        return list(self.records[model].values())

    def _search_read(
        self,
        model: str,
        domain: list[Any],
        fields: list[str],
        order: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        if self.read_errors:
            raise self.read_errors.pop(0)
        records = self.records_of(model)
        for term in domain:
            if isinstance(term, tuple) and term[0] == "product_tmpl_id":
                records = [r for r in records if r["product_tmpl_id"] == term[2]]
        if limit:
            records = records[:limit]
        return [dict(r) for r in records]

    def _create(self, model: str, values: dict[str, Any]) -> int:
        errors = self.create_errors.get(model)
        if errors:
            raise errors.pop(0)
        self._next_id += 1
        record_id = self._next_id
        self.created.append((model, values))
        self.records[model][record_id] = dict(values, id=record_id)
        if model == TEMPLATE_MODEL:
            self._generate_variants(record_id, values)
        return record_id

    def _generate_variants(self, template_id: int, values: dict[str, Any]) -> None:
        value_names = []
        for _, _, line in values.get("attribute_line_ids", []):
            ids = line["value_ids"][0][2]
            value_names.append([self.records[VALUE_MODEL][i]["name"] for i in ids])
        for combination in itertools.product(*value_names):
            self._next_id += 1
            suffix = f" ({', '.join(combination)})" if combination else ""
            self.records[VARIANT_MODEL][self._next_id] = {
                "id": self._next_id,
                "product_tmpl_id": template_id,
                "display_name": f"{values['name']}{suffix}",
                "default_code": False,
            }

    def _write(self, model: str, record_id: int, values: dict[str, Any]) -> None:
        self.written.append((model, record_id, values))
        self.records[model][record_id].update(values)

    def _call(self, model: str, method: str, ids: Optional[list[int]] = None) -> Any:
        if isinstance(self.health_report, Exception):
            raise self.health_report
        return self.health_report

    def refresh_catalog(self) -> None:
        self.refresh_calls += 1
        super().refresh_catalog()


def make_product(
    template_name: str,
    default_code: str,
    uom: str = "Units",
    attributes: Optional[list[tuple[str, str]]] = None,
    **kwargs: Any,
) -> LocalProduct:
    return LocalProduct(
        id=default_code,
        template_name=template_name,
        default_code=default_code,
        uom=uom,
        attributes=[ProductAttribute(n, v) for n, v in attributes or []],
        **kwargs,
    )


def banner_roll(uom: str = "m") -> list[LocalProduct]:
    """The two-variant "Banner Roll" catalog."""
    return [
        make_product("Banner Roll", "BR-110", uom, [("Width", "1.10m")], price=25.0),
        make_product("Banner Roll", "BR-160", uom, [("Width", "1.60m")], price=32.0),
    ]


@pytest.fixture
def fake_client() -> FakeCatalogClient:
    """A remote with the default unit and a meter unit."""
    return FakeCatalogClient(units=[(1, "Units"), (2, "m")])


@pytest.fixture
def store(tmp_path) -> StateStore:
    return StateStore(tmp_path / "state.json")


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings(throttle_delay=0.2, base_retry_delay=1.0, max_retries=3)


@pytest.fixture
def remote_error() -> RemoteError:
    return RemoteError("Server unavailable")
