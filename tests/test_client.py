"""Tests for the shared catalog client logic."""

from unittest.mock import MagicMock

import pytest

from odoo_catalog_migrator.lib.client import (
    REFRESH_LIMIT,
    TEMPLATE_MODEL,
    VARIANT_MODEL,
    CatalogClient,
)
from odoo_catalog_migrator.lib.internal.exceptions import RemoteError
from odoo_catalog_migrator.models import (
    RemoteAttribute,
    RemoteAttributeValue,
    RemoteVariant,
)


@pytest.fixture
def client() -> CatalogClient:
    """A client whose primitives are mocks."""
    client = CatalogClient(sleep=MagicMock())
    client._search_read = MagicMock(return_value=[])
    client._create = MagicMock(return_value=10)
    client._write = MagicMock()
    client._call = MagicMock()
    return client


class TestReads:
    """Tests for record conversion."""

    def test_fetch_attributes(self, client: CatalogClient) -> None:
        client._search_read.return_value = [{"id": 1, "name": "Color", "display_type": "select"}]
        assert client.fetch_attributes() == [RemoteAttribute(id=1, name="Color")]

    def test_fetch_attribute_values_reads_many2one(self, client: CatalogClient) -> None:
        client._search_read.return_value = [
            {"id": 4, "name": "Red", "attribute_id": [1, "Color"]},
            {"id": 5, "name": "Blue", "attribute_id": 1},
            {"id": 6, "name": "Orphan", "attribute_id": False},
        ]

        assert client.fetch_attribute_values() == [
            RemoteAttributeValue(id=4, name="Red", attribute_id=1),
            RemoteAttributeValue(id=5, name="Blue", attribute_id=1),
        ]

    def test_fetch_variants_filters_by_template(self, client: CatalogClient) -> None:
        client._search_read.return_value = [
            {"id": 7, "display_name": "Mug (Red)", "default_code": False}
        ]

        assert client.fetch_variants(3) == [
            RemoteVariant(id=7, display_name="Mug (Red)", default_code=None)
        ]
        model, domain = client._search_read.call_args[0][:2]
        assert model == VARIANT_MODEL
        assert domain == [("product_tmpl_id", "=", 3)]


class TestWrites:
    """Tests for create and update helpers."""

    def test_create_attribute_payload(self, client: CatalogClient) -> None:
        assert client.create_attribute("Width") == 10
        client._create.assert_called_once_with(
            "product.attribute",
            {"name": "Width", "display_type": "select", "create_variant": "always"},
        )

    def test_create_unit_payload(self, client: CatalogClient) -> None:
        client.create_unit("rolls")
        client._create.assert_called_once_with(
            "uom.uom",
            {"name": "rolls", "category_id": 1, "uom_type": "smaller", "factor": 1.0},
        )

    def test_create_template_falls_back_to_type(self, client: CatalogClient) -> None:
        client._create.side_effect = [
            RemoteError("Invalid field 'detailed_type' on model 'product.template'"),
            12,
        ]

        assert client.create_template({"name": "Mug", "detailed_type": "consu"}) == 12

        fallback = client._create.call_args_list[1][0]
        assert fallback == (TEMPLATE_MODEL, {"name": "Mug", "type": "consu"})

    def test_create_template_other_errors_propagate(self, client: CatalogClient) -> None:
        client._create.side_effect = RemoteError("Access denied")

        with pytest.raises(RemoteError):
            client.create_template({"name": "Mug", "detailed_type": "consu"})
        assert client._create.call_count == 1

    def test_update_variant_omits_empty_barcode(self, client: CatalogClient) -> None:
        client.update_variant(
            5, {"default_code": "MUG-R", "barcode": None, "weight": 0.0, "standard_price": 3.0}
        )
        client._write.assert_called_once_with(
            VARIANT_MODEL, 5, {"default_code": "MUG-R", "weight": 0.0, "standard_price": 3.0}
        )


class TestWaitForVariants:
    """Tests for the variant polling."""

    def test_returns_as_soon_as_enough_variants_exist(self, client: CatalogClient) -> None:
        first = [{"id": 1, "display_name": "Mug (Red)"}]
        both = first + [{"id": 2, "display_name": "Mug (Blue)"}]
        client._search_read.side_effect = [[], first, both]

        variants = client.wait_for_variants(3, 2)

        assert [v.id for v in variants] == [1, 2]
        assert [c[0][0] for c in client.sleep.call_args_list] == [0.5, 1.0]

    def test_gives_up_and_returns_what_exists(self, client: CatalogClient) -> None:
        client._search_read.return_value = [{"id": 1, "display_name": "Mug (Red)"}]

        variants = client.wait_for_variants(3, 2, max_attempts=3)

        assert len(variants) == 1
        assert client.sleep.call_count == 3
        assert client._search_read.call_count == 4


class TestHealth:
    """Tests for the health report call."""

    def test_report_must_be_a_dict(self, client: CatalogClient) -> None:
        client._call.return_value = "oops"
        with pytest.raises(RemoteError):
            client.check_system_health()

    def test_report(self, client: CatalogClient) -> None:
        client._call.return_value = {"model_access": {}}
        assert client.check_system_health() == {"model_access": {}}
        client._call.assert_called_once_with("res.company", "api_check_system_health", [1])


class TestRefreshCatalog:
    """Tests for the post-migration catalog refresh."""

    def test_read_is_bounded(self, client: CatalogClient) -> None:
        client._search_read.return_value = [{"id": 1}, {"id": 2}]

        client.refresh_catalog()

        model = client._search_read.call_args[0][0]
        assert model == VARIANT_MODEL
        assert client._search_read.call_args[1]["limit"] == REFRESH_LIMIT
        assert REFRESH_LIMIT == 300
