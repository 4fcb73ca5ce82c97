"""Tests for the local catalog loader."""

from pathlib import Path

import pytest

from odoo_catalog_migrator.catalog import collect_uoms, load_products
from odoo_catalog_migrator.models import ProductAttribute

CATALOG = """id;template_name;default_code;uom;price;standard_price;attributes;detailed_type;tracking;barcode;weight
1;Banner Roll;BR-110;m;25,50;10;Width:1.10m;product;lot;4006381333931;1.5
2;Banner Roll;BR-160;m;32;;Width:1.60m,Width:9m;;;;
3;Sticker;STK;Units;abc;;;gadget;none;;
"""


@pytest.fixture
def catalog_file(tmp_path: Path) -> str:
    path = tmp_path / "catalog.csv"
    path.write_text(CATALOG, encoding="utf-8")
    return str(path)


class TestLoadProducts:
    """Tests for load_products."""

    def test_rows_become_products(self, catalog_file: str) -> None:
        products = load_products(catalog_file)

        assert len(products) == 3
        first = products[0]
        assert first.id == "1"
        assert first.template_name == "Banner Roll"
        assert first.uom == "m"
        assert first.price == 25.5
        assert first.standard_price == 10.0
        assert first.attributes == [ProductAttribute("Width", "1.10m")]
        assert first.tracking == "lot"
        assert first.barcode == "4006381333931"
        assert first.weight == 1.5

    def test_duplicate_attribute_keeps_first_value(self, catalog_file: str) -> None:
        second = load_products(catalog_file)[1]

        assert second.attributes == [ProductAttribute("Width", "1.60m")]
        assert second.detailed_type == "product"
        assert second.barcode is None
        assert second.weight is None

    def test_invalid_values_fall_back(self, catalog_file: str) -> None:
        sticker = load_products(catalog_file)[2]

        assert sticker.price == 0.0
        assert sticker.detailed_type == "product"
        assert sticker.attributes == []

    def test_missing_required_column(self, tmp_path: Path) -> None:
        path = tmp_path / "catalog.csv"
        path.write_text("template_name;price\nMug;3\n", encoding="utf-8")

        with pytest.raises(ValueError, match="uom"):
            load_products(str(path))

    def test_empty_template_name(self, tmp_path: Path) -> None:
        path = tmp_path / "catalog.csv"
        path.write_text("template_name;uom\n;Units\n", encoding="utf-8")

        with pytest.raises(ValueError, match="Line 2"):
            load_products(str(path))

    def test_other_separator(self, tmp_path: Path) -> None:
        path = tmp_path / "catalog.csv"
        path.write_text('template_name,uom,attributes\nMug,Units,"Color:Red"\n', encoding="utf-8")

        products = load_products(str(path), separator=",")

        assert products[0].attributes == [ProductAttribute("Color", "Red")]
        assert products[0].id == "2"


def test_collect_uoms(catalog_file: str) -> None:
    assert collect_uoms(load_products(catalog_file)) == {"m", "Units"}
