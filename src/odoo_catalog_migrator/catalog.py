"""Local catalog loader.

Reads the local product catalog from a CSV file into ``LocalProduct``
records. Every column is read as text and converted here, so a stray value
in a numeric column does not abort the whole load.
"""

from collections.abc import Iterable
from typing import Any, Optional

import polars as pl

from .lib.internal.tools import parse_attribute_pairs
from .logging_config import log
from .models import LocalProduct, ProductAttribute

REQUIRED_COLUMNS = ("template_name", "uom")
DETAILED_TYPES = ("product", "service", "consu")
TRACKING_MODES = ("none", "lot", "serial")


def _to_float(value: Any, column: str, line: int) -> Optional[float]:
    if value is None or str(value).strip() == "":
        return None
    try:
        return float(str(value).replace(",", "."))
    except ValueError:
        log.warning(f"Line {line}: invalid number '{value}' in column '{column}'.")
        return None


def _choice(value: Any, choices: tuple[str, ...], default: str, line: int) -> str:
    text = str(value or "").strip().lower()
    if not text:
        return default
    if text not in choices:
        log.warning(f"Line {line}: unknown value '{value}', using '{default}'.")
        return default
    return text


def _row_to_product(row: dict[str, Any], line: int) -> LocalProduct:
    template_name = str(row.get("template_name") or "").strip()
    if not template_name:
        raise ValueError(f"Line {line}: 'template_name' is empty.")

    return LocalProduct(
        id=str(row.get("id") or line),
        template_name=template_name,
        default_code=str(row.get("default_code") or "").strip(),
        uom=str(row.get("uom") or "").strip() or "Units",
        price=_to_float(row.get("price"), "price", line) or 0.0,
        standard_price=_to_float(row.get("standard_price"), "standard_price", line)
        or 0.0,
        attributes=[
            ProductAttribute(name=name, value=value)
            for name, value in parse_attribute_pairs(row.get("attributes"))
        ],
        detailed_type=_choice(row.get("detailed_type"), DETAILED_TYPES, "product", line),
        tracking=_choice(row.get("tracking"), TRACKING_MODES, "none", line),
        barcode=str(row["barcode"]).strip() if row.get("barcode") else None,
        weight=_to_float(row.get("weight"), "weight", line),
    )


def load_products(
    filename: str, separator: str = ";", encoding: str = "utf8"
) -> list[LocalProduct]:
    """Reads the local catalog CSV.

    Args:
        filename: Path to the CSV file.
        separator: The CSV separator character.
        encoding: An encoding supported by polars (``utf8``, ``windows-1252``).

    Returns:
        The local variants, in file order.

    Raises:
        ValueError: If a required column is missing or a row has no template.
    """
    df = pl.read_csv(
        filename, separator=separator, infer_schema_length=0, encoding=encoding
    )
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(
            f"Catalog file '{filename}' is missing required columns: {', '.join(missing)}"
        )

    # Line numbers are 1-based and count the header
    products = [
        _row_to_product(row, line)
        for line, row in enumerate(df.iter_rows(named=True), start=2)
    ]
    log.info(f"Loaded {len(products)} local variants from {filename}.")
    return products


def collect_uoms(products: Iterable[LocalProduct]) -> set[str]:
    """Returns the distinct unit names used by the catalog."""
    return {p.uom for p in products}
