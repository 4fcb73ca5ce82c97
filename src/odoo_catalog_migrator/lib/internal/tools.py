"""Internal odoo-catalog-migrator Tools.

This module provides low-level utility functions for name matching,
attribute parsing and transport-level retries, primarily used by the
remote clients and the planner.
"""

import time
from collections.abc import Iterable
from typing import Any, Callable, Optional, TypeVar

from ...logging_config import log
from ...models import LocalProduct

T = TypeVar("T")


def name_key(name: Any) -> str:
    """Returns the case-insensitive identity of a remote entity name."""
    if name is None:
        return ""
    return str(name).strip().lower()


def parse_attribute_pairs(value: Optional[str]) -> list[tuple[str, str]]:
    """Parses an attribute cell into ``(name, value)`` pairs.

    The cell has the form ``"Width:1.10m,Color:Red"``. Pairs without a colon
    are ignored. A repeated attribute name keeps its first value.

    Args:
        value: The raw cell content.

    Returns:
        An ordered list of unique ``(name, value)`` pairs.
    """
    if not value:
        return []

    pairs: list[tuple[str, str]] = []
    seen: set[str] = set()
    for chunk in str(value).split(","):
        if ":" not in chunk:
            continue
        name, _, val = chunk.partition(":")
        name, val = name.strip(), val.strip()
        if not name or not val or name_key(name) in seen:
            continue
        seen.add(name_key(name))
        pairs.append((name, val))
    return pairs


def group_attribute_values(products: Iterable[LocalProduct]) -> dict[str, list[str]]:
    """Maps each attribute name to its values, in order of discovery.

    Names and values are grouped case-insensitively, since the remote keeps
    them unique that way. The first spelling seen is the one kept.
    """
    grouped: dict[str, list[str]] = {}
    spelling: dict[str, str] = {}
    for product in products:
        for attribute in product.attributes:
            attr_name = spelling.setdefault(name_key(attribute.name), attribute.name)
            values = grouped.setdefault(attr_name, [])
            if name_key(attribute.value) not in {name_key(v) for v in values}:
                values.append(attribute.value)
    return grouped


def call_with_retry(
    func: Callable[[], T],
    is_transient: Callable[[Exception], Optional[float]],
    retries: int,
    sleep: Callable[[float], None] = time.sleep,
    description: str = "request",
) -> T:
    """Calls ``func``, retrying a bounded number of times on transient errors.

    Args:
        func: The zero-argument callable performing one attempt.
        is_transient: Returns the delay in seconds before the next attempt if
            the error is transient, or None if it must propagate.
        retries: How many extra attempts are allowed.
        sleep: The sleep function, injectable for tests.
        description: Used in log messages.

    Returns:
        The result of the first successful attempt.
    """
    attempts_left = retries
    while True:
        try:
            return func()
        except Exception as e:
            delay = is_transient(e)
            if delay is None or attempts_left <= 0:
                raise
            log.warning(
                f"Transient failure during {description}: {e}. "
                f"Retrying in {delay:.1f}s ({attempts_left} attempts left)..."
            )
            attempts_left -= 1
            sleep(delay)
