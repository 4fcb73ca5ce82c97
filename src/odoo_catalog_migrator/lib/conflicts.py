"""Unit-of-measure conflict analysis.

Compares the units used by the local catalog against the remote unit list.
A local unit is only considered matched on an exact, case-insensitive name
match or a hit in the small synonym table below. Anything else needs an
operator decision, since a wrong unit corrupts pricing and stock downstream.
"""

from collections.abc import Iterable
from typing import Optional

from ..logging_config import log
from ..models import RemoteUnit, UomConflict
from .internal.tools import name_key

DEFAULT_UNIT_ID = 1

# local unit name -> fragment that must appear in the remote unit name
UNIT_SYNONYMS: dict[str, str] = {
    "piece": "unit",
    "unit": "unit",
}


def _exact_match(local_uom: str, remote_units: list[RemoteUnit]) -> Optional[RemoteUnit]:
    key = name_key(local_uom)
    return next((u for u in remote_units if name_key(u.name) == key), None)


def _heuristic_match(
    local_uom: str, remote_units: list[RemoteUnit]
) -> Optional[RemoteUnit]:
    fragment = UNIT_SYNONYMS.get(name_key(local_uom))
    if not fragment:
        return None
    return next((u for u in remote_units if fragment in name_key(u.name)), None)


def analyze(
    local_uoms: Iterable[str], remote_units: list[RemoteUnit]
) -> list[UomConflict]:
    """Finds the local units that have no remote counterpart.

    Args:
        local_uoms: The distinct unit names used by the local catalog.
        remote_units: The units known to the remote catalog.

    Returns:
        One unresolved conflict per unmatched local unit, sorted by name.
    """
    conflicts = []
    for local_uom in sorted(set(local_uoms)):
        if _exact_match(local_uom, remote_units):
            continue
        heuristic = _heuristic_match(local_uom, remote_units)
        if heuristic:
            log.debug(f"Unit '{local_uom}' matched to '{heuristic.name}' by synonym.")
            continue
        conflicts.append(UomConflict(local_uom=local_uom, resolved_odoo_id=None))
    return conflicts


def resolve_unit_id(
    local_uom: str, conflicts: list[UomConflict], remote_units: list[RemoteUnit]
) -> int:
    """Picks the remote unit id to use for a local unit.

    An explicit operator resolution wins, then an exact name match. Anything
    else, including units that only matched by synonym during analysis, falls
    back to the remote default unit.
    """
    for conflict in conflicts:
        if conflict.local_uom == local_uom and conflict.resolved_odoo_id is not None:
            return conflict.resolved_odoo_id

    unit = _exact_match(local_uom, remote_units)
    if unit:
        return unit.id
    return DEFAULT_UNIT_ID
