"""Tolerance-aware numeric helpers shared by every ledger computation.

All near-zero decisions in the package go through here so the tolerance
value lives in exactly one place.
"""

from __future__ import annotations

import math
import re
from typing import Final

# Residues smaller than this are floating point noise, not holdings.
EPSILON: Final = 1e-4

# Leading signed decimal inside a value that may carry a unit suffix ("1,200.5 USDT")
_VALUE_WITH_UNIT = re.compile(r"^\s*([-+]?\d*\.?\d+(?:[eE][-+]?\d+)?)")


def is_dust(val: float, eps: float = EPSILON) -> bool:
    """Return True if 'val' is close enough to zero to be treated as zero."""
    return abs(val) < eps


def clamp_dust(val: float, eps: float = EPSILON) -> float:
    """Snap near-zero values to exactly zero, leave everything else alone."""
    if is_dust(val, eps):
        return 0.0

    return val


def exceeds(requested: float, available: float, eps: float = EPSILON) -> bool:
    """True if 'requested' is larger than 'available' by more than the tolerance."""
    return requested > available + eps


def parse_numeric_input(value: str) -> float:
    """Convert raw form input to a number, returning 0 for empty or unparseable input."""
    if value in ("", "."):
        return 0.0

    try:
        num = float(value)
    except ValueError:
        return 0.0

    return num if math.isfinite(num) else 0.0


def parse_value_with_unit(value: str | float | int | None) -> float:
    """Parse numeric values which may arrive as strings with thousands separators or units.

    Examples:
        "1,200.5 USDT" -> 1200.5
        "0.25BTC" -> 0.25
        "n/a" -> 0.0
    """
    if value is None:
        return 0.0

    if isinstance(value, bool):
        return float(value)

    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else 0.0

    if not (found := _VALUE_WITH_UNIT.match(value.replace(",", ""))):
        return 0.0

    return parse_numeric_input(found.group(1))


def mn(val: float) -> str:
    """format numeric input as money"""
    return f"${val:,.2f}".replace("$-", "-$")
