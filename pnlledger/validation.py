"""Advisory checks over a ledger before its results are trusted.

`validate()` never raises. It returns human-readable violations (an empty list
means the ledger is usable) in this order:

1. no participating entry at all (blocking, nothing else is checked)
2. entries with only one of price / quantity set
3. cumulative open margin exceeding the capital ceiling
4. closes requesting more than is currently held

The holdings walk here deliberately does not share code with the replay engine:
the replay caps over-sized closes silently, while this layer is responsible for
reporting them.
"""

from __future__ import annotations

from collections.abc import Sequence

from loguru import logger

from pnlledger.entry import EntryKind, PositionEntry
from pnlledger.numeric import exceeds

NO_ACTIVE_ENTRIES = "At least one valid entry is required (price and quantity must both be greater than 0)"


def validate(ledger: Sequence[PositionEntry], capital: float | None = None) -> list[str]:
    errors: list[str] = []

    if not any(e.participates for e in ledger):
        errors.append(NO_ACTIVE_ENTRIES)
        return errors

    for idx, entry in enumerate(ledger, start=1):
        if entry.enabled and (entry.price > 0) != (entry.quantity > 0):
            missing = "quantity" if entry.price > 0 else "price"
            errors.append(
                f"Entry {idx}: price and quantity must both be set or both be empty (missing {missing})"
            )

    holdings = 0.0
    usedCapital = 0.0
    position = 0

    for entry in ledger:
        if not entry.participates:
            continue

        # positions are numbered among participating entries only
        position += 1

        if entry.kind == EntryKind.OPEN:
            holdings += entry.quantity
            usedCapital += entry.margin

            if capital and capital > 0 and usedCapital > capital:
                excess = usedCapital - capital
                errors.append(
                    f"Entry {position} (open): cumulative margin {usedCapital:.2f} exceeds capital {capital:.2f} by {excess:.2f}"
                )

            continue

        deficit = entry.quantity - holdings
        if abs(deficit) < 0.001:
            logger.debug(
                "Close entry {} near holdings boundary: requested {} held {} deficit {}",
                position,
                entry.quantity,
                holdings,
                deficit,
            )

        if exceeds(entry.quantity, holdings):
            errors.append(
                f"Entry {position} (close): quantity {entry.quantity:.4f} exceeds holdings {holdings:.4f} by {deficit:.4f}"
            )

        holdings -= min(entry.quantity, holdings)

    return errors
