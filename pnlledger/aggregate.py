"""Ledger-wide PnL summary computed from list-level sums.

This is NOT the replay. Closes are priced against the blended open cost scaled
by the fraction of open quantity that was closed:

    ratio = totalCloseQty / totalOpenQty
    LONG:  pnl = totalCloseNotional - totalOpenNotional * ratio
    SHORT: pnl = totalOpenNotional * ratio - totalCloseNotional

For ledgers that interleave opens at different prices with partial closes, this
number can differ from the replay's final cumulativePnL (which books each close
against the average cost at that moment). Both are reported as-is.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from pnlledger.entry import EntryKind, PositionEntry, Side
from pnlledger.validation import validate


@dataclass(slots=True, frozen=True)
class PnLResult:
    totalPnL: float
    totalInvestment: float
    totalReturn: float

    # percent of committed margin
    roe: float

    totalMargin: float = 0.0
    returnRate: float = 0.0

    openEntries: tuple[PositionEntry, ...] = field(default=(), repr=False)
    closeEntries: tuple[PositionEntry, ...] = field(default=(), repr=False)


def aggregate(ledger: Sequence[PositionEntry], side: Side) -> PnLResult:
    active = [e for e in ledger if e.participates]
    openEntries = tuple(e for e in active if e.kind == EntryKind.OPEN)
    closeEntries = tuple(e for e in active if e.kind == EntryKind.CLOSE)

    totalOpenNotional = sum(e.price * e.quantity for e in openEntries)
    totalOpenQty = sum(e.quantity for e in openEntries)
    totalCloseNotional = sum(e.price * e.quantity for e in closeEntries)
    totalCloseQty = sum(e.quantity for e in closeEntries)

    quantityRatio = 0.0 if totalOpenQty == 0 else totalCloseQty / totalOpenQty

    if side == Side.LONG:
        totalPnL = totalCloseNotional - totalOpenNotional * quantityRatio
    else:
        totalPnL = totalOpenNotional * quantityRatio - totalCloseNotional

    totalMargin = sum(e.margin for e in openEntries)
    roe = totalPnL / totalMargin * 100 if totalMargin > 0 else 0.0

    return PnLResult(
        totalPnL=totalPnL,
        totalInvestment=totalOpenNotional,
        totalReturn=totalOpenNotional + totalPnL,
        roe=roe,
        totalMargin=totalMargin,
        returnRate=roe,
        openEntries=openEntries,
        closeEntries=closeEntries,
    )


def position_usage(ledger: Sequence[PositionEntry], capital: float) -> float:
    """Percent of 'capital' committed as margin by all active opens."""
    if capital <= 0:
        return 0.0

    totalMargin = sum(e.margin for e in ledger if e.participates and e.is_open)
    return totalMargin / capital * 100


def evaluate(
    ledger: Sequence[PositionEntry], side: Side, capital: float | None = None
) -> tuple[list[str], PnLResult | None]:
    """Validate then aggregate, the way the calculator gates its summary.

    Returns (errors, result). An untouched ledger (nothing active yet) reports
    neither errors nor a result. Any violation suppresses the result.
    """
    if not any(e.participates for e in ledger):
        return [], None

    if errors := validate(ledger, capital):
        return errors, None

    return [], aggregate(ledger, side)
