"""Sequential replay of a ledger into per-entry position snapshots.

The replay is a left fold: a RunningState starts empty and every entry produces
the next RunningState plus one PositionStat describing the position right after
that entry.

CLOSE ACCOUNTING:
================

Closes are booked against the weighted average cost at the time of the close:

    avg = totalCost / currentQuantity  (or the close price if nothing is held)
    executed = min(requested, currentQuantity)
    pnl += (price - avg) * executed * side.sign
    totalCost -= avg * executed

Margin is released in proportion to the open quantity the close retires:

    released = totalOpenMargin * executed / totalOpenQuantity

A close asking for more than is held is capped without complaint. Reporting
that is the validation layer's job.

Example (LONG):
    OPEN 10 @ 100, margin 100 -> holdings 10, avg 100, used margin 100
    CLOSE 4 @ 120             -> holdings 6, avg 100, pnl 80, used margin 60
    CLOSE 6 @ 90              -> holdings 0, avg None, pnl 20, used margin 0
"""

from __future__ import annotations

import dataclasses
from collections.abc import Sequence
from dataclasses import dataclass

from pnlledger.config import Settings, current_settings
from pnlledger.entry import EntryId, EntryKind, PositionEntry, Side
from pnlledger.liquidation import liquidation_price
from pnlledger.numeric import clamp_dust


@dataclass(slots=True, frozen=True)
class RunningState:
    """Everything the replay carries from one entry to the next."""

    currentQuantity: float = 0.0

    # cost basis of current holdings
    totalCost: float = 0.0

    cumulativePnL: float = 0.0
    usedMargin: float = 0.0

    # open quantity/margin not yet retired by closes, for proportional release
    totalOpenQuantity: float = 0.0
    totalOpenMargin: float = 0.0

    # price of the previous active entry (for per-step volatility only)
    lastPrice: float | None = None

    @property
    def average_price(self) -> float | None:
        if self.currentQuantity > 0:
            return self.totalCost / self.currentQuantity

        return None

    def open(self, entry: PositionEntry) -> RunningState:
        return dataclasses.replace(
            self,
            totalCost=self.totalCost + entry.price * entry.quantity,
            currentQuantity=self.currentQuantity + entry.quantity,
            usedMargin=self.usedMargin + entry.margin,
            totalOpenQuantity=self.totalOpenQuantity + entry.quantity,
            totalOpenMargin=self.totalOpenMargin + entry.margin,
            lastPrice=entry.price,
        )

    def close(self, entry: PositionEntry, side: Side) -> RunningState:
        avg = self.average_price
        if avg is None:
            avg = entry.price

        executed = min(entry.quantity, self.currentQuantity)
        if executed <= 0:
            return dataclasses.replace(self, lastPrice=entry.price)

        released = 0.0
        if self.totalOpenQuantity > 0:
            released = self.totalOpenMargin * (executed / self.totalOpenQuantity)

        return dataclasses.replace(
            self,
            cumulativePnL=self.cumulativePnL
            + (entry.price - avg) * executed * side.sign,
            totalCost=self.totalCost - avg * executed,
            currentQuantity=self.currentQuantity - executed,
            usedMargin=self.usedMargin - released,
            totalOpenQuantity=self.totalOpenQuantity - executed,
            totalOpenMargin=self.totalOpenMargin - released,
            lastPrice=entry.price,
        )

    def settled(self) -> RunningState:
        """Drop floating point residue left behind by closes."""
        currentQuantity = clamp_dust(self.currentQuantity)
        return dataclasses.replace(
            self,
            currentQuantity=currentQuantity,
            # nothing held means no cost basis either
            totalCost=self.totalCost if currentQuantity else 0.0,
            totalOpenQuantity=clamp_dust(self.totalOpenQuantity),
            totalOpenMargin=clamp_dust(self.totalOpenMargin),
            usedMargin=clamp_dust(self.usedMargin),
        )


@dataclass(slots=True, frozen=True)
class PositionStat:
    """Position snapshot immediately after one ledger entry.

    holdings: SIGNED (negative for short ledgers)
    averagePrice: None when nothing is held
    liquidationPrice: only set for active opens
    priceVolatility: percent move against the previous active entry's price
    """

    holdings: float
    averagePrice: float | None
    cumulativePnL: float
    isActive: bool
    usedMargin: float
    marginUsageRatio: float
    liquidationPrice: float | None = None
    priceVolatility: float | None = None

    # current holdings valued at this entry's price
    positionValue: float = 0.0


# skipped entries report nothing about the position
INACTIVE = PositionStat(
    holdings=0.0,
    averagePrice=None,
    cumulativePnL=0.0,
    isActive=False,
    usedMargin=0.0,
    marginUsageRatio=0.0,
)


def _stat(
    state: RunningState,
    side: Side,
    capital: float | None,
    price: float,
    liquidationPrice: float | None = None,
    priceVolatility: float | None = None,
) -> PositionStat:
    return PositionStat(
        holdings=side.sign * state.currentQuantity if state.currentQuantity else 0.0,
        averagePrice=state.average_price,
        cumulativePnL=state.cumulativePnL,
        isActive=True,
        usedMargin=state.usedMargin,
        marginUsageRatio=state.usedMargin / capital if capital and capital > 0 else 0.0,
        liquidationPrice=liquidationPrice,
        priceVolatility=priceVolatility,
        positionValue=abs(state.currentQuantity) * price,
    )


def step(
    state: RunningState,
    entry: PositionEntry,
    side: Side,
    capital: float | None = 0.0,
    leverage: float | None = None,
    feeRate: float | None = None,
    settings: Settings | None = None,
) -> tuple[RunningState, PositionStat]:
    """Advance the replay by one entry.

    'leverage' and 'feeRate' default to the configured settings
    (current_settings() unless 'settings' is given).
    """
    if not entry.participates:
        return state, INACTIVE

    if leverage is None or feeRate is None:
        settings = settings or current_settings()
        leverage = settings.default_leverage if leverage is None else leverage
        feeRate = settings.liquidation_fee_rate if feeRate is None else feeRate

    priceVolatility = None
    if state.lastPrice is not None and state.lastPrice > 0:
        priceVolatility = (entry.price - state.lastPrice) / state.lastPrice * 100

    liquidationPrice = None
    if entry.kind == EntryKind.OPEN:
        state = state.open(entry)
        liquidationPrice = liquidation_price(entry.price, leverage, side, feeRate)
    else:
        state = state.close(entry, side)

    state = state.settled()

    return state, _stat(
        state,
        side,
        capital,
        entry.price,
        liquidationPrice=liquidationPrice,
        priceVolatility=priceVolatility,
    )


def replay(
    ledger: Sequence[PositionEntry],
    side: Side,
    capital: float | None = 0.0,
    leverage: float | None = None,
    feeRate: float | None = None,
    settings: Settings | None = None,
) -> dict[EntryId, PositionStat]:
    """Replay the whole ledger, returning a snapshot for every entry keyed by entry id.

    The result preserves ledger order. Invalid ledgers still produce a result;
    gate on `validate()` before trusting it. A 'capital' of None or 0 means no
    ceiling and reports a margin usage ratio of 0.
    """
    settings = settings or current_settings()
    if leverage is None:
        leverage = settings.default_leverage
    if feeRate is None:
        feeRate = settings.liquidation_fee_rate

    stats: dict[EntryId, PositionStat] = {}
    state = RunningState()
    for entry in ledger:
        state, stats[entry.id] = step(state, entry, side, capital, leverage, feeRate)

    return stats


def final_state(
    ledger: Sequence[PositionEntry],
    side: Side,
    leverage: float | None = None,
    settings: Settings | None = None,
) -> RunningState:
    """Running state after the last entry (useful for checking conservation rules)."""
    settings = settings or current_settings()
    if leverage is None:
        leverage = settings.default_leverage

    state = RunningState()
    for entry in ledger:
        state, _ = step(
            state, entry, side, leverage=leverage, feeRate=settings.liquidation_fee_rate
        )

    return state
