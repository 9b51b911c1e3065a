from __future__ import annotations

from pnlledger.entry import Side

# Exchange liquidation clearance fee, as a fraction of position value
LIQUIDATION_FEE_RATE = 0.02


def liquidation_price(
    entryPrice: float,
    leverage: float,
    side: Side,
    feeRate: float = LIQUIDATION_FEE_RATE,
) -> float:
    """Estimate the price where a position opened at 'entryPrice' gets liquidated.

    Uses a flat maintenance margin rate of (1 / leverage - feeRate):
      - LONG liquidates BELOW entry: entryPrice * (1 - rate)
      - SHORT liquidates ABOVE entry: entryPrice * (1 + rate)

    Returns 0 when no estimate exists (non-positive inputs, or leverage so high
    the fee consumes the whole margin).
    """
    if leverage <= 0 or entryPrice <= 0:
        return 0.0

    maintenanceMarginRate = 1 / leverage - feeRate
    if maintenanceMarginRate <= 0:
        return 0.0

    if side == Side.LONG:
        return entryPrice * (1 - maintenanceMarginRate)

    return entryPrice * (1 + maintenanceMarginRate)
