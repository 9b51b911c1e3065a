"""Human-readable views over replay and aggregate output."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

import pandas as pd  # type: ignore

from pnlledger.aggregate import PnLResult
from pnlledger.entry import EntryId, PositionEntry
from pnlledger.numeric import mn
from pnlledger.replay import PositionStat

HEADERS = [
    "#",
    "Type",
    "Price",
    "Qty",
    "Holdings",
    "Avg Price",
    "PnL",
    "Margin",
    "Usage",
    "Liq Price",
]


def _opt(val: float | None, fmt: str = ",.2f") -> str:
    return "-" if val is None else f"{val:{fmt}}"


def ledger_table(
    ledger: Sequence[PositionEntry], stats: Mapping[EntryId, PositionStat]
) -> str:
    """Generate a formatted table with one row per ledger entry."""
    if not ledger:
        return "No entries."

    col_widths = [len(h) for h in HEADERS]

    rows = []
    for idx, entry in enumerate(ledger, start=1):
        stat = stats[entry.id]
        if stat.isActive:
            row = [
                str(idx),
                entry.kind.value.upper(),
                f"{entry.price:,.2f}",
                f"{entry.quantity:,.4f}",
                f"{stat.holdings:,.4f}",
                _opt(stat.averagePrice),
                mn(stat.cumulativePnL),
                mn(stat.usedMargin),
                f"{stat.marginUsageRatio:.1%}",
                _opt(stat.liquidationPrice),
            ]
        else:
            row = [str(idx), entry.kind.value.upper(), *["-"] * (len(HEADERS) - 2)]

        rows.append(row)

        for i, cell in enumerate(row):
            col_widths[i] = max(col_widths[i], len(cell))

    separator = "+" + "+".join("-" * (w + 2) for w in col_widths) + "+"

    def line(cells):
        return (
            "|" + "|".join(f" {cells[i]:<{col_widths[i]}} " for i in range(len(cells))) + "|"
        )

    lines = [separator, line(HEADERS), separator]
    lines.extend(line(row) for row in rows)
    lines.append(separator)

    return "\n".join(lines)


def pnl_report(result: PnLResult) -> str:
    """Summary block for an aggregate result."""
    return "\n".join(
        [
            "PNL SUMMARY",
            "=" * 50,
            f"Opens: {len(result.openEntries)}; Closes: {len(result.closeEntries)}",
            f"Total PnL:        {mn(result.totalPnL)}",
            f"Total Investment: {mn(result.totalInvestment)}",
            f"Total Return:     {mn(result.totalReturn)}",
            f"Total Margin:     {mn(result.totalMargin)}",
            f"ROE:              {result.roe:.2f}%",
        ]
    )


def stats_frame(
    ledger: Sequence[PositionEntry], stats: Mapping[EntryId, PositionStat]
) -> pd.DataFrame:
    """One row per entry (indexed by entry id) joining entry inputs with replay output."""
    records = []
    for entry in ledger:
        stat = stats[entry.id]
        records.append(
            dict(
                id=entry.id,
                kind=entry.kind.value,
                price=entry.price,
                quantity=entry.quantity,
                enabled=entry.enabled,
                holdings=stat.holdings,
                averagePrice=stat.averagePrice,
                cumulativePnL=stat.cumulativePnL,
                isActive=stat.isActive,
                usedMargin=stat.usedMargin,
                marginUsageRatio=stat.marginUsageRatio,
                liquidationPrice=stat.liquidationPrice,
                priceVolatility=stat.priceVolatility,
                positionValue=stat.positionValue,
            )
        )

    if not records:
        return pd.DataFrame()

    return pd.DataFrame.from_records(records, index="id")
