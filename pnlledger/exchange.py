"""JSON import/export for ledgers.

Exported documents look like:

    {
      "side": "long",
      "capital": 1000,
      "leverage": 10,
      "positions": [
        {"id": 1, "type": "open", "price": 100, "quantity": 10,
         "quantityUsdt": 1000, "marginUsdt": 100, "enabled": true},
        ...
      ],
      "exportedAt": "2025-10-06T12:00:00.000000+00:00",
      "version": "1.0.0"
    }

Imports accept either that full document or a bare array of positions (the older
format). Numeric fields may arrive as strings with units ("1,000 USDT").
Imported entries are always given fresh ids so they can't collide with entries
already on screen.
"""

from __future__ import annotations

import datetime
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import orjson
from loguru import logger

from pnlledger.config import Settings, current_settings
from pnlledger.entry import (
    EntryKind,
    Ledger,
    PositionEntry,
    Side,
    new_entry_id,
)
from pnlledger.numeric import parse_value_with_unit

FORMAT_VERSION = "1.0.0"

CONFIG_KEYS = ("side", "capital", "leverage", "positions")


class LedgerImportError(ValueError):
    """Raised when imported data isn't a ledger document or a position array."""


@dataclass(slots=True)
class LedgerConfig:
    side: Side
    capital: float
    leverage: int
    positions: Ledger
    exported_at: datetime.datetime = field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc)
    )
    version: str = FORMAT_VERSION


def entry_to_dict(entry: PositionEntry) -> dict[str, Any]:
    return {
        "id": entry.id,
        "type": entry.kind.value,
        "price": entry.price,
        "quantity": entry.quantity,
        "quantityUsdt": entry.notional,
        "marginUsdt": entry.margin,
        "enabled": entry.enabled,
    }


def entry_from_dict(data: Mapping[str, Any], id=None) -> PositionEntry:
    """Build an entry from its exported form, tolerating unit strings and missing fields."""
    try:
        kind = EntryKind(str(data.get("type", EntryKind.OPEN.value)).lower())
    except ValueError as e:
        raise LedgerImportError(f"Unknown position type: {data.get('type')!r}") from e

    return PositionEntry(
        id=new_entry_id() if id is None else id,
        kind=kind,
        price=parse_value_with_unit(data.get("price")),
        quantity=parse_value_with_unit(data.get("quantity")),
        notional=parse_value_with_unit(data.get("quantityUsdt")),
        # older exports predate margin tracking
        margin=parse_value_with_unit(data.get("marginUsdt")),
        enabled=bool(data.get("enabled", True)),
    )


def export_config(config: LedgerConfig) -> bytes:
    """Serialize a full ledger configuration as indented JSON."""
    return orjson.dumps(
        {
            "side": config.side.value,
            "capital": config.capital,
            "leverage": config.leverage,
            "positions": [entry_to_dict(e) for e in config.positions],
            "exportedAt": config.exported_at.isoformat(),
            "version": config.version,
        },
        option=orjson.OPT_INDENT_2,
    )


def _positions(raw: Sequence[Any]) -> Ledger:
    if not all(isinstance(p, Mapping) for p in raw):
        raise LedgerImportError("Every position must be a JSON object")

    return tuple(entry_from_dict(p) for p in raw)


def import_payload(
    data: str | bytes, settings: Settings | None = None
) -> LedgerConfig | Ledger:
    """Parse an exported document.

    Returns a LedgerConfig for full documents, or just the entries for a bare
    position array. Anything else raises LedgerImportError.
    """
    try:
        parsed = orjson.loads(data)
    except orjson.JSONDecodeError as e:
        logger.warning("Ledger import failed to parse: {}", e)
        raise LedgerImportError(f"Invalid JSON: {e}") from e

    if isinstance(parsed, list):
        return _positions(parsed)

    if not isinstance(parsed, dict) or any(parsed.get(k) is None for k in CONFIG_KEYS):
        logger.warning("Ledger import rejected unrecognized document shape")
        raise LedgerImportError(
            "Data must be a full ledger configuration or an array of positions"
        )

    if not isinstance(parsed["positions"], list):
        raise LedgerImportError("'positions' must be an array")

    try:
        side = Side(str(parsed["side"]).lower())
    except ValueError as e:
        raise LedgerImportError(f"Unknown side: {parsed['side']!r}") from e

    settings = settings or current_settings()
    exported_at = datetime.datetime.now(datetime.timezone.utc)
    if stamp := parsed.get("exportedAt"):
        try:
            exported_at = datetime.datetime.fromisoformat(str(stamp).replace("Z", "+00:00"))
        except ValueError:
            logger.warning("Ignoring unreadable exportedAt: {}", stamp)

    return LedgerConfig(
        side=side,
        capital=parse_value_with_unit(parsed["capital"]),
        leverage=settings.leverage(parse_value_with_unit(parsed["leverage"])),
        positions=_positions(parsed["positions"]),
        exported_at=exported_at,
        version=str(parsed.get("version") or FORMAT_VERSION),
    )
