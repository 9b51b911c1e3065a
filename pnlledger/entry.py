"""Ledger entries and the pure editing operations a UI performs on them.

DATA MODEL:
==========

A ledger is an ordered tuple of PositionEntry records. Order is the replay
order: it defines average cost and PnL attribution, so nothing in this package
ever re-sorts a ledger.

Each entry carries four linked quantities:

    quantity (base asset) * price = notional (quote)
    notional / leverage = margin (quote)

The notional and margin are STORED (users may type into either), but they are
derived values as far as the engine is concerned. Keeping them consistent is the
job of `apply_update()` which is the only place the linking rules live.

Entries are frozen. Every edit returns a new entry, and every ledger edit
returns a new tuple.
"""

from __future__ import annotations

import dataclasses
import itertools
import time
from collections.abc import Hashable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Literal, TypeAlias

EntryId: TypeAlias = Hashable
Ledger: TypeAlias = tuple["PositionEntry", ...]

Price: TypeAlias = float
Qty: TypeAlias = float


class Side(str, Enum):
    LONG = "long"
    SHORT = "short"

    @property
    def sign(self) -> int:
        """+1 for longs, -1 for shorts"""
        return -1 if self is Side.SHORT else 1


class EntryKind(str, Enum):
    OPEN = "open"
    CLOSE = "close"


@dataclass(slots=True, frozen=True)
class PositionEntry:
    """One open or close instruction in a ledger.

    Disabled entries keep their place in the ledger but every computation
    skips them as if they were absent.
    """

    id: EntryId
    kind: EntryKind = EntryKind.OPEN

    price: Price = 0.0
    quantity: Qty = 0.0

    # quantity * price, in quote currency
    notional: float = 0.0

    # capital committed to this entry (only meaningful for opens)
    margin: float = 0.0

    enabled: bool = True

    @classmethod
    def empty(cls, id: EntryId, kind: EntryKind = EntryKind.OPEN) -> PositionEntry:
        return cls(id=id, kind=kind)

    @property
    def participates(self) -> bool:
        """True if this entry takes part in computations at all."""
        return self.enabled and self.price > 0 and self.quantity > 0

    @property
    def is_open(self) -> bool:
        return self.kind == EntryKind.OPEN


_ids = itertools.count(1)


def new_entry_id() -> float:
    """Generate a fresh entry id.

    Millisecond timestamp plus a process-wide counter fraction, so ids stay unique
    even when many entries are created inside the same millisecond."""
    return time.time_ns() // 1_000_000 + next(_ids) / 1_000


def default_ledger() -> Ledger:
    """Starting ledger: one empty open followed by one empty close."""
    return (
        PositionEntry.empty(1),
        PositionEntry.empty(2, EntryKind.CLOSE),
    )


# ==============================================================================
# FIELD UPDATE COMMANDS
# ==============================================================================


@dataclass(slots=True, frozen=True)
class SetPrice:
    value: Price


@dataclass(slots=True, frozen=True)
class SetQuantity:
    value: Qty


@dataclass(slots=True, frozen=True)
class SetNotional:
    value: float


@dataclass(slots=True, frozen=True)
class SetMargin:
    value: float


@dataclass(slots=True, frozen=True)
class SetEnabled:
    value: bool


@dataclass(slots=True, frozen=True)
class SetKind:
    value: EntryKind


FieldUpdate: TypeAlias = (
    SetPrice | SetQuantity | SetNotional | SetMargin | SetEnabled | SetKind
)


def apply_update(
    entry: PositionEntry, command: FieldUpdate, leverage: float
) -> PositionEntry:
    """Apply one field edit and re-derive the linked fields.

    PRECEDENCE:
    - quantity: notional from price and quantity, then margin from notional
    - notional: quantity from price and notional, margin from notional
    - margin: notional from margin, then quantity from price and notional
    - price: if a quantity exists, notional (and margin) follow the quantity;
             else if a notional exists, quantity follows the notional;
             else if a margin exists, notional then quantity follow the margin

    Non-positive values only set the edited field itself. Margin is never
    derived when leverage is not positive.
    """
    match command:
        case SetEnabled(value):
            return dataclasses.replace(entry, enabled=value)

        case SetKind(value):
            return dataclasses.replace(entry, kind=value)

        case SetQuantity(value):
            updated = dataclasses.replace(entry, quantity=value)
            if value > 0 and updated.price > 0:
                updated = _with_notional(updated, updated.price * value, leverage)

            return updated

        case SetNotional(value):
            updated = dataclasses.replace(entry, notional=value)
            if value > 0:
                if updated.price > 0:
                    updated = dataclasses.replace(updated, quantity=value / updated.price)

                if leverage > 0:
                    updated = dataclasses.replace(updated, margin=value / leverage)

            return updated

        case SetMargin(value):
            updated = dataclasses.replace(entry, margin=value)
            if value > 0 and leverage > 0:
                notional = value * leverage
                updated = dataclasses.replace(updated, notional=notional)
                if updated.price > 0:
                    updated = dataclasses.replace(updated, quantity=notional / updated.price)

            return updated

        case SetPrice(value):
            updated = dataclasses.replace(entry, price=value)
            if value <= 0:
                return updated

            if updated.quantity > 0:
                return _with_notional(updated, value * updated.quantity, leverage)

            if updated.notional > 0:
                return dataclasses.replace(updated, quantity=updated.notional / value)

            if updated.margin > 0 and leverage > 0:
                notional = updated.margin * leverage
                return dataclasses.replace(
                    updated, notional=notional, quantity=notional / value
                )

            return updated

    raise TypeError(f"Unknown field update: {command!r}")


def _with_notional(
    entry: PositionEntry, notional: float, leverage: float
) -> PositionEntry:
    if leverage > 0:
        return dataclasses.replace(entry, notional=notional, margin=notional / leverage)

    return dataclasses.replace(entry, notional=notional)


def reprice_margins(ledger: Sequence[PositionEntry], leverage: float) -> Ledger:
    """Re-derive margin for every entry after the ledger-wide leverage changed."""
    if leverage <= 0:
        return tuple(ledger)

    return tuple(
        dataclasses.replace(e, margin=e.notional / leverage) if e.notional > 0 else e
        for e in ledger
    )


# ==============================================================================
# LEDGER EDITING
# ==============================================================================


def index_of(ledger: Sequence[PositionEntry], entry_id: EntryId) -> int:
    """Position of 'entry_id' in the ledger, or -1 if it isn't there."""
    for idx, e in enumerate(ledger):
        if e.id == entry_id:
            return idx

    return -1


def append_entry(
    ledger: Sequence[PositionEntry], entry: PositionEntry | None = None
) -> Ledger:
    return (*ledger, entry or PositionEntry.empty(new_entry_id()))


def insert_entry(
    ledger: Sequence[PositionEntry],
    index: int,
    where: Literal["above", "below"] = "below",
    entry: PositionEntry | None = None,
) -> Ledger:
    """Insert a new entry directly above or below the entry currently at 'index'."""
    at = index if where == "above" else index + 1
    entry = entry or PositionEntry.empty(new_entry_id())
    return (*ledger[:at], entry, *ledger[at:])


def remove_entry(ledger: Sequence[PositionEntry], entry_id: EntryId) -> Ledger:
    """Remove an entry by id. The last remaining entry is never removed."""
    if len(ledger) <= 1:
        return tuple(ledger)

    return tuple(e for e in ledger if e.id != entry_id)


def replace_entry(
    ledger: Sequence[PositionEntry], entry_id: EntryId, command: FieldUpdate, leverage: float
) -> Ledger:
    """Apply 'command' to the entry with 'entry_id' and return the new ledger."""
    return tuple(
        apply_update(e, command, leverage) if e.id == entry_id else e for e in ledger
    )


def move_entry(
    ledger: Sequence[PositionEntry], entry_id: EntryId, target_id: EntryId
) -> Ledger:
    """Drag 'entry_id' onto 'target_id': the moved entry takes the target's index."""
    old = index_of(ledger, entry_id)
    new = index_of(ledger, target_id)
    if old < 0 or new < 0 or old == new:
        return tuple(ledger)

    items = list(ledger)
    items.insert(new, items.pop(old))
    return tuple(items)
