from pnlledger.entry import EntryKind, PositionEntry, default_ledger
from pnlledger.validation import NO_ACTIVE_ENTRIES, validate


def Open(id, price, qty, margin=0.0, enabled=True):
    return PositionEntry(id, EntryKind.OPEN, price, qty, price * qty, margin, enabled)


def Close(id, price, qty, enabled=True):
    return PositionEntry(id, EntryKind.CLOSE, price, qty, price * qty, 0.0, enabled)


def test_valid():
    assert validate([Open(1, 100, 10, margin=100), Close(2, 120, 10)]) == []


def test_empty_ledger():
    assert validate([]) == [NO_ACTIVE_ENTRIES]


def test_default_ledger_blocks():
    assert validate(default_ledger(), 1000) == [NO_ACTIVE_ENTRIES]


def test_only_disabled_entries_block():
    errors = validate([Open(1, 100, 10, enabled=False), Open(2, 0, 10)])
    assert errors == [NO_ACTIVE_ENTRIES]


def test_over_close():
    errors = validate([Open(1, 100, 10, margin=100), Close(2, 100, 15)])

    assert len(errors) == 1
    assert "Entry 2" in errors[0]
    assert "15.0000" in errors[0]
    assert "10.0000" in errors[0]
    assert "5.0000" in errors[0]


def test_over_close_within_tolerance():
    assert validate([Open(1, 100, 10), Close(2, 100, 10.00005)]) == []


def test_over_close_outside_tolerance():
    assert len(validate([Open(1, 100, 10), Close(2, 100, 10.001)])) == 1


def test_holdings_track_across_closes():
    ledger = [
        Open(1, 100, 10),
        Close(2, 100, 6),
        Close(3, 100, 6),
        Open(4, 100, 3),
        Close(5, 100, 3),
    ]
    errors = validate(ledger)

    # the second close only finds 4 held; it then zeroes holdings
    assert len(errors) == 1
    assert errors[0].startswith("Entry 3 (close)")


def test_capital_over_allocation():
    errors = validate([Open(1, 100, 1, margin=100)], capital=50)

    assert len(errors) == 1
    assert "Entry 1 (open)" in errors[0]
    assert "100.00" in errors[0]
    assert "50.00" in errors[0]


def test_capital_over_allocation_is_cumulative():
    ledger = [
        Open(1, 100, 1, margin=40),
        Open(2, 100, 1, margin=40),
        Open(3, 100, 1, margin=40),
    ]
    errors = validate(ledger, capital=100)

    assert len(errors) == 1
    assert errors[0].startswith("Entry 3 (open)")
    assert "20.00" in errors[0]


def test_no_capital_means_no_ceiling():
    ledger = [Open(1, 100, 1, margin=1_000_000)]
    assert validate(ledger) == []
    assert validate(ledger, capital=0) == []


def test_closes_do_not_consume_capital():
    ledger = [Open(1, 100, 1, margin=50), Close(2, 100, 1), Open(3, 100, 1, margin=40)]
    assert validate(ledger, capital=100) == []


def test_half_filled_entry():
    errors = validate([Open(1, 100, 10), Open(2, 100, 0), Close(3, 0, 4)])

    assert len(errors) == 2
    assert errors[0].startswith("Entry 2:") and "(missing quantity)" in errors[0]
    assert errors[1].startswith("Entry 3:") and "(missing price)" in errors[1]


def test_disabled_half_filled_entry_is_ignored():
    assert validate([Open(1, 100, 10), Open(2, 100, 0, enabled=False)]) == []


def test_index_counts_active_entries_only():
    ledger = [
        Open(1, 100, 10, enabled=False),
        Open(2, 100, 10),
        Close(3, 100, 20),
    ]
    errors = validate(ledger)

    assert len(errors) == 1
    assert errors[0].startswith("Entry 2 (close)")
