import pytest

from pnlledger.aggregate import aggregate, evaluate, position_usage
from pnlledger.entry import EntryKind, PositionEntry, Side, default_ledger
from pnlledger.replay import replay


def Open(id, price, qty, margin=0.0, enabled=True):
    return PositionEntry(id, EntryKind.OPEN, price, qty, price * qty, margin, enabled)


def Close(id, price, qty, enabled=True):
    return PositionEntry(id, EntryKind.CLOSE, price, qty, price * qty, 0.0, enabled)


def test_long_full_close():
    result = aggregate([Open(1, 100, 10, margin=100), Close(2, 120, 10)], Side.LONG)

    assert result.totalPnL == pytest.approx(200)
    assert result.totalInvestment == pytest.approx(1000)
    assert result.totalReturn == pytest.approx(1200)
    assert result.totalMargin == pytest.approx(100)
    assert result.roe == pytest.approx(200)
    assert result.returnRate == result.roe
    assert [e.id for e in result.openEntries] == [1]
    assert [e.id for e in result.closeEntries] == [2]


def test_short_full_close():
    result = aggregate([Open(1, 100, 10, margin=100), Close(2, 90, 10)], Side.SHORT)

    assert result.totalPnL == pytest.approx(100)
    assert result.roe == pytest.approx(100)


def test_partial_close_scales_open_cost():
    result = aggregate([Open(1, 100, 10, margin=100), Close(2, 120, 5)], Side.LONG)

    assert result.totalPnL == pytest.approx(600 - 1000 * 0.5)


def test_no_opens():
    result = aggregate([Close(1, 100, 5)], Side.LONG)

    assert result.totalPnL == pytest.approx(500)
    assert result.totalInvestment == 0
    assert result.roe == 0


def test_empty():
    result = aggregate([], Side.LONG)

    assert result.totalPnL == 0
    assert result.totalReturn == 0
    assert result.roe == 0
    assert result.openEntries == ()


def test_skips_disabled_and_incomplete():
    ledger = [
        Open(1, 100, 10, margin=100),
        Open(2, 50, 10, margin=50, enabled=False),
        Open(3, 50, 0, margin=50),
        Close(4, 110, 10),
    ]
    result = aggregate(ledger, Side.LONG)

    assert result.totalPnL == pytest.approx(100)
    assert result.totalMargin == pytest.approx(100)
    assert len(result.openEntries) == 1


def test_matches_replay_for_single_open_price():
    ledger = [
        Open(1, 100, 10, margin=100),
        Close(2, 110, 3),
        Close(3, 95, 7),
    ]

    final = list(replay(ledger, Side.LONG).values())[-1]
    assert aggregate(ledger, Side.LONG).totalPnL == pytest.approx(final.cumulativePnL)


def test_diverges_from_replay_with_interleaved_opens():
    ledger = [
        Open(1, 100, 10, margin=100),
        Close(2, 120, 5),
        Open(3, 80, 5, margin=40),
        Close(4, 100, 5),
    ]

    # replay: 5 * (120 - 100) + 5 * (100 - 90) = 150
    final = list(replay(ledger, Side.LONG).values())[-1]
    assert final.cumulativePnL == pytest.approx(150)

    # aggregate: 1100 - 1400 * (10 / 15)
    assert aggregate(ledger, Side.LONG).totalPnL == pytest.approx(1100 - 1400 * 10 / 15)


def test_position_usage():
    ledger = [Open(1, 100, 1, margin=25), Open(2, 100, 1, margin=25), Close(3, 100, 1)]

    assert position_usage(ledger, 200) == pytest.approx(25)
    assert position_usage(ledger, 0) == 0


def test_evaluate_untouched_ledger():
    assert evaluate(default_ledger(), Side.LONG) == ([], None)


def test_evaluate_gates_on_validation():
    errors, result = evaluate([Open(1, 100, 10), Close(2, 100, 15)], Side.LONG)

    assert len(errors) == 1
    assert result is None


def test_evaluate_valid():
    errors, result = evaluate(
        [Open(1, 100, 10, margin=100), Close(2, 120, 10)], Side.LONG, 1000
    )

    assert errors == []
    assert result.totalPnL == pytest.approx(200)
