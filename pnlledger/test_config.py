import pytest

from pnlledger.config import Settings, current_settings, load_settings
from pnlledger.entry import EntryKind, PositionEntry, Side
from pnlledger.exchange import import_payload
from pnlledger.replay import replay


def test_defaults(tmp_path):
    settings = load_settings(str(tmp_path / "missing.env"), environ={})

    assert settings == Settings()
    assert settings.default_leverage == 10
    assert settings.liquidation_fee_rate == 0.02
    assert settings.max_leverage == 125


def test_env_file(tmp_path):
    path = tmp_path / ".env.pnlledger"
    path.write_text(
        "PNLLEDGER_DEFAULT_LEVERAGE=20\nPNLLEDGER_LIQUIDATION_FEE_RATE=0.01\n"
    )

    settings = load_settings(str(path), environ={})
    assert settings.default_leverage == 20
    assert settings.liquidation_fee_rate == 0.01


def test_environment_overrides_file(tmp_path):
    path = tmp_path / ".env.pnlledger"
    path.write_text("PNLLEDGER_DEFAULT_LEVERAGE=20\n")

    settings = load_settings(str(path), environ={"PNLLEDGER_DEFAULT_LEVERAGE": "5"})
    assert settings.default_leverage == 5


def test_bad_values_fall_back(tmp_path):
    settings = load_settings(
        str(tmp_path / "missing.env"),
        environ={
            "PNLLEDGER_DEFAULT_LEVERAGE": "lots",
            "PNLLEDGER_LIQUIDATION_FEE_RATE": "-1",
        },
    )

    assert settings.default_leverage == 10
    assert settings.liquidation_fee_rate == 0.02


def test_default_leverage_clamped_to_max(tmp_path):
    settings = load_settings(
        str(tmp_path / "missing.env"),
        environ={"PNLLEDGER_DEFAULT_LEVERAGE": "200", "PNLLEDGER_MAX_LEVERAGE": "100"},
    )

    assert settings.default_leverage == 100
    assert settings.max_leverage == 100


def test_leverage_bounds():
    settings = Settings()

    assert settings.leverage(0) == 1
    assert settings.leverage(-3) == 1
    assert settings.leverage(50.7) == 50
    assert settings.leverage(1000) == 125


def test_current_settings_drive_replay(tmp_path, monkeypatch):
    (tmp_path / ".env.pnlledger").write_text("PNLLEDGER_LIQUIDATION_FEE_RATE=0.01\n")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("PNLLEDGER_DEFAULT_LEVERAGE", "20")
    monkeypatch.delenv("PNLLEDGER_LIQUIDATION_FEE_RATE", raising=False)
    monkeypatch.delenv("PNLLEDGER_MAX_LEVERAGE", raising=False)

    current_settings.cache_clear()
    try:
        assert current_settings() == Settings(default_leverage=20, liquidation_fee_rate=0.01)

        ledger = [PositionEntry(1, EntryKind.OPEN, 100, 10, 1000, 100)]
        assert replay(ledger, Side.LONG)[1].liquidationPrice == pytest.approx(96.0)

        payload = b'{"side": "long", "capital": 1000, "leverage": 500, "positions": []}'
        assert import_payload(payload).leverage == 125
    finally:
        current_settings.cache_clear()
