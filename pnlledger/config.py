"""Calculator defaults, overridable from `.env.pnlledger` or the environment.

Recognized keys:
    PNLLEDGER_DEFAULT_LEVERAGE      leverage for new ledgers (default 10)
    PNLLEDGER_LIQUIDATION_FEE_RATE  liquidation clearance fee (default 0.02)
    PNLLEDGER_MAX_LEVERAGE          upper leverage bound (default 125)
"""

from __future__ import annotations

import functools
import os
from collections.abc import Mapping
from dataclasses import dataclass

from dotenv import dotenv_values
from loguru import logger

from pnlledger.liquidation import LIQUIDATION_FEE_RATE

ENV_FILE = ".env.pnlledger"

MIN_LEVERAGE = 1


@dataclass(slots=True, frozen=True)
class Settings:
    default_leverage: int = 10
    liquidation_fee_rate: float = LIQUIDATION_FEE_RATE
    max_leverage: int = 125

    def leverage(self, requested: float) -> int:
        """Clamp a requested leverage into the supported [1, max_leverage] range."""
        return int(min(max(requested, MIN_LEVERAGE), self.max_leverage))


def _number(config: Mapping[str, str | None], key: str, default, kind=float):
    raw = config.get(key)
    if raw is None or raw == "":
        return default

    try:
        val = kind(raw)
    except ValueError:
        logger.warning("Ignoring {}={!r}: not a valid {}", key, raw, kind.__name__)
        return default

    if val <= 0:
        logger.warning("Ignoring {}={!r}: must be positive", key, raw)
        return default

    return val


def load_settings(
    path: str = ENV_FILE, environ: Mapping[str, str] | None = None
) -> Settings:
    """Read settings from the env file first, letting the process environment override it."""
    config = {**dotenv_values(path), **(os.environ if environ is None else environ)}

    defaults = Settings()
    max_leverage = _number(config, "PNLLEDGER_MAX_LEVERAGE", defaults.max_leverage, int)
    settings = Settings(
        default_leverage=_number(
            config, "PNLLEDGER_DEFAULT_LEVERAGE", defaults.default_leverage, int
        ),
        liquidation_fee_rate=_number(
            config, "PNLLEDGER_LIQUIDATION_FEE_RATE", defaults.liquidation_fee_rate
        ),
        max_leverage=max_leverage,
    )

    if settings.default_leverage > max_leverage:
        logger.warning(
            "Default leverage {} above maximum {}, clamping",
            settings.default_leverage,
            max_leverage,
        )
        settings = Settings(
            default_leverage=max_leverage,
            liquidation_fee_rate=settings.liquidation_fee_rate,
            max_leverage=max_leverage,
        )

    return settings


@functools.cache
def current_settings() -> Settings:
    """Settings for this process, read from the working directory once."""
    settings = load_settings()
    logger.debug("Loaded {}", settings)
    return settings
