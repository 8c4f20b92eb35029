"""Utilities for working with chart timeframes."""
from __future__ import annotations

from typing import Dict

TIMEFRAME_MINUTES: Dict[str, int] = {
    "1min": 1,
    "2min": 2,
    "5min": 5,
    "10min": 10,
    "15min": 15,
    "30min": 30,
    "1h": 60,
    "2h": 120,
    "4h": 240,
    "1d": 1440,
}

DEFAULT_TIMEFRAME = "5min"


def timeframe_to_minutes(timeframe: str) -> int:
    """Convert a timeframe label such as ``"15min"`` or ``"4h"`` to minutes.

    Unknown labels fall back to the 5 minute base interval the data backend
    stores, mirroring how the market-data endpoint treats them.
    """
    label = (timeframe or "").strip().lower()
    return TIMEFRAME_MINUTES.get(label, TIMEFRAME_MINUTES[DEFAULT_TIMEFRAME])
