"""Aggregate base-interval candles into coarser chart timeframes."""
from __future__ import annotations

from typing import List, Sequence

import pandas as pd

from ..utils.timeframes import DEFAULT_TIMEFRAME, TIMEFRAME_MINUTES, timeframe_to_minutes
from .candles import Candle

BASE_INTERVAL_MINUTES = TIMEFRAME_MINUTES[DEFAULT_TIMEFRAME]


def candles_to_frame(candles: Sequence[Candle]) -> pd.DataFrame:
    frame = pd.DataFrame(
        [Candle.as_dict(candle) for candle in candles],
        columns=["time", "open", "high", "low", "close", "volume"],
    )
    frame.index = pd.DatetimeIndex(pd.to_datetime(frame["time"], unit="s", utc=True), name="ts")
    return frame.sort_index(kind="stable")


def resample_candles(candles: Sequence[Candle], timeframe: str) -> List[Candle]:
    """Bucket candles by ``timeframe`` with first/max/min/last/sum aggregation.

    Timeframes at or below the 5 minute base interval return the candles as
    they are.
    """
    minutes = timeframe_to_minutes(timeframe)
    if minutes <= BASE_INTERVAL_MINUTES or not candles:
        return list(candles)

    frame = candles_to_frame(candles)
    grouped = frame.resample(f"{minutes}min", label="left", closed="left").agg(
        {"open": "first", "high": "max", "low": "min", "close": "last", "volume": "sum"}
    )
    grouped = grouped.dropna(subset=["open", "close"])
    return [
        Candle(
            time=int(ts.timestamp()),
            open=float(row["open"]),
            high=float(row["high"]),
            low=float(row["low"]),
            close=float(row["close"]),
            volume=float(row["volume"]),
        )
        for ts, row in grouped.iterrows()
    ]
