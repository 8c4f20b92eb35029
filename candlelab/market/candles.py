"""Candle value types shared by the generator, validator, replay and backtest."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..utils.time import iso_to_unix

OHLC_FIELDS = ("open", "high", "low", "close")


@dataclass(frozen=True, slots=True)
class Candle:
    """One OHLCV bar; ``time`` is in unix seconds."""

    time: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    def as_dict(self) -> Dict[str, float]:
        return {
            "time": self.time,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }


@dataclass(frozen=True, slots=True)
class NormalizedCandle(Candle):
    """A candle that went through the normalizer.

    ``original_data`` holds the pre-repair fields and is only set when the
    normalizer actually changed something. It is stored read-only and left
    out of the hash.
    """

    is_normalized: bool = False
    original_data: Optional[Mapping[str, float]] = field(default=None, hash=False)

    def __post_init__(self) -> None:
        if self.original_data is not None and not isinstance(self.original_data, MappingProxyType):
            object.__setattr__(self, "original_data", MappingProxyType(dict(self.original_data)))

    def as_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = Candle.as_dict(self)
        data["is_normalized"] = self.is_normalized
        if self.original_data is not None:
            data["original_data"] = dict(self.original_data)
        return data


def _num(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def candle_from_record(record: Mapping[str, Any]) -> Candle | None:
    """Coerce a raw data-source record into a :class:`Candle`.

    Numeric fields may arrive as strings. ``time`` is derived from the ISO
    ``timestamp`` when absent. Records with a missing or non-numeric OHLC
    field, or no usable time, yield ``None``.
    """
    prices = [_num(record.get(key)) for key in OHLC_FIELDS]
    if any(price is None for price in prices):
        return None

    time_value = _num(record.get("time"))
    if time_value is None:
        timestamp = record.get("timestamp")
        if not timestamp:
            return None
        try:
            time_value = float(iso_to_unix(str(timestamp)))
        except (TypeError, ValueError):
            return None

    volume = _num(record.get("volume"))
    open_price, high_price, low_price, close_price = prices
    return Candle(
        time=int(time_value),
        open=float(open_price),
        high=float(high_price),
        low=float(low_price),
        close=float(close_price),
        volume=volume if volume is not None else 0.0,
    )


def coerce_records(records: Iterable[Mapping[str, Any]]) -> List[Candle]:
    """Convert raw records into candles sorted by time, dropping unusable rows."""
    candles = [candle for candle in (candle_from_record(row) for row in records) if candle is not None]
    candles.sort(key=lambda candle: candle.time)
    return candles
