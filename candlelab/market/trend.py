"""Simple random-walk generators for demo corpora.

``TrendGenerator`` produces a candle sequence for an arbitrary date range and
``generate_tick_series`` produces raw 5-minute records in the same shape the
market-data backend returns, using a per-symbol price and volatility profile.
"""
from __future__ import annotations

import math
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from ..utils.logging import get_logger
from ..utils.time import day_bounds_utc
from .candles import Candle

LOGGER = get_logger(__name__)

TRENDS: Tuple[str, ...] = ("bullish", "bearish", "sideways")
TREND_CHANGE_PROBABILITY = 0.05
TICK_INTERVAL = timedelta(minutes=5)


@dataclass(frozen=True)
class SymbolProfile:
    start_price: float
    start_jitter: float
    volatility: float
    decimals: int = 5


SYMBOL_PROFILES: Dict[str, SymbolProfile] = {
    "XAUUSD": SymbolProfile(start_price=2000.0, start_jitter=100.0, volatility=0.002),
    "BTCUSD": SymbolProfile(start_price=45_000.0, start_jitter=5_000.0, volatility=0.02),
    "EURUSD": SymbolProfile(start_price=1.08, start_jitter=0.05, volatility=0.001),
}
DEFAULT_PROFILE = SYMBOL_PROFILES["XAUUSD"]


class TrendGenerator:
    """Random walk with a regime (trend) that flips occasionally."""

    def __init__(self, initial_price: float = 50_000.0, *, seed: Optional[int] = None) -> None:
        if initial_price <= 0:
            raise ValueError("initial_price must be positive")
        self._rng = random.Random(seed)
        self.current_price = float(initial_price)
        self.trend = "sideways"
        self.trend_strength = 0.5
        self.volatility = 0.02

    def generate_candle_sequence(
        self,
        start: datetime,
        end: datetime,
        interval_minutes: int = 60,
    ) -> List[Candle]:
        if interval_minutes <= 0:
            raise ValueError("interval_minutes must be positive")
        total_minutes = (end - start).total_seconds() / 60
        total = max(0, math.floor(total_minutes / interval_minutes))
        step = timedelta(minutes=interval_minutes)

        candles: List[Candle] = []
        current = start
        for _ in range(total):
            if self._rng.random() < TREND_CHANGE_PROBABILITY:
                self._change_trend()
            candles.append(self._next_candle(int(current.timestamp())))
            current += step
        return candles

    def _next_candle(self, timestamp: int) -> Candle:
        open_price = self.current_price
        random_move = (self._rng.random() - 0.5) * self.volatility * open_price
        close_price = max(open_price + self._trend_movement() + random_move, open_price * 0.8)

        extra = abs(close_price - open_price) * self._rng.uniform(0.2, 1.0)
        high_price = max(open_price, close_price) + extra
        low_price = min(open_price, close_price) - extra * 0.7

        change = abs(close_price - open_price) / open_price
        volume = 1_000_000.0 * (1 + change * 5) * self._rng.uniform(0.5, 1.5)

        self.current_price = close_price
        return Candle(
            time=timestamp,
            open=round(open_price, 2),
            high=round(high_price, 2),
            low=round(low_price, 2),
            close=round(close_price, 2),
            volume=float(round(volume)),
        )

    def _trend_movement(self) -> float:
        base = self.current_price * 0.001
        if self.trend == "bullish":
            return base * self.trend_strength * self._rng.uniform(0.5, 2.0)
        if self.trend == "bearish":
            return -base * self.trend_strength * self._rng.uniform(0.5, 2.0)
        return base * (self._rng.random() - 0.5) * 0.5

    def _change_trend(self) -> None:
        self.trend = self._rng.choice(TRENDS)
        self.trend_strength = self._rng.uniform(0.3, 1.0)
        self.volatility = self._rng.uniform(0.01, 0.04)


def generate_tick_series(
    symbol: str,
    start_date: str,
    end_date: str,
    *,
    seed: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Generate 5-minute records covering ``start_date`` to ``end_date`` inclusive (UTC days)."""
    rng = random.Random(seed)
    profile = SYMBOL_PROFILES.get(symbol.upper(), DEFAULT_PROFILE)
    start, end = day_bounds_utc(start_date, end_date)
    if start > end:
        raise ValueError("start_date must not be after end_date")

    records: List[Dict[str, Any]] = []
    last_price = profile.start_price + rng.random() * profile.start_jitter
    current = start
    while current <= end:
        session_multiplier = 1.5 if 8 <= current.hour <= 17 else 1.0
        trend = math.sin(current.timestamp() / 86_400) * 0.001
        change = trend + (rng.random() - 0.5) * profile.volatility * session_multiplier

        new_price = last_price * (1 + change)
        spread = last_price * 0.0001
        high_price = max(last_price, new_price) + spread * rng.random()
        low_price = min(last_price, new_price) - spread * rng.random()

        records.append(
            {
                "symbol": symbol.upper(),
                "timestamp": current.isoformat().replace("+00:00", "Z"),
                "open": round(last_price, profile.decimals),
                "high": round(high_price, profile.decimals),
                "low": round(low_price, profile.decimals),
                "close": round(new_price, profile.decimals),
                "volume": rng.randint(50, 549),
            }
        )
        last_price = new_price
        current += TICK_INTERVAL

    LOGGER.info("Generated %s tick records for %s (%s to %s)", len(records), symbol, start_date, end_date)
    return records
