"""Synthetic trading-session generator.

Each session is an eight hour run of candles shaped by three things: a
market sentiment that biases the drift, an intraday phase that modulates
drift and volume, and a smoothed pseudo-random noise term. The noise is a
32-bit integer hash interpolated with a cosine ease, not real Perlin noise.
"""
from __future__ import annotations

import math
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from ..utils.logging import get_logger
from ..utils.time import session_open
from .candles import Candle

LOGGER = get_logger(__name__)

SENTIMENTS: Tuple[str, ...] = ("bullish", "bearish", "sideways", "volatile")
PHASES: Tuple[str, ...] = (
    "opening",
    "morning_trend",
    "midday_consolidation",
    "afternoon_trend",
    "closing",
)

# Upper bound (exclusive) of the session fraction for each phase but the last.
PHASE_THRESHOLDS: Tuple[Tuple[float, str], ...] = (
    (0.1, "opening"),
    (0.4, "morning_trend"),
    (0.6, "midday_consolidation"),
    (0.9, "afternoon_trend"),
)

ADJACENT_SENTIMENTS: Dict[str, Tuple[str, str]] = {
    "bullish": ("bearish", "sideways"),
    "bearish": ("bullish", "volatile"),
    "sideways": ("bullish", "volatile"),
    "volatile": ("bearish", "sideways"),
}

PHASE_VOLUME_FACTORS: Dict[str, float] = {
    "opening": 1.8,
    "morning_trend": 1.4,
    "midday_consolidation": 0.7,
    "afternoon_trend": 1.3,
    "closing": 1.6,
}

SESSION_MINUTES = 8 * 60
NOISE_STEP = 0.1
NOISE_WEIGHT = 0.3
MAX_MOVE_FRACTION = 0.05
SENTIMENT_CHANGE_PROBABILITY = 0.03
ADJACENT_CHANGE_PROBABILITY = 0.6
SENTIMENT_BASE_MOVE = 0.001
PHASE_BASE_MOVE = 0.0005
BASE_VOLUME = 1_000_000.0

_MASK32 = 0xFFFFFFFF


def _to_int32(value: int) -> int:
    value &= _MASK32
    return value - (1 << 32) if value & 0x80000000 else value


class NoiseGenerator:
    """Smoothed 1-D value noise: hashed lattice values with cosine easing."""

    def __init__(self, seed: int = 0) -> None:
        self.seed = int(seed)

    def hash(self, n: int) -> float:
        """Map an integer lattice point to a pseudo-random value in (-1, 1]."""
        n = _to_int32(n + self.seed)
        n = _to_int32((n << 13) ^ n)
        mixed = _to_int32(n * _to_int32(n * n * 15731 + 789221) + 1376312589)
        return 1.0 - (mixed & 0x7FFFFFFF) / 1073741824.0

    @staticmethod
    def cosine_ease(t: float) -> float:
        return (1.0 - math.cos(t * math.pi)) * 0.5

    def noise(self, x: float) -> float:
        base = math.floor(x)
        frac = x - base
        a = self.hash(base)
        b = self.hash(base + 1)
        f = self.cosine_ease(frac)
        return a * (1.0 - f) + b * f


@dataclass(frozen=True)
class MarketState:
    current_price: float
    base_price: float
    sentiment: str
    phase: str
    trend_strength: float
    volatility_level: float
    candle_index: int


def phase_for_progress(progress: float) -> str:
    for threshold, phase in PHASE_THRESHOLDS:
        if progress < threshold:
            return phase
    return "closing"


class MarketGenerator:
    """Generate randomized but consistently shaped intraday sessions.

    One instance owns its market state; callers keep one generator per
    replay session rather than sharing a module-level instance.
    """

    def __init__(
        self,
        initial_price: float = 50_000.0,
        *,
        seed: Optional[int] = None,
        session_open_hour: int = 9,
    ) -> None:
        if initial_price <= 0:
            raise ValueError("initial_price must be positive")
        self._rng = random.Random(seed)
        self._session_open_hour = session_open_hour
        self.base_price = float(initial_price)
        self.current_price = float(initial_price)
        self._noise = NoiseGenerator(self._rng.getrandbits(31))
        self._sentiment = self._rng.choice(SENTIMENTS)
        self._phase = "opening"
        self.trend_strength = 0.5
        self.volatility_level = 0.02
        self.candle_index = 0
        self.session_start: datetime = session_open(hour=session_open_hour)

    @property
    def sentiment(self) -> str:
        return self._sentiment

    @property
    def phase(self) -> str:
        return self._phase

    def market_state(self) -> MarketState:
        return MarketState(
            current_price=self.current_price,
            base_price=self.base_price,
            sentiment=self._sentiment,
            phase=self._phase,
            trend_strength=self.trend_strength,
            volatility_level=self.volatility_level,
            candle_index=self.candle_index,
        )

    def generate_trading_session(self, interval_minutes: int = 5) -> List[Candle]:
        """Generate ``floor(480 / interval_minutes)`` candles from the session open."""
        if interval_minutes <= 0:
            raise ValueError("interval_minutes must be positive")

        total = SESSION_MINUTES // interval_minutes
        step = timedelta(minutes=interval_minutes)
        current_time = self.session_start
        candles: List[Candle] = []
        self.candle_index = 0

        for index in range(total):
            self._phase = phase_for_progress(index / total)
            candles.append(self._next_candle(int(current_time.timestamp()), index))
            self.candle_index += 1
            current_time += step
            if self._rng.random() < SENTIMENT_CHANGE_PROBABILITY:
                self._change_sentiment()

        LOGGER.debug(
            "Generated %s candles (%s min) sentiment=%s close=%.2f",
            len(candles),
            interval_minutes,
            self._sentiment,
            self.current_price,
        )
        return candles

    def generate_new_scenario(self) -> None:
        """Reset the market state for a fresh session around the prior base price."""
        self.current_price = self.base_price * self._rng.uniform(0.95, 1.05)
        self.base_price = self.current_price
        self._sentiment = self._rng.choice(SENTIMENTS)
        self._phase = "opening"
        self.candle_index = 0
        self.trend_strength = self._rng.uniform(0.3, 1.0)
        self.volatility_level = self._rng.uniform(0.015, 0.045)
        self._noise = NoiseGenerator(self._rng.getrandbits(31))
        self.session_start = session_open(hour=self._session_open_hour)
        LOGGER.info(
            "New scenario: base=%.2f sentiment=%s volatility=%.4f",
            self.base_price,
            self._sentiment,
            self.volatility_level,
        )

    def _next_candle(self, timestamp: int, index: int) -> Candle:
        open_price = self.current_price
        noise_value = self._noise.noise(index * NOISE_STEP)
        drift = self._sentiment_movement() + self._phase_movement() + noise_value * NOISE_WEIGHT
        movement = drift * self.base_price * self.volatility_level

        max_move = self.base_price * MAX_MOVE_FRACTION
        close_price = max(open_price - max_move, min(open_price + max_move, open_price + movement))

        body = abs(close_price - open_price)
        extra = body * self._rng.uniform(0.5, 2.0)
        high_price = max(open_price, close_price) + extra * self._rng.uniform(0.3, 1.0)
        low_price = min(open_price, close_price) - extra * self._rng.uniform(0.2, 0.7)
        volume = self._volume(body)

        close_rounded = round(close_price, 2)
        self.current_price = close_rounded
        return Candle(
            time=timestamp,
            open=round(open_price, 2),
            high=round(high_price, 2),
            low=round(low_price, 2),
            close=close_rounded,
            volume=float(round(volume)),
        )

    def _sentiment_movement(self) -> float:
        base = SENTIMENT_BASE_MOVE
        if self._sentiment == "bullish":
            return base * self.trend_strength * self._rng.uniform(0.7, 1.3)
        if self._sentiment == "bearish":
            return -base * self.trend_strength * self._rng.uniform(0.7, 1.3)
        if self._sentiment == "sideways":
            return base * (self._rng.random() - 0.5) * 0.3
        return base * (self._rng.random() - 0.5) * 2.5

    def _phase_movement(self) -> float:
        base = PHASE_BASE_MOVE
        direction = {"bullish": 1.0, "bearish": -1.0}.get(self._sentiment, 0.0)
        if self._phase == "opening":
            return base * (self._rng.random() - 0.5) * 2.0
        if self._phase == "morning_trend":
            return base * direction
        if self._phase == "midday_consolidation":
            return base * (self._rng.random() - 0.5) * 0.5
        if self._phase == "afternoon_trend":
            return base * direction * 0.8
        return base * (self._rng.random() - 0.5) * 1.5

    def _volume(self, price_movement: float) -> float:
        movement_factor = 1.0 + (price_movement / self.base_price) * 50.0
        noise = self._rng.uniform(0.7, 1.3)
        return BASE_VOLUME * movement_factor * PHASE_VOLUME_FACTORS[self._phase] * noise

    def _change_sentiment(self) -> None:
        previous = self._sentiment
        if self._rng.random() < ADJACENT_CHANGE_PROBABILITY:
            self._sentiment = self._rng.choice(ADJACENT_SENTIMENTS[previous])
        else:
            self._sentiment = self._rng.choice(SENTIMENTS)
        self.trend_strength = self._rng.uniform(0.3, 1.0)
        self.volatility_level = self._rng.uniform(0.01, 0.05)
        LOGGER.debug("Sentiment %s -> %s at candle %s", previous, self._sentiment, self.candle_index)
