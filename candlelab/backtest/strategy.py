"""Strategy interface and the reference SMA crossover strategy."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

import numpy as np

from ..market.candles import Candle
from .types import Trade, TradingSignal


class TradingStrategy(ABC):
    """A strategy sees the whole candle history and the index being evaluated.

    It must only look at ``candles[: index + 1]``.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def generate_signal(self, candles: Sequence[Candle], index: int) -> TradingSignal:
        ...

    def on_trade(self, trade: Trade) -> None:
        """Called after the engine closes ``trade``."""


def simple_moving_average(candles: Sequence[Candle]) -> float:
    return float(np.mean([candle.close for candle in candles]))


class SMAStrategy(TradingStrategy):
    """Buy on a golden cross and sell on a death cross of two close SMAs."""

    def __init__(self, short_period: int = 10, long_period: int = 20, quantity: float = 1.0) -> None:
        if short_period < 1 or long_period <= short_period:
            raise ValueError("periods must satisfy 1 <= short_period < long_period")
        self.short_period = short_period
        self.long_period = long_period
        self.quantity = quantity

    @property
    def name(self) -> str:
        return f"SMA Crossover ({self.short_period}/{self.long_period})"

    def generate_signal(self, candles: Sequence[Candle], index: int) -> TradingSignal:
        if index < self.long_period:
            return TradingSignal.hold("Insufficient data")

        window = candles[index - self.long_period + 1 : index + 1]
        previous = candles[index - self.long_period : index]
        short_sma = simple_moving_average(window[-self.short_period :])
        long_sma = simple_moving_average(window)
        prev_short = simple_moving_average(previous[-self.short_period :])
        prev_long = simple_moving_average(previous)

        price = candles[index].close
        if prev_short <= prev_long and short_sma > long_sma:
            return TradingSignal("buy", price, self.quantity, 0.7, "Golden Cross")
        if prev_short >= prev_long and short_sma < long_sma:
            return TradingSignal("sell", price, self.quantity, 0.7, "Death Cross")
        return TradingSignal.hold()
