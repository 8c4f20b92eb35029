"""Backtesting exports."""

from .engine import BacktestEngine, run_backtest
from .strategy import SMAStrategy, TradingStrategy
from .types import BacktestResult, Trade, TradingSignal

__all__ = [
    "BacktestEngine",
    "run_backtest",
    "SMAStrategy",
    "TradingStrategy",
    "BacktestResult",
    "Trade",
    "TradingSignal",
]
