"""Synthetic market generation, candle replay and backtesting sandbox."""

__version__ = "0.1.0"
