"""Public I/O helpers for the candle sandbox."""

from .market_data import HttpMarketDataSource, MarketDataError, MarketDataSource, load_history

__all__ = ["HttpMarketDataSource", "MarketDataError", "MarketDataSource", "load_history"]
