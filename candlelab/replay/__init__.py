from .engine import ReplayCallbacks, ReplayEngine, ReplayState
from .session import ReplaySession, candle_sentiment

__all__ = ["ReplayCallbacks", "ReplayEngine", "ReplayState", "ReplaySession", "candle_sentiment"]
