"""Replay session: owns the generator, the loaded candles and the replay engine."""
from __future__ import annotations

import asyncio
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence

from ..config import GeneratorSettings, ReplaySettings
from ..market.candles import Candle, coerce_records
from ..market.generator import MarketGenerator
from ..utils.logging import get_logger
from .engine import ReplayCallbacks, ReplayEngine, ReplayState

LOGGER = get_logger(__name__)


def candle_sentiment(previous: Optional[Candle], current: Candle) -> str:
    """Classify a step as bullish/bearish/neutral by comparing closes."""
    if previous is None:
        return "neutral"
    if current.close > previous.close:
        return "bullish"
    if current.close < previous.close:
        return "bearish"
    return "neutral"


class ReplaySession:
    """One playback session for a chart.

    The session is explicitly constructed and owned by its caller. Loading new
    data (generated or fetched) tears down the current engine and builds a new
    one, so at most one engine and one pending timer exist per session.
    """

    def __init__(
        self,
        generator: Optional[MarketGenerator] = None,
        *,
        generator_settings: Optional[GeneratorSettings] = None,
        replay_settings: Optional[ReplaySettings] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        on_candle_update: Optional[Callable[[Candle, int], None]] = None,
        on_progress: Optional[Callable[[float], None]] = None,
        on_replay_end: Optional[Callable[[], None]] = None,
    ) -> None:
        self.generator_settings = generator_settings or GeneratorSettings()
        self.replay_settings = replay_settings or ReplaySettings()
        self.generator = generator or MarketGenerator(
            self.generator_settings.initial_price,
            seed=self.generator_settings.seed,
            session_open_hour=self.generator_settings.session_open_hour,
        )
        self._loop = loop
        self._on_candle_update = on_candle_update
        self._on_progress = on_progress
        self._on_replay_end = on_replay_end
        self.speed = self.replay_settings.speed
        self.progress = 0.0
        self.market_sentiment = "neutral"
        self.engine: Optional[ReplayEngine] = None
        self._candles: List[Candle] = []

    @property
    def candles(self) -> List[Candle]:
        return list(self._candles)

    def state(self) -> ReplayState:
        return self.engine.get_state() if self.engine else ReplayState(speed=self.speed)

    def generate_new_scenario(self) -> List[Candle]:
        self.generator.generate_new_scenario()
        candles = self.generator.generate_trading_session(self.generator_settings.interval_minutes)
        self._load(candles)
        LOGGER.info(
            "Scenario ready: %s candles sentiment=%s",
            len(candles),
            self.generator.sentiment,
        )
        return candles

    def load_candles(self, records: Iterable[Mapping[str, Any] | Candle]) -> List[Candle]:
        """Load fetched data; raw records are coerced and unusable rows dropped."""
        items = list(records)
        candles = [item for item in items if isinstance(item, Candle)]
        raw = [item for item in items if not isinstance(item, Candle)]
        candles.extend(coerce_records(raw))
        self._load(candles)
        LOGGER.info("Loaded %s candles into replay (%s dropped)", len(candles), len(items) - len(candles))
        return candles

    def start(self) -> None:
        if self.engine is None or not self._candles:
            self.generate_new_scenario()
        engine = self.engine
        if engine is None:
            return
        state = engine.get_state()
        if state.is_playing and state.is_paused:
            engine.resume()
        else:
            engine.start(self.speed)

    def pause(self) -> None:
        if self.engine:
            self.engine.pause()

    def stop_and_rewind(self) -> None:
        """Stop playback and move the cursor back before the first candle."""
        if self.engine:
            self.engine.reset()
        self.progress = 0.0
        self.market_sentiment = "neutral"

    def restart_with_new_scenario(self) -> List[Candle]:
        self.stop_and_rewind()
        return self.generate_new_scenario()

    def seek(self, index: int) -> bool:
        return self.engine.jump_to(index) if self.engine else False

    def change_speed(self, speed: float) -> None:
        if speed <= 0:
            raise ValueError("speed must be positive")
        self.speed = float(speed)
        if self.engine:
            self.engine.set_speed(self.speed)

    def close(self) -> None:
        if self.engine:
            self.engine.destroy()
            self.engine = None

    def _load(self, candles: Sequence[Candle]) -> None:
        self.close()
        self.progress = 0.0
        self.market_sentiment = "neutral"
        self.engine = ReplayEngine(
            candles,
            ReplayCallbacks(
                on_candle_update=self._handle_candle,
                on_progress=self._handle_progress,
                on_replay_end=self._handle_end,
            ),
            loop=self._loop,
            base_tick_ms=self.replay_settings.base_tick_ms,
            min_tick_ms=self.replay_settings.min_tick_ms,
        )
        self._candles = self.engine.get_state().candles

    def _handle_candle(self, candle: Candle, index: int) -> None:
        previous = self._candles[index - 1] if index > 0 else None
        self.market_sentiment = candle_sentiment(previous, candle)
        if self._on_candle_update:
            self._on_candle_update(candle, index)

    def _handle_progress(self, progress: float) -> None:
        self.progress = progress
        if self._on_progress:
            self._on_progress(progress)

    def _handle_end(self) -> None:
        if self._on_replay_end:
            self._on_replay_end()
