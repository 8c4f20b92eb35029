"""Timer-driven candle replay."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from typing import Callable, List, Optional, Sequence

from ..market.candles import Candle
from ..utils.logging import get_logger

LOGGER = get_logger(__name__)

DEFAULT_BASE_TICK_MS = 1_000.0
DEFAULT_MIN_TICK_MS = 50.0


def _noop(*_args: object) -> None:
    return None


@dataclass
class ReplayCallbacks:
    on_candle_update: Callable[[Candle, int], None] = _noop
    on_progress: Callable[[float], None] = _noop
    on_replay_end: Callable[[], None] = _noop


@dataclass
class ReplayState:
    candles: List[Candle] = field(default_factory=list)
    current_index: int = -1
    is_playing: bool = False
    is_paused: bool = False
    speed: float = 1.0
    total_candles: int = 0
    current_candle: Optional[Candle] = None


class ReplayEngine:
    """Advance a cursor over an ordered candle buffer at a configurable rate.

    States are Stopped (``is_playing`` false), Playing and Paused
    (``is_playing`` and ``is_paused``). Advancement runs on an asyncio event
    loop through ``call_later``; the engine keeps at most one pending timer
    handle and cancels it on every transition away from Playing.

    ``stop()`` keeps the cursor where it is; ``reset()`` rewinds it to -1.
    """

    def __init__(
        self,
        candles: Sequence[Candle],
        callbacks: Optional[ReplayCallbacks] = None,
        *,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        base_tick_ms: float = DEFAULT_BASE_TICK_MS,
        min_tick_ms: float = DEFAULT_MIN_TICK_MS,
    ) -> None:
        ordered = sorted(candles, key=lambda candle: candle.time)
        self._state = ReplayState(candles=ordered, total_candles=len(ordered))
        self._callbacks = callbacks or ReplayCallbacks()
        self._loop = loop
        self._base_tick_ms = float(base_tick_ms)
        self._min_tick_ms = float(min_tick_ms)
        self._handle: Optional[asyncio.TimerHandle] = None

    def get_state(self) -> ReplayState:
        return replace(self._state, candles=list(self._state.candles))

    @property
    def is_active(self) -> bool:
        return self._state.is_playing and not self._state.is_paused

    @property
    def has_pending_tick(self) -> bool:
        return self._handle is not None

    def tick_interval(self) -> float:
        """Seconds between advancement steps at the current speed."""
        return max(self._min_tick_ms, self._base_tick_ms / self._state.speed) / 1000.0

    def start(self, speed: float = 1.0) -> None:
        """Begin playback from the cursor.

        A replay that already reached its last candle is rewound and played
        again from the first candle.
        """
        if self.is_active:
            return
        if not self._state.candles:
            LOGGER.warning("Replay start ignored: no candles loaded")
            return
        self._state.speed = self._check_speed(speed)
        if self._state.current_index >= self._state.total_candles - 1:
            self._state.current_index = -1
            self._state.current_candle = None
        self._state.is_playing = True
        self._state.is_paused = False
        LOGGER.info(
            "Replay starting speed=%s total=%s index=%s",
            speed,
            self._state.total_candles,
            self._state.current_index,
        )
        self._schedule_next()

    def pause(self) -> None:
        if not self.is_active:
            return
        self._state.is_paused = True
        self._cancel_pending()
        LOGGER.info("Replay paused at index %s", self._state.current_index)

    def resume(self) -> None:
        if not self._state.is_playing or not self._state.is_paused:
            return
        self._state.is_paused = False
        self._schedule_next()
        LOGGER.info("Replay resumed from index %s", self._state.current_index)

    def stop(self) -> None:
        self._state.is_playing = False
        self._state.is_paused = False
        self._cancel_pending()
        LOGGER.info("Replay stopped at index %s", self._state.current_index)

    def reset(self) -> None:
        self.stop()
        self._state.current_index = -1
        self._state.current_candle = None
        LOGGER.info("Replay reset")

    def jump_to(self, index: int) -> bool:
        """Seek to ``index``; returns ``False`` and changes nothing when out of range."""
        if index < 0 or index >= self._state.total_candles:
            LOGGER.debug("Ignoring seek to %s (total=%s)", index, self._state.total_candles)
            return False

        was_playing = self.is_active
        self.pause()
        self._state.current_index = index
        self._state.current_candle = self._state.candles[index]
        self._callbacks.on_candle_update(self._state.current_candle, index)
        self._emit_progress()
        if was_playing:
            self.resume()
        LOGGER.info("Replay jumped to index %s", index)
        return True

    def set_speed(self, speed: float) -> None:
        self._state.speed = self._check_speed(speed)
        if self.is_active:
            self._schedule_next()

    def destroy(self) -> None:
        self.stop()
        self._callbacks = ReplayCallbacks()

    @staticmethod
    def _check_speed(speed: float) -> float:
        if speed <= 0:
            raise ValueError("speed must be positive")
        return float(speed)

    def _cancel_pending(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _schedule_next(self) -> None:
        self._cancel_pending()
        if not self.is_active:
            return
        loop = self._loop or asyncio.get_running_loop()
        self._handle = loop.call_later(self.tick_interval(), self._advance)

    def _advance(self) -> None:
        self._handle = None
        if not self.is_active:
            return

        self._state.current_index += 1
        if self._state.current_index >= self._state.total_candles:
            self._state.is_playing = False
            self._state.is_paused = False
            LOGGER.info("Replay finished after %s candles", self._state.total_candles)
            self._callbacks.on_replay_end()
            return

        index = self._state.current_index
        self._state.current_candle = self._state.candles[index]
        self._callbacks.on_candle_update(self._state.current_candle, index)
        self._emit_progress()
        self._schedule_next()

    def _emit_progress(self) -> None:
        total = self._state.total_candles
        progress = (self._state.current_index + 1) / total * 100 if total else 0.0
        self._callbacks.on_progress(progress)
