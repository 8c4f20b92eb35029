from __future__ import annotations

import pytest

from candlelab.config import GeneratorSettings, ReplaySettings
from candlelab.market.candles import Candle
from candlelab.replay.session import ReplaySession, candle_sentiment


def make_session(loop, **kwargs) -> ReplaySession:
    return ReplaySession(
        generator_settings=GeneratorSettings(initial_price=2_000.0, interval_minutes=30, seed=4),
        replay_settings=ReplaySettings(speed=2.0),
        loop=loop,
        **kwargs,
    )


def test_start_generates_scenario_when_empty(loop) -> None:
    updates = []
    session = make_session(loop, on_candle_update=lambda candle, index: updates.append(index))

    session.start()
    assert len(session.candles) == 16
    assert session.engine is not None
    assert session.state().is_playing
    assert loop.pending()[0].when == pytest.approx(0.5)

    loop.run_all()
    assert updates == list(range(16))
    assert session.progress == pytest.approx(100.0)


def test_load_candles_accepts_raw_records(loop) -> None:
    session = make_session(loop)
    loaded = session.load_candles(
        [
            {"time": 600, "open": 2, "high": 3, "low": 1, "close": 2.5},
            Candle(300, 1.0, 2.0, 0.5, 1.5),
            {"time": 900, "open": "bad", "high": 3, "low": 1, "close": 2},
        ]
    )
    assert len(loaded) == 2
    assert [candle.time for candle in session.candles] == [300, 600]


def test_pause_then_start_resumes(loop) -> None:
    session = make_session(loop)
    session.start()
    loop.tick()
    session.pause()
    assert session.state().is_paused

    session.start()
    state = session.state()
    assert state.is_playing and not state.is_paused
    assert state.current_index == 0


def test_market_sentiment_tracks_closes(loop) -> None:
    session = make_session(loop)
    session.load_candles(
        [
            Candle(300, 1.0, 2.0, 0.5, 1.5),
            Candle(600, 1.5, 2.5, 1.0, 2.0),
            Candle(900, 2.0, 2.5, 1.0, 1.2),
        ]
    )
    session.start()
    loop.tick()
    assert session.market_sentiment == "neutral"
    loop.tick()
    assert session.market_sentiment == "bullish"
    loop.tick()
    assert session.market_sentiment == "bearish"


def test_seek_speed_and_rewind(loop) -> None:
    session = make_session(loop)
    assert session.seek(3) is False

    session.start()
    assert session.seek(3) is True
    session.change_speed(10.0)
    assert session.state().speed == 10.0
    with pytest.raises(ValueError):
        session.change_speed(-1)

    session.stop_and_rewind()
    state = session.state()
    assert state.current_index == -1
    assert not state.is_playing
    assert session.progress == 0.0


def test_restart_replaces_engine(loop) -> None:
    session = make_session(loop)
    session.start()
    first_engine = session.engine

    session.restart_with_new_scenario()
    assert session.engine is not first_engine
    assert not first_engine.has_pending_tick
    assert len(session.candles) == 16

    session.close()
    assert session.engine is None
    assert not loop.pending()


def test_candle_sentiment() -> None:
    candle = Candle(1, 1.0, 1.0, 1.0, 1.0)
    assert candle_sentiment(None, candle) == "neutral"
    assert candle_sentiment(Candle(0, 1.0, 1.0, 1.0, 0.5), candle) == "bullish"
    assert candle_sentiment(Candle(0, 1.0, 2.0, 1.0, 2.0), candle) == "bearish"


def test_start_after_replay_end_plays_again(loop) -> None:
    updates = []
    session = make_session(loop, on_candle_update=lambda candle, index: updates.append(index))
    session.load_candles([Candle(300, 1.0, 2.0, 0.5, 1.5), Candle(600, 1.5, 2.5, 1.0, 2.0)])
    session.start()
    loop.run_all()

    session.start()
    loop.run_all()
    assert updates == [0, 1, 0, 1]
