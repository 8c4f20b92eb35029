from __future__ import annotations

from datetime import datetime, timezone

import pytest

from candlelab.market.candles import coerce_records
from candlelab.market.trend import SYMBOL_PROFILES, TrendGenerator, generate_tick_series
from candlelab.market.validation import validate_candle_sequence


def test_candle_sequence_covers_range() -> None:
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    end = datetime(2024, 1, 2, tzinfo=timezone.utc)
    candles = TrendGenerator(1_000.0, seed=2).generate_candle_sequence(start, end, 60)

    assert len(candles) == 24
    assert candles[0].time == int(start.timestamp())
    for candle in candles:
        assert candle.high >= max(candle.open, candle.close)
        assert candle.low <= min(candle.open, candle.close)

    with pytest.raises(ValueError):
        TrendGenerator(seed=1).generate_candle_sequence(start, end, 0)


def test_tick_series_is_five_minute_and_inclusive() -> None:
    records = generate_tick_series("xauusd", "2024-01-01", "2024-01-02", seed=8)

    assert len(records) == 2 * 288
    assert records[0]["timestamp"] == "2024-01-01T00:00:00Z"
    assert records[-1]["timestamp"] == "2024-01-02T23:55:00Z"
    assert all(record["symbol"] == "XAUUSD" for record in records)
    assert all(50 <= record["volume"] <= 549 for record in records)

    start = SYMBOL_PROFILES["XAUUSD"].start_price
    assert start <= records[0]["open"] <= start + SYMBOL_PROFILES["XAUUSD"].start_jitter

    candles = coerce_records(records)
    assert validate_candle_sequence(candles).is_valid


def test_tick_series_rejects_inverted_range() -> None:
    with pytest.raises(ValueError):
        generate_tick_series("BTCUSD", "2024-01-05", "2024-01-01")


def test_tick_series_seed_is_reproducible() -> None:
    assert generate_tick_series("EURUSD", "2024-03-01", "2024-03-01", seed=1) == generate_tick_series(
        "EURUSD", "2024-03-01", "2024-03-01", seed=1
    )
