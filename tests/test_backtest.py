from __future__ import annotations

import statistics
from typing import Sequence

import pandas as pd
import pytest

from candlelab.backtest.engine import BacktestEngine, run_backtest
from candlelab.backtest.metrics import compute_returns, max_drawdown, sharpe_ratio, summary, win_rate
from candlelab.backtest.strategy import SMAStrategy, TradingStrategy
from candlelab.backtest.types import TRADE_COLUMNS, Trade, TradingSignal
from candlelab.config import BacktestSettings
from candlelab.market.candles import Candle
from candlelab.market.generator import MarketGenerator


def candles_from_closes(closes: Sequence[float]) -> list[Candle]:
    candles = []
    prev = closes[0]
    for idx, close in enumerate(closes):
        candles.append(Candle(1_000 + idx * 300, prev, max(prev, close) + 0.5, min(prev, close) - 0.5, close, 5.0))
        prev = close
    return candles


def flat_then_rising(level: float = 100.0, count: int = 30) -> list[Candle]:
    closes = [level] * 5 + [level + step for step in range(1, count - 4)]
    return candles_from_closes(closes)


def test_uptrend_produces_single_golden_cross() -> None:
    candles = flat_then_rising()
    settings = BacktestSettings()
    result = run_backtest(candles, SMAStrategy(3, 5), settings)

    assert len(result.trades) == 1
    trade = result.trades[0]
    assert trade.type == "buy"
    assert trade.open_time == candles[5].time
    assert trade.status == "closed"
    assert trade.close_time == candles[-1].time
    assert result.total_trades == 1
    assert result.winning_trades >= 1
    assert result.losing_trades == 0
    assert result.win_rate == pytest.approx(100.0)

    entry = candles[5].close * (1 + settings.slippage_rate)
    exit_ = candles[-1].close * (1 - settings.slippage_rate)
    expected_balance = (
        settings.initial_balance
        - entry * (1 + settings.commission_rate)
        + exit_ * (1 - settings.commission_rate)
    )
    assert result.end_balance == pytest.approx(expected_balance)
    assert trade.pnl == pytest.approx(exit_ - entry - exit_ * settings.commission_rate)
    assert len(result.equity) == len(candles) + 1


def test_backtest_is_deterministic() -> None:
    candles = MarketGenerator(20_000, seed=21).generate_trading_session(5)

    first = run_backtest(candles, SMAStrategy(5, 12))
    second = run_backtest(candles, SMAStrategy(5, 12))

    assert first.equity == second.equity
    assert first.total_pnl == pytest.approx(second.total_pnl)
    assert first.sharpe_ratio == pytest.approx(second.sharpe_ratio)
    assert [(t.open_time, t.close_time, t.pnl) for t in first.trades] == [
        (t.open_time, t.close_time, t.pnl) for t in second.trades
    ]


def test_engine_can_be_rerun() -> None:
    candles = flat_then_rising()
    engine = BacktestEngine(SMAStrategy(3, 5))
    first = engine.run_backtest(candles)
    second = engine.run_backtest(candles)
    assert first.end_balance == pytest.approx(second.end_balance)
    assert len(second.trades) == 1


def test_insufficient_funds_rejects_signal(caplog) -> None:
    candles = flat_then_rising(level=2_000.0)
    settings = BacktestSettings(initial_balance=1_000.0)

    with caplog.at_level("WARNING"):
        result = run_backtest(candles, SMAStrategy(3, 5), settings)

    assert result.trades == []
    assert result.total_trades == 0
    assert result.end_balance == pytest.approx(1_000.0)
    assert result.rejected_signals == 1
    assert set(result.equity) == {1_000.0}
    assert "Buy rejected" in caplog.text


class ScriptedStrategy(TradingStrategy):
    def __init__(self, script: dict[int, TradingSignal]) -> None:
        self.script = script
        self.closed: list[Trade] = []

    @property
    def name(self) -> str:
        return "Scripted"

    def generate_signal(self, candles, index) -> TradingSignal:
        signal = self.script.get(index)
        if signal is None:
            return TradingSignal.hold()
        return TradingSignal(signal.action, candles[index].close, signal.quantity, 1.0, "scripted")

    def on_trade(self, trade: Trade) -> None:
        self.closed.append(trade)


def test_custom_quantities_and_partial_sell_closes_whole_trades() -> None:
    candles = candles_from_closes([10.0, 11.0, 12.0, 13.0, 14.0, 15.0])
    strategy = ScriptedStrategy(
        {
            0: TradingSignal("buy", quantity=2.0),
            1: TradingSignal("buy", quantity=3.0),
            2: TradingSignal("buy", quantity=1.0),
            3: TradingSignal("sell", quantity=1.5),
        }
    )
    result = run_backtest(candles, strategy, BacktestSettings(commission_rate=0.0, slippage_rate=0.0))

    quantities = [trade.quantity for trade in result.trades]
    assert quantities == [2.0, 3.0, 1.0]
    assert [trade.close_time for trade in result.trades] == [candles[3].time, candles[3].time, candles[-1].time]
    assert result.trades[0].pnl == pytest.approx((13.0 - 10.0) * 2)
    assert result.trades[1].pnl == pytest.approx((13.0 - 11.0) * 3)
    assert result.trades[2].pnl == pytest.approx(15.0 - 12.0)
    assert result.total_pnl == pytest.approx(6.0 + 6.0 + 3.0)
    assert result.end_balance == pytest.approx(10_000.0 + 15.0)
    assert len(strategy.closed) == 3


def test_sell_without_position_is_ignored() -> None:
    candles = candles_from_closes([10.0, 11.0, 12.0])
    strategy = ScriptedStrategy({1: TradingSignal("sell", quantity=1.0)})
    result = run_backtest(candles, strategy)
    assert result.trades == []
    assert result.end_balance == pytest.approx(10_000.0)


def test_empty_input_raises() -> None:
    with pytest.raises(ValueError):
        run_backtest([], SMAStrategy())


def test_result_frames() -> None:
    result = run_backtest(flat_then_rising(), SMAStrategy(3, 5))
    frame = result.trades_frame()
    assert list(frame.columns) == TRADE_COLUMNS
    assert len(frame) == 1
    assert result.equity_series().name == "equity"


def test_sma_strategy_contract() -> None:
    strategy = SMAStrategy(3, 5)
    assert strategy.name == "SMA Crossover (3/5)"
    candles = flat_then_rising()
    assert strategy.generate_signal(candles, 4).reason == "Insufficient data"
    signal = strategy.generate_signal(candles, 5)
    assert signal.action == "buy"
    assert signal.reason == "Golden Cross"
    assert signal.quantity == 1.0

    falling = candles_from_closes([100.0] * 5 + [99.0, 98.0])
    signal = strategy.generate_signal(falling, 5)
    assert signal.action == "sell"
    assert signal.reason == "Death Cross"

    with pytest.raises(ValueError):
        SMAStrategy(5, 5)
    with pytest.raises(ValueError):
        SMAStrategy(0, 3)


def test_metrics() -> None:
    returns = pd.Series([0.1, -0.05, 0.02])
    expected = statistics.mean(returns) / statistics.pstdev(returns)
    assert sharpe_ratio(returns) == pytest.approx(expected)
    assert sharpe_ratio(pd.Series([0.01, 0.01])) == 0.0
    assert sharpe_ratio(pd.Series([], dtype=float)) == 0.0

    equity = pd.Series([100.0, 120.0, 90.0, 130.0])
    assert max_drawdown(equity) == pytest.approx(25.0)
    assert list(compute_returns(equity)) == pytest.approx([0.2, -0.25, 130 / 90 - 1])

    assert win_rate([1.0, -1.0, 0.0, 2.0]) == pytest.approx(50.0)
    assert win_rate([]) == 0.0

    stats = summary(equity, [1.0, -1.0])
    assert stats["win_rate"] == pytest.approx(50.0)
    assert stats["total_pnl"] == pytest.approx(0.0)
