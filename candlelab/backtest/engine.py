"""Single-pass, event-ordered backtest engine with commission and slippage."""
from __future__ import annotations

import math
import uuid
from dataclasses import replace
from typing import List, Optional, Sequence

import pandas as pd

from ..config import BacktestSettings
from ..market.candles import Candle
from ..utils.logging import get_logger
from .metrics import compute_returns, max_drawdown, sharpe_ratio, win_rate
from .strategy import TradingStrategy
from .types import BacktestResult, Trade, TradingSignal

LOGGER = get_logger(__name__)


class BacktestEngine:
    """Replay candles once through a strategy and account for every fill.

    Per candle the engine marks open positions to market, asks the strategy
    for a signal and executes it. Remaining positions are closed at the last
    close when the data runs out.
    """

    def __init__(self, strategy: TradingStrategy, settings: Optional[BacktestSettings] = None) -> None:
        self.strategy = strategy
        self.settings = settings or BacktestSettings()
        self._reset()

    def _reset(self) -> None:
        self.trades: List[Trade] = []
        self.open_trades: List[Trade] = []
        self.balance = self.settings.initial_balance
        self.equity: List[float] = [self.settings.initial_balance]
        self.max_equity = self.settings.initial_balance
        self.rejected_signals = 0

    def run_backtest(self, candles: Sequence[Candle]) -> BacktestResult:
        if not candles:
            raise ValueError("candles must not be empty")
        LOGGER.info(
            "Backtest starting strategy=%s candles=%s balance=%.2f",
            self.strategy.name,
            len(candles),
            self.settings.initial_balance,
        )
        self._reset()
        for index in range(len(candles)):
            self._process_candle(candles, index)
        last = candles[-1]
        for trade in list(self.open_trades):
            self._close_trade(trade, last, last.close)
        return self._results()

    def _process_candle(self, candles: Sequence[Candle], index: int) -> None:
        candle = candles[index]
        self._mark_to_market(candle)
        signal = self.strategy.generate_signal(candles, index)
        if signal.action == "buy":
            self._execute_buy(candle, signal)
        elif signal.action == "sell":
            self._execute_sell(candle, signal)
        self._check_exits(candle)

    def _mark_to_market(self, candle: Candle) -> None:
        unrealised = 0.0
        for trade in self.open_trades:
            direction = 1 if trade.type == "buy" else -1
            unrealised += (candle.close - trade.open_price) * trade.quantity * direction
        current = self.balance + unrealised
        self.equity.append(current)
        self.max_equity = max(self.max_equity, current)

    def apply_slippage(self, price: float, side: str) -> float:
        slippage = price * self.settings.slippage_rate
        return price + slippage if side == "buy" else price - slippage

    def _execute_buy(self, candle: Candle, signal: TradingSignal) -> None:
        price = self.apply_slippage(signal.price, "buy")
        commission = price * signal.quantity * self.settings.commission_rate
        total_cost = price * signal.quantity + commission
        if total_cost > self.balance:
            self.rejected_signals += 1
            LOGGER.warning(
                "Buy rejected at %s: cost %.2f exceeds balance %.2f (%s)",
                candle.time,
                total_cost,
                self.balance,
                signal.reason,
            )
            return

        trade = Trade(
            id=f"trade_{uuid.uuid4().hex}",
            type="buy",
            open_price=price,
            open_time=candle.time,
            quantity=signal.quantity,
        )
        self.balance -= total_cost
        self.open_trades.append(trade)
        self.trades.append(trade)
        LOGGER.debug(
            "Buy filled price=%.4f qty=%s cost=%.2f balance=%.2f",
            price,
            signal.quantity,
            total_cost,
            self.balance,
        )

    def _execute_sell(self, candle: Candle, signal: TradingSignal) -> None:
        # Whole trades are closed oldest first regardless of their own size.
        count = math.ceil(signal.quantity)
        to_close = [trade for trade in self.open_trades if trade.type == "buy"][:count]
        for trade in to_close:
            self._close_trade(trade, candle, signal.price)

    def _close_trade(self, trade: Trade, candle: Candle, close_price: float) -> None:
        price = self.apply_slippage(close_price, "sell")
        commission = price * trade.quantity * self.settings.commission_rate
        if trade.type == "buy":
            pnl = (price - trade.open_price) * trade.quantity - commission
        else:
            pnl = (trade.open_price - price) * trade.quantity - commission

        trade.close_price = price
        trade.close_time = candle.time
        trade.pnl = pnl
        trade.status = "closed"
        self.balance += price * trade.quantity - commission
        self.open_trades = [item for item in self.open_trades if item.id != trade.id]
        self.strategy.on_trade(trade)
        LOGGER.debug("Trade %s closed pnl=%.2f balance=%.2f", trade.id, pnl, self.balance)

    def _check_exits(self, candle: Candle) -> None:
        """Stop-loss / take-profit hook; positions only exit on signals or at the end."""

    def _results(self) -> BacktestResult:
        closed = [trade for trade in self.trades if trade.status == "closed"]
        pnls = [trade.pnl or 0.0 for trade in closed]
        winners = sum(1 for pnl in pnls if pnl > 0)
        equity = pd.Series(self.equity, dtype=float)

        result = BacktestResult(
            trades=[replace(trade) for trade in self.trades],
            total_trades=len(closed),
            winning_trades=winners,
            losing_trades=len(closed) - winners,
            win_rate=win_rate(pnls),
            total_pnl=float(sum(pnls)),
            max_drawdown=max_drawdown(equity),
            sharpe_ratio=sharpe_ratio(compute_returns(equity)),
            start_balance=self.settings.initial_balance,
            end_balance=self.balance,
            equity=list(self.equity),
            rejected_signals=self.rejected_signals,
        )
        LOGGER.info(
            "Backtest finished trades=%s win_rate=%.1f%% pnl=%.2f max_dd=%.2f%% rejected=%s",
            result.total_trades,
            result.win_rate,
            result.total_pnl,
            result.max_drawdown,
            result.rejected_signals,
        )
        return result


def run_backtest(
    candles: Sequence[Candle],
    strategy: TradingStrategy,
    settings: Optional[BacktestSettings] = None,
) -> BacktestResult:
    return BacktestEngine(strategy, settings).run_backtest(candles)
