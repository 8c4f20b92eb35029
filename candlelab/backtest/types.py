"""Records produced and consumed by the backtest engine."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import List, Optional

import pandas as pd

TRADE_COLUMNS = [
    "id",
    "type",
    "open_price",
    "close_price",
    "open_time",
    "close_time",
    "quantity",
    "pnl",
    "status",
]


@dataclass
class Trade:
    id: str
    type: str
    open_price: float
    open_time: int
    quantity: float
    status: str = "open"
    close_price: Optional[float] = None
    close_time: Optional[int] = None
    pnl: Optional[float] = None


@dataclass(frozen=True)
class TradingSignal:
    action: str
    price: float = 0.0
    quantity: float = 0.0
    confidence: float = 0.0
    reason: str = ""

    @classmethod
    def hold(cls, reason: str = "No signal") -> "TradingSignal":
        return cls(action="hold", reason=reason)


@dataclass(frozen=True)
class BacktestResult:
    trades: List[Trade]
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: float
    total_pnl: float
    max_drawdown: float
    sharpe_ratio: float
    start_balance: float
    end_balance: float
    equity: List[float] = field(default_factory=list)
    rejected_signals: int = 0

    def trades_frame(self) -> pd.DataFrame:
        return pd.DataFrame([asdict(trade) for trade in self.trades], columns=TRADE_COLUMNS)

    def equity_series(self) -> pd.Series:
        return pd.Series(self.equity, name="equity", dtype=float)
