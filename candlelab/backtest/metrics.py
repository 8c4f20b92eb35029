"""Performance metric helpers for backtests."""
from __future__ import annotations

from typing import Iterable

import numpy as np
import pandas as pd


def compute_returns(equity: pd.Series) -> pd.Series:
    """Period returns ``(e[i] - e[i-1]) / e[i-1]``; the first sample has none."""
    return equity.pct_change().iloc[1:]


def sharpe_ratio(returns: pd.Series) -> float:
    """Mean over population standard deviation, not annualised."""
    if returns.empty:
        return 0.0
    std = float(returns.std(ddof=0))
    if std == 0 or not np.isfinite(std):
        return 0.0
    return float(returns.mean() / std)


def max_drawdown(equity: pd.Series) -> float:
    """Largest peak-to-trough decline in percent of the running peak."""
    if equity.empty:
        return 0.0
    running_max = equity.cummax()
    drawdowns = (running_max - equity) / running_max * 100
    return float(max(drawdowns.max(), 0.0))


def win_rate(pnls: Iterable[float]) -> float:
    """Share of winning trades in percent; a zero P&L counts as a loss."""
    values = np.asarray(list(pnls), dtype=float)
    if values.size == 0:
        return 0.0
    return float((values > 0).sum() / values.size * 100)


def summary(equity: pd.Series, pnls: Iterable[float]) -> dict[str, float]:
    pnl_list = list(pnls)
    return {
        "sharpe": sharpe_ratio(compute_returns(equity)),
        "max_drawdown": max_drawdown(equity),
        "win_rate": win_rate(pnl_list),
        "total_pnl": float(sum(pnl_list)),
    }
