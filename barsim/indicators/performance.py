"""
Performance statistics of an equity or price curve.

Drawdowns are fractions of the running peak (0.1 is a 10% drawdown).
Windows shorter than ``n`` use the history available.
"""
from __future__ import annotations

from typing import Optional

import numpy as np

from ..engine.context import SimulationContext
from ..engine.identity import CacheKey, make_key
from ..engine.recurrence import buffered
from ..engine.series import LaggedSeries
from .basic import _floor, const, divide, highest, return_, subtract
from .trend import ema
from .volatility import fast_standard_deviation

# Smallest drawdown used as RoMaD denominator.
MIN_DRAWDOWN = 1e-3


def sharpe_ratio(ctx: SimulationContext, series: LaggedSeries,
                 risk_free: Optional[LaggedSeries], n: int,
                 parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    """Per-bar Sharpe ratio: EMA of excess return over its exponential std-dev.

    Parameters
    ----------
    series : LaggedSeries
        Price or equity curve.
    risk_free : LaggedSeries or None
        Risk-free price curve; ``None`` means a zero risk-free return.
    n : int
        Smoothing period.
    """
    key = make_key(parent, "performance.sharpe", series, risk_free, n, tag=tag)
    excess = return_(ctx, series, key)
    if risk_free is not None:
        excess = subtract(ctx, excess, return_(ctx, risk_free, key), key)
    return divide(
        ctx,
        ema(ctx, excess, n, key),
        fast_standard_deviation(ctx, excess, n, key),
        key,
    )


def drawdown(ctx: SimulationContext, series: LaggedSeries, n: int,
             parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    """``1 - s[0] / highest(s, n)``."""
    key = make_key(parent, "performance.drawdown", series, n, tag=tag)
    return subtract(
        ctx,
        const(ctx, 1.0, key),
        divide(ctx, series, highest(ctx, series, n, key), key),
        key,
    )


def max_drawdown(ctx: SimulationContext, series: LaggedSeries, n: int,
                 parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    """Largest peak-to-trough decline within the last ``n`` bars."""
    key = make_key(parent, "performance.max_drawdown", series, n, tag=tag)
    eps = ctx.epsilon

    def step(prev: float) -> float:
        path = series.window(n)[::-1]
        peaks = np.maximum.accumulate(path)
        return float(np.max(1.0 - path / np.maximum(peaks, eps)))

    return buffered(ctx, key, step, 0.0)


def return_on_max_drawdown(ctx: SimulationContext, series: LaggedSeries, n: int,
                           parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    """Return over ``n`` bars divided by the max drawdown over the same bars.

    0.0 until ``n`` bars of history exist.
    """
    key = make_key(parent, "performance.romad", series, n, tag=tag)
    dd = max_drawdown(ctx, series, n, key)
    eps = ctx.epsilon

    def step(prev: float) -> float:
        past = series.lookup(n)
        if not past.ready:
            return 0.0
        ret = series[0] / _floor(past.value, eps) - 1.0
        return ret / max(MIN_DRAWDOWN, dd[0])

    return buffered(ctx, key, step, 0.0)


def runup(ctx: SimulationContext, series: LaggedSeries, n: int,
          parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    """Gain of the current value over the lowest value of the last ``n`` bars."""
    key = make_key(parent, "performance.runup", series, n, tag=tag)
    eps = ctx.epsilon

    def step(prev: float) -> float:
        lowest = float(np.min(series.window(n)))
        return series[0] / _floor(lowest, eps) - 1.0

    return buffered(ctx, key, step, 0.0)
