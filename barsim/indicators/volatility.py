"""Dispersion and range indicators."""
from __future__ import annotations

import math
from typing import Optional

import numpy as np

from ..engine.context import SimulationContext
from ..engine.identity import CacheKey, make_key
from ..engine.instrument import Instrument
from ..engine.recurrence import buffered
from ..engine.series import LaggedSeries
from .basic import multiply
from .trend import ema, sma


def fast_standard_deviation(ctx: SimulationContext, series: LaggedSeries, n: int,
                            parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    """Exponentially weighted standard deviation ``sqrt(EMA(x^2) - EMA(x)^2)``.

    O(1) per bar.  Rounding can make the variance slightly negative on flat
    input; it is clipped at zero.
    """
    key = make_key(parent, "volatility.fast_std", series, n, tag=tag)
    mean = ema(ctx, series, n, key)
    mean_sq = ema(ctx, multiply(ctx, series, series, key), n, key)

    def step(prev: float) -> float:
        return math.sqrt(max(0.0, mean_sq[0] - mean[0] ** 2))

    return buffered(ctx, key, step, 0.0)


def standard_deviation(ctx: SimulationContext, series: LaggedSeries, n: int,
                       parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    """Population standard deviation of the last ``n`` values."""
    key = make_key(parent, "volatility.std", series, n, tag=tag)
    return buffered(ctx, key, lambda prev: float(np.std(series.window(n))), 0.0)


def true_range(ctx: SimulationContext, instrument: Instrument,
               parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    """``max(high, prev close) - min(low, prev close)``; ``high - low`` on the first bar."""
    key = make_key(parent, "volatility.true_range", instrument, tag=tag)
    high, low, close = instrument.high, instrument.low, instrument.close

    def step(prev: float) -> float:
        last = close.lookup(1)
        if not last.ready:
            return high[0] - low[0]
        return max(high[0], last.value) - min(low[0], last.value)

    return buffered(ctx, key, step, 0.0)


def average_true_range(ctx: SimulationContext, instrument: Instrument, n: int = 14,
                       parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    key = make_key(parent, "volatility.atr", instrument, n, tag=tag)
    return sma(ctx, true_range(ctx, instrument, key), n, key)
