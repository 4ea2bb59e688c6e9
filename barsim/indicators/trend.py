"""
Trend indicators: moving averages, KAMA and MACD.

All averages seed with the first observed input value, so on the first bar
their output equals that value.  Window averages use the values available
so far until ``n`` bars exist (SMA(3) over 1, 2 reads 1.5 on bar 2).
"""
from __future__ import annotations

import math
from typing import Optional

import numpy as np

from ..engine.context import SimulationContext
from ..engine.identity import CacheKey, make_key
from ..engine.recurrence import StatefulFunctor, buffered, functor
from ..engine.series import LaggedSeries
from .basic import add, delay, multiply, subtract


def _alpha(n: int) -> float:
    return 2.0 / (max(1, n) + 1.0)


def sma(ctx: SimulationContext, series: LaggedSeries, n: int,
        parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    """Simple moving average of the last ``n`` values."""
    key = make_key(parent, "trend.sma", series, n, tag=tag)
    return buffered(ctx, key, lambda prev: float(np.mean(series.window(n))), series[0])


def wma(ctx: SimulationContext, series: LaggedSeries, n: int,
        parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    """Linearly weighted moving average; the newest value weighs ``n``, the oldest 1.

    While the window fills, the weights of the available values are
    renormalised.
    """
    key = make_key(parent, "trend.wma", series, n, tag=tag)

    def step(prev: float) -> float:
        values = series.window(n)
        weights = np.arange(n, n - len(values), -1, dtype=np.float64)
        return float(np.dot(weights, values) / weights.sum())

    return buffered(ctx, key, step, series[0])


def ema(ctx: SimulationContext, series: LaggedSeries, n: int,
        parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    """Exponential moving average, ``alpha = 2 / (n + 1)``.

    Step: ``alpha * (x - prev) + prev``.  A NaN result is replaced by 0.0.
    """
    key = make_key(parent, "trend.ema", series, n, tag=tag)
    alpha = _alpha(n)
    return buffered(
        ctx, key,
        lambda prev: alpha * (series[0] - prev) + prev,
        series[0],
        nan_fallback=0.0,
    )


def envelope_detector(ctx: SimulationContext, series: LaggedSeries, n: int,
                      parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    """Follows rising input immediately and decays like an EMA on falling input."""
    key = make_key(parent, "trend.envelope", series, n, tag=tag)
    alpha = _alpha(n)

    def step(prev: float) -> float:
        x = series[0]
        return x if x >= prev else alpha * (x - prev) + prev

    return buffered(ctx, key, step, series[0], nan_fallback=0.0)


def dema(ctx: SimulationContext, series: LaggedSeries, n: int,
         parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    """Double EMA: ``EMA(2 * x) - EMA(EMA(x))``."""
    key = make_key(parent, "trend.dema", series, n, tag=tag)
    return subtract(
        ctx,
        ema(ctx, multiply(ctx, series, 2.0, key), n, key),
        ema(ctx, ema(ctx, series, n, key), n, key),
        key,
    )


def hma(ctx: SimulationContext, series: LaggedSeries, n: int,
        parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    """Hull moving average: ``WMA(2 * WMA(x, n/2) - WMA(x, n), sqrt(n))``."""
    key = make_key(parent, "trend.hma", series, n, tag=tag)
    half = max(1, int(round(n / 2.0)))
    root = max(1, int(round(math.sqrt(n))))
    raw = subtract(
        ctx,
        multiply(ctx, wma(ctx, series, half, key), 2.0, key),
        wma(ctx, series, n, key),
        key,
    )
    return wma(ctx, raw, root, key)


def tema(ctx: SimulationContext, series: LaggedSeries, n: int,
         parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    """Triple EMA: ``EMA(3x) - EMA(EMA(3x)) + EMA(EMA(EMA(x)))``."""
    key = make_key(parent, "trend.tema", series, n, tag=tag)
    triple = multiply(ctx, series, 3.0, key)
    e3 = ema(ctx, triple, n, key)
    ee3 = ema(ctx, e3, n, key)
    eee = ema(ctx, ema(ctx, ema(ctx, series, n, key), n, key), n, key)
    return add(ctx, subtract(ctx, e3, ee3, key), eee, key)


def zlema(ctx: SimulationContext, series: LaggedSeries, period: int,
          parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    """Ehlers' zero-lag EMA: ``EMA(x + (x - x[lag]))`` with ``lag = round((period - 1) / 2)``."""
    key = make_key(parent, "trend.zlema", series, period, tag=tag)
    lag = int(round((period - 1.0) / 2.0))
    momentum = subtract(ctx, series, delay(ctx, series, lag, key), key)
    return ema(ctx, add(ctx, series, momentum, key), period, key)


def kama(ctx: SimulationContext, series: LaggedSeries, er_period: int = 10,
         fast_ema: int = 2, slow_ema: int = 30,
         parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    """Kaufman's adaptive moving average.

    Until ``er_period`` bars of history exist, the output is the current
    input value rather than an error.  This fallback is particular to KAMA;
    other formulas either use their own documented neutral value or let
    ``InsufficientHistoryError`` propagate.
    """
    key = make_key(parent, "trend.kama", series, er_period, fast_ema, slow_ema, tag=tag)
    sc_fast = 2.0 / (1.0 + fast_ema)
    sc_slow = 2.0 / (1.0 + slow_ema)
    eps = ctx.epsilon

    def step(prev: float) -> float:
        now = series[0]
        past = series.lookup(er_period)
        if not past.ready:
            return now
        path = series.window(er_period + 1)
        volatility = float(np.abs(np.diff(path)).sum())
        efficiency = abs(now - past.value) / max(eps, volatility)
        smoothing = (efficiency * (sc_fast - sc_slow) + sc_slow) ** 2
        return smoothing * (now - prev) + prev

    return buffered(ctx, key, step, series[0], nan_fallback=0.0)


class MACD(StatefulFunctor):
    """Moving average convergence/divergence.

    Outputs (all ``LaggedSeries``): ``fast`` and ``slow`` EMAs, ``macd``
    (fast - slow), ``signal`` (EMA of macd) and ``divergence``
    (macd - signal).  The EMAs are keyed under the MACD key, so they never
    share state with a bare ``ema`` call using the same period.
    """

    def __init__(self, ctx: SimulationContext, key: CacheKey, series: LaggedSeries,
                 fast: int, slow: int, signal: int) -> None:
        super().__init__(ctx, key)
        self._series = series
        self._periods = (fast, slow, signal)
        self.fast: Optional[LaggedSeries] = None
        self.slow: Optional[LaggedSeries] = None
        self.macd: Optional[LaggedSeries] = None
        self.signal: Optional[LaggedSeries] = None
        self.divergence: Optional[LaggedSeries] = None

    def _update(self) -> None:
        ctx, key, series = self._ctx, self.key, self._series
        fast, slow, signal = self._periods
        fast_ema = ema(ctx, series, fast, key)
        slow_ema = ema(ctx, series, slow, key)
        line = subtract(ctx, fast_ema, slow_ema, key)
        signal_line = ema(ctx, line, signal, key)
        divergence = subtract(ctx, line, signal_line, key)
        self.fast, self.slow, self.macd = fast_ema, slow_ema, line
        self.signal, self.divergence = signal_line, divergence

    @property
    def outputs(self):
        return {
            "fast": self.fast,
            "slow": self.slow,
            "macd": self.macd,
            "signal": self.signal,
            "divergence": self.divergence,
        }


def macd(ctx: SimulationContext, series: LaggedSeries, fast: int = 12, slow: int = 26,
         signal: int = 9, parent: Optional[CacheKey] = None, tag=None) -> MACD:
    """MACD for the current bar (see ``MACD``)."""
    key = make_key(parent, "trend.macd", series, fast, slow, signal, tag=tag)
    return functor(ctx, key, lambda: MACD(ctx, key, series, fast, slow, signal), MACD)
