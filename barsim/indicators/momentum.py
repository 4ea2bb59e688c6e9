"""
Momentum and oscillator indicators.

Oscillators that take an ``Instrument`` or a plain series (CCI, Williams
%R, stochastic) key the instrument variant on the instrument identity, so
``cci(ctx, spx)`` and ``cci(ctx, spx.close)`` are distinct computations.
Every denominator is floored at ``numerics.epsilon``; on a perfectly flat
input CCI, ADX, stochastic %K and Williams %R read 0 and RSI reads 50.
"""
from __future__ import annotations

import math
from typing import Optional, Union

import numpy as np

from ..engine.context import SimulationContext
from ..engine.identity import CacheKey, make_key
from ..engine.instrument import Instrument
from ..engine.recurrence import StatefulFunctor, buffered, functor
from ..engine.series import LaggedSeries
from .basic import _floor, abs_value, highest, log, lowest, maximum, minimum, multiply
from .basic import return_, subtract, typical_price
from .trend import ema, sma

Source = Union[Instrument, LaggedSeries]


# ── Momentum family ───────────────────────────────────────────────────


def simple_momentum(ctx: SimulationContext, series: LaggedSeries, n: int = 21,
                    parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    """``s[0] / s[n] - 1``; 0.0 until ``n`` bars of history exist."""
    key = make_key(parent, "momentum.simple", series, n, tag=tag)
    eps = ctx.epsilon

    def step(prev: float) -> float:
        past = series.lookup(n)
        if not past.ready:
            return 0.0
        return series[0] / _floor(past.value, eps) - 1.0

    return buffered(ctx, key, step, 0.0)


def _log_change(series: LaggedSeries, n: int, eps: float) -> Optional[float]:
    past = series.lookup(n)
    if not past.ready:
        return None
    return math.log(max(eps, series[0]) / max(eps, past.value))


def log_momentum(ctx: SimulationContext, series: LaggedSeries, n: int = 21,
                 parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    """``log(s[0] / s[n])``; 0.0 until ``n`` bars of history exist."""
    key = make_key(parent, "momentum.log", series, n, tag=tag)
    eps = ctx.epsilon

    def step(prev: float) -> float:
        change = _log_change(series, n, eps)
        return 0.0 if change is None else change

    return buffered(ctx, key, step, 0.0)


def momentum(ctx: SimulationContext, series: LaggedSeries, n: int = 21,
             parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    """Per-bar log momentum ``log(s[0] / s[n]) / n``."""
    key = make_key(parent, "momentum.momentum", series, n, tag=tag)
    eps = ctx.epsilon

    def step(prev: float) -> float:
        change = _log_change(series, n, eps)
        return 0.0 if change is None else change / max(1, n)

    return buffered(ctx, key, step, 0.0)


# ── Oscillators ───────────────────────────────────────────────────────


def cci(ctx: SimulationContext, source: Source, n: int = 20,
        parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    """Commodity channel index.

    Parameters
    ----------
    source : Instrument or LaggedSeries
        An instrument is evaluated on its typical price.
    n : int
        Window of the mean and of the mean deviation.
    """
    key = make_key(parent, "momentum.cci", source, n, tag=tag)
    series = typical_price(ctx, source, key) if isinstance(source, Instrument) else source
    delta = subtract(ctx, series, sma(ctx, series, n, key), key)
    mean_deviation = sma(ctx, abs_value(ctx, delta, key), n, key)
    eps = ctx.epsilon

    def step(prev: float) -> float:
        return delta[0] / max(eps, 0.015 * mean_deviation[0])

    return buffered(ctx, key, step, 0.5)


def tsi(ctx: SimulationContext, series: LaggedSeries, r: int = 25, s: int = 13,
        parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    """True strength index: double-smoothed return over double-smoothed absolute return."""
    key = make_key(parent, "momentum.tsi", series, r, s, tag=tag)
    change = return_(ctx, series, key)
    numerator = ema(ctx, ema(ctx, change, r, key), s, key)
    denominator = ema(ctx, ema(ctx, abs_value(ctx, change, key), r, key), s, key)
    eps = ctx.epsilon

    def step(prev: float) -> float:
        return 100.0 * numerator[0] / max(eps, denominator[0])

    return buffered(ctx, key, step, 0.5)


def rsi(ctx: SimulationContext, series: LaggedSeries, n: int = 14,
        parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    """Relative strength index on EMA-smoothed gains and losses.

    Reads 50 when there has been neither gain nor loss.
    """
    key = make_key(parent, "momentum.rsi", series, n, tag=tag)
    change = return_(ctx, series, key)
    avg_up = ema(ctx, maximum(ctx, change, 0.0, key), n, key)
    avg_down = ema(ctx, multiply(ctx, minimum(ctx, change, 0.0, key), -1.0, key), n, key)
    eps = ctx.epsilon

    def step(prev: float) -> float:
        up, down = avg_up[0], avg_down[0]
        if up + down < eps:
            return 50.0
        return 100.0 - 100.0 / (1.0 + up / max(eps, down))

    return buffered(ctx, key, step, 50.0)


def _range_inputs(source: Source):
    if isinstance(source, Instrument):
        return source.high, source.low, source.close
    return source, source, source


def williams_percent_r(ctx: SimulationContext, source: Source, n: int = 10,
                       parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    """Williams %R in [-100, 0]; an instrument uses its high, low and close."""
    key = make_key(parent, "momentum.williams", source, n, tag=tag)
    high, low, close = _range_inputs(source)
    hh = highest(ctx, high, n, key)
    ll = lowest(ctx, low, n, key)
    eps = ctx.epsilon

    def step(prev: float) -> float:
        return -100.0 * (hh[0] - close[0]) / max(eps, hh[0] - ll[0])

    return buffered(ctx, key, step, -50.0)


class Stochastic(StatefulFunctor):
    """Stochastic oscillator with ``percent_k`` and its SMA ``percent_d``."""

    def __init__(self, ctx: SimulationContext, key: CacheKey, source: Source,
                 n: int, smoothing: int) -> None:
        super().__init__(ctx, key)
        self._source = source
        self._n = n
        self._smoothing = smoothing
        self.percent_k: Optional[LaggedSeries] = None
        self.percent_d: Optional[LaggedSeries] = None

    def _update(self) -> None:
        ctx, key = self._ctx, self.key
        high, low, close = _range_inputs(self._source)
        hh = highest(ctx, high, self._n, key)
        ll = lowest(ctx, low, self._n, key)
        eps = ctx.epsilon

        def step(prev: float) -> float:
            return 100.0 * (close[0] - ll[0]) / max(eps, hh[0] - ll[0])

        self.percent_k = buffered(ctx, key.child("momentum.stochastic.k"), step, 50.0)
        self.percent_d = sma(ctx, self.percent_k, self._smoothing, key)

    @property
    def outputs(self):
        return {"percent_k": self.percent_k, "percent_d": self.percent_d}


def stochastic(ctx: SimulationContext, source: Source, n: int = 14, smoothing: int = 3,
               parent: Optional[CacheKey] = None, tag=None) -> Stochastic:
    key = make_key(parent, "momentum.stochastic", source, n, smoothing, tag=tag)
    return functor(ctx, key, lambda: Stochastic(ctx, key, source, n, smoothing), Stochastic)


# ── Regression ────────────────────────────────────────────────────────


class Regression(StatefulFunctor):
    """Least-squares line through the last ``n`` values.

    The newest value sits at x = 0 and older values at negative x, so
    ``intercept`` is the fitted value for the current bar.  While fewer than
    ``n`` values exist, the fit uses those available; with fewer than two
    the slope is 0.  ``r2`` is 0 when the values have no variance.
    """

    def __init__(self, ctx: SimulationContext, key: CacheKey, series: LaggedSeries, n: int) -> None:
        super().__init__(ctx, key)
        self._series = series
        self._n = n
        self.slope = self._output("slope")
        self.intercept = self._output("intercept")
        self.r2 = self._output("r2")

    def _update(self) -> None:
        y = self._series.window(self._n)
        if y.shape[0] < 2:
            self._publish(slope=0.0, intercept=float(y[0]), r2=0.0)
            return
        x = -np.arange(y.shape[0], dtype=np.float64)
        avg_x, avg_y = x.mean(), y.mean()
        sxx = float(np.sum((x - avg_x) ** 2))
        sxy = float(np.sum((x - avg_x) * (y - avg_y)))
        b = sxy / sxx
        a = avg_y - b * avg_x
        ss_tot = float(np.sum((y - avg_y) ** 2))
        ss_reg = float(np.sum((a + b * x - avg_y) ** 2))
        r2 = ss_reg / ss_tot if ss_tot != 0.0 else 0.0
        self._publish(slope=b, intercept=float(a), r2=r2)


def lin_regression(ctx: SimulationContext, series: LaggedSeries, n: int,
                   parent: Optional[CacheKey] = None, tag=None) -> Regression:
    key = make_key(parent, "momentum.lin_regression", series, n, tag=tag)
    return functor(ctx, key, lambda: Regression(ctx, key, series, n), Regression)


def log_regression(ctx: SimulationContext, series: LaggedSeries, n: int,
                   parent: Optional[CacheKey] = None, tag=None) -> Regression:
    """Linear regression of ``log(series)``; the slope is a per-bar log growth rate."""
    key = make_key(parent, "momentum.log_regression", series, n, tag=tag)
    return lin_regression(ctx, log(ctx, series, key), n, key)


# ── Directional movement ──────────────────────────────────────────────


def adx(ctx: SimulationContext, instrument: Instrument, n: int = 14,
        parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    """Average directional index (EMA smoothed), in [0, 100]."""
    key = make_key(parent, "momentum.adx", instrument, n, tag=tag)
    high, low = instrument.high, instrument.low

    def moves():
        prev_high, prev_low = high.lookup(1), low.lookup(1)
        if not (prev_high.ready and prev_low.ready):
            return 0.0, 0.0
        up = max(0.0, high[0] - prev_high.value)
        down = max(0.0, prev_low.value - low[0])
        return up, down

    def plus_step(prev: float) -> float:
        up, down = moves()
        return up if up > down else 0.0

    def minus_step(prev: float) -> float:
        up, down = moves()
        return down if down > up else 0.0

    plus_dm = buffered(ctx, key.child("momentum.adx.plus_dm"), plus_step, 0.0)
    minus_dm = buffered(ctx, key.child("momentum.adx.minus_dm"), minus_step, 0.0)
    plus_di = ema(ctx, plus_dm, n, key)
    minus_di = ema(ctx, minus_dm, n, key)
    eps = ctx.epsilon

    def dx_step(prev: float) -> float:
        p, m = plus_di[0], minus_di[0]
        return 100.0 * abs(p - m) / max(eps, p + m)

    dx = buffered(ctx, key.child("momentum.adx.dx"), dx_step, 0.0)
    return ema(ctx, dx, n, key)
