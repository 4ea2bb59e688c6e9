"""
Basic building blocks: constants, lags, arithmetic, returns and window extremes.

Every function takes the run context first, returns a ``LaggedSeries`` and
accepts ``parent`` (key of the calling indicator) and ``tag`` (extra
discriminator) so that composites can key their intermediate results.
Binary operators accept a series or a plain number as second operand.
"""
from __future__ import annotations

import math
from typing import Callable, Optional, Union

import numpy as np

from ..engine.context import SimulationContext
from ..engine.identity import CacheKey, make_key
from ..engine.instrument import Instrument
from ..engine.recurrence import buffered
from ..engine.series import LaggedSeries

Operand = Union[LaggedSeries, float]


def _current(operand: Operand) -> Callable[[], float]:
    if isinstance(operand, LaggedSeries):
        return lambda: operand[0]
    value = float(operand)
    return lambda: value


def _floor(value: float, eps: float) -> float:
    """Push ``value`` away from zero to at least ``eps``, keeping its sign."""
    if abs(value) >= eps:
        return value
    return eps if value >= 0.0 else -eps


def const(ctx: SimulationContext, value: float, parent: Optional[CacheKey] = None,
          tag=None) -> LaggedSeries:
    """Series holding ``value`` on every bar."""
    key = make_key(parent, "basic.const", value, tag=tag)
    value = float(value)
    return buffered(ctx, key, lambda prev: value, value)


def delay(ctx: SimulationContext, series: LaggedSeries, n: int,
          parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    """``series`` delayed by ``n`` bars.

    Before ``n`` bars of history exist, the oldest retained value is
    returned (the input is padded with its first observation).
    """
    key = make_key(parent, "basic.delay", series, n, tag=tag)

    def step(prev: float) -> float:
        past = series.lookup(n)
        return past.value if past.ready else series.oldest

    return buffered(ctx, key, step, series[0])


def _binary(site: str, op: Callable[[float, float], float]):
    def indicator(ctx: SimulationContext, a: LaggedSeries, b: Operand,
                  parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
        key = make_key(parent, site, a, b, tag=tag)
        rhs = _current(b)
        return buffered(ctx, key, lambda prev: op(a[0], rhs()), lambda: op(a[0], rhs()))
    indicator.__name__ = site.split(".", 1)[1]
    return indicator


add = _binary("basic.add", lambda x, y: x + y)
subtract = _binary("basic.subtract", lambda x, y: x - y)
multiply = _binary("basic.multiply", lambda x, y: x * y)
maximum = _binary("basic.max", max)
minimum = _binary("basic.min", min)
add.__doc__ = "Sum of ``a`` and ``b``."
subtract.__doc__ = "Difference ``a - b``."
multiply.__doc__ = "Product of ``a`` and ``b``."
maximum.__doc__ = "Larger of ``a`` and ``b`` on each bar."
minimum.__doc__ = "Smaller of ``a`` and ``b`` on each bar."


def divide(ctx: SimulationContext, a: LaggedSeries, b: Operand,
           parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    """Quotient ``a / b``; a denominator within epsilon of zero is floored to epsilon."""
    key = make_key(parent, "basic.divide", a, b, tag=tag)
    rhs = _current(b)
    eps = ctx.epsilon

    def step(prev: float) -> float:
        return a[0] / _floor(rhs(), eps)

    return buffered(ctx, key, step, lambda: step(0.0))


def abs_value(ctx: SimulationContext, series: LaggedSeries,
              parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    key = make_key(parent, "basic.abs", series, tag=tag)
    return buffered(ctx, key, lambda prev: abs(series[0]), abs(series[0]))


def log(ctx: SimulationContext, series: LaggedSeries,
        parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    """Natural log, with the argument floored at epsilon."""
    key = make_key(parent, "basic.log", series, tag=tag)
    eps = ctx.epsilon

    def step(prev: float) -> float:
        return math.log(max(eps, series[0]))

    return buffered(ctx, key, step, lambda: step(0.0))


def return_(ctx: SimulationContext, series: LaggedSeries,
            parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    """Simple one-bar return ``s[0] / s[1] - 1``; 0.0 on the first bar."""
    key = make_key(parent, "basic.return", series, tag=tag)
    eps = ctx.epsilon

    def step(prev: float) -> float:
        last = series.lookup(1)
        if not last.ready:
            return 0.0
        return series[0] / _floor(last.value, eps) - 1.0

    return buffered(ctx, key, step, 0.0)


def log_return(ctx: SimulationContext, series: LaggedSeries,
               parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    """One-bar log return ``log(s[0] / s[1])``; 0.0 on the first bar."""
    key = make_key(parent, "basic.log_return", series, tag=tag)
    eps = ctx.epsilon

    def step(prev: float) -> float:
        last = series.lookup(1)
        if not last.ready:
            return 0.0
        return math.log(max(eps, series[0]) / max(eps, last.value))

    return buffered(ctx, key, step, 0.0)


def sum_(ctx: SimulationContext, series: LaggedSeries, n: int,
         parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    """Rolling sum over the last ``n`` bars (fewer while the window fills)."""
    key = make_key(parent, "basic.sum", series, n, tag=tag)
    return buffered(ctx, key, lambda prev: float(np.sum(series.window(n))), series[0])


def highest(ctx: SimulationContext, series: LaggedSeries, n: int,
            parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    """Highest value of the last ``n`` bars."""
    key = make_key(parent, "basic.highest", series, n, tag=tag)
    return buffered(ctx, key, lambda prev: float(np.max(series.window(n))), series[0])


def lowest(ctx: SimulationContext, series: LaggedSeries, n: int,
           parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    """Lowest value of the last ``n`` bars."""
    key = make_key(parent, "basic.lowest", series, n, tag=tag)
    return buffered(ctx, key, lambda prev: float(np.min(series.window(n))), series[0])


def typical_price(ctx: SimulationContext, instrument: Instrument,
                  parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    """``(high + low + close) / 3``."""
    key = make_key(parent, "basic.typical_price", instrument, tag=tag)

    def step(prev: float) -> float:
        return (instrument.high[0] + instrument.low[0] + instrument.close[0]) / 3.0

    return buffered(ctx, key, step, lambda: step(0.0))
