"""Cross-instrument indicators: equal-weight benchmark index and CAPM."""
from __future__ import annotations

import math
from typing import Iterable, Optional, Union

from ..engine.context import SimulationContext
from ..engine.identity import CacheKey, make_key
from ..engine.instrument import Instrument
from ..engine.recurrence import StatefulFunctor, buffered, functor
from ..engine.series import LaggedSeries
from .basic import log_return

PriceSource = Union[Instrument, LaggedSeries]


def _prices(source: PriceSource) -> LaggedSeries:
    return source.close if isinstance(source, Instrument) else source


def benchmark(ctx: SimulationContext, market: Iterable[Instrument],
              parent: Optional[CacheKey] = None, tag=None) -> LaggedSeries:
    """Index starting at 1.0 that grows by the average log return of ``market``.

    The cache key does not include the members, so the universe may change
    from bar to bar without resetting the index.  A bar with an empty
    universe leaves the index unchanged.  Callers that need two separate
    indexes tell them apart with ``tag``.
    """
    key = make_key(parent, "market.benchmark", tag=tag)
    returns = [log_return(ctx, instrument.close, key) for instrument in market]

    def step(prev: float) -> float:
        if not returns:
            return prev
        todays = sum(r[0] for r in returns) / len(returns)
        return prev * math.exp(todays)

    return buffered(ctx, key, step, 1.0)


class CAPM(StatefulFunctor):
    """Rolling CAPM regression of ``series`` log returns on ``benchmark`` log returns.

    Means, variances and the covariance are exponentially weighted with
    ``a = 2 / (n + 1)``.  The variances and the covariance start at
    ``indicators.capm_initial_variance``, which keeps beta near 1 for the
    first bars instead of swinging on a handful of returns.

    Outputs: ``alpha`` (per-bar excess log return) and ``beta``.
    """

    def __init__(self, ctx: SimulationContext, key: CacheKey, series: LaggedSeries,
                 benchmark: LaggedSeries, n: int) -> None:
        super().__init__(ctx, key)
        self._series = series
        self._benchmark = benchmark
        self._a = 2.0 / (1.0 + n)
        initial = ctx.config.indicators.capm_initial_variance
        self._avg_series = 0.0
        self._avg_bench = 0.0
        self._var_series = initial
        self._var_bench = initial
        self._cov = initial
        self.alpha = self._output("alpha")
        self.beta = self._output("beta")

    def _update(self) -> None:
        a = self._a
        r_series = log_return(self._ctx, self._series, self.key)[0]
        r_bench = log_return(self._ctx, self._benchmark, self.key)[0]

        diff_series = r_series - self._avg_series
        incr_series = a * diff_series
        self._avg_series += incr_series
        self._var_series = (1.0 - a) * (self._var_series + diff_series * incr_series)

        diff_bench = r_bench - self._avg_bench
        incr_bench = a * diff_bench
        self._avg_bench += incr_bench
        self._var_bench = (1.0 - a) * (self._var_bench + diff_bench * incr_bench)

        self._cov = (1.0 - a) * (self._cov + diff_series * incr_bench)

        beta = self._cov / max(self._ctx.epsilon, self._var_bench)
        self._publish(alpha=self._avg_series - beta * self._avg_bench, beta=beta)


def capm(ctx: SimulationContext, series: PriceSource, benchmark: PriceSource, n: int,
         parent: Optional[CacheKey] = None, tag=None) -> CAPM:
    """CAPM alpha and beta of ``series`` against ``benchmark``.

    Instruments are evaluated on their close.  The key covers both inputs,
    so one asset regressed on two benchmarks keeps two separate states.
    """
    s, b = _prices(series), _prices(benchmark)
    key = make_key(parent, "market.capm", s, b, n, tag=tag)
    return functor(ctx, key, lambda: CAPM(ctx, key, s, b, n), CAPM)
