"""
barsim: bar-by-bar technical indicator evaluation with call-site memoization.

Quick start::

    from barsim import SimulationContext, input_series
    from barsim.indicators import ema

    prices = input_series("SPX")
    with SimulationContext() as ctx:
        for p in closes:
            ctx.advance()
            prices.append(p)
            value = ema(ctx, prices, 20)[0]
"""
from .engine import (
    BEFORE_TIME,
    NOT_ENOUGH_HISTORY,
    CacheKey,
    Instrument,
    LaggedSeries,
    Lookup,
    MemoStore,
    SimulationContext,
    StatefulFunctor,
    buffered,
    functor,
    input_series,
    make_key,
)
from .errors import (
    ConfigError,
    EngineError,
    InsufficientHistoryError,
    KeyCollisionError,
    OutOfOrderBarError,
)
from .simulation import Simulation

__version__ = "0.1.0"

__all__ = [
    "BEFORE_TIME",
    "NOT_ENOUGH_HISTORY",
    "CacheKey",
    "Instrument",
    "LaggedSeries",
    "Lookup",
    "MemoStore",
    "SimulationContext",
    "StatefulFunctor",
    "buffered",
    "functor",
    "input_series",
    "make_key",
    "ConfigError",
    "EngineError",
    "InsufficientHistoryError",
    "KeyCollisionError",
    "OutOfOrderBarError",
    "Simulation",
]
