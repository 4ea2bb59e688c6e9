"""Evaluation and caching engine: lagged series, call identity, memo store, recurrences."""
from .context import BEFORE_TIME, SimulationContext
from .identity import CacheKey, contribution, make_key
from .instrument import OHLCV_FIELDS, Instrument, input_series
from .recurrence import ScalarEntry, StatefulFunctor, buffered, functor
from .series import NOT_ENOUGH_HISTORY, LaggedSeries, Lookup
from .store import MemoStore, StoreStats

__all__ = [
    "BEFORE_TIME",
    "SimulationContext",
    "CacheKey",
    "contribution",
    "make_key",
    "OHLCV_FIELDS",
    "Instrument",
    "input_series",
    "ScalarEntry",
    "StatefulFunctor",
    "buffered",
    "functor",
    "NOT_ENOUGH_HISTORY",
    "LaggedSeries",
    "Lookup",
    "MemoStore",
    "StoreStats",
]
