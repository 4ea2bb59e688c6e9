"""
Recurrence evaluation: buffered per-bar steps and stateful functors.

``buffered`` turns a step function ``f(previous_output) -> new_output`` into a
lagged series that advances exactly once per bar, no matter how many times
it is requested or read during that bar.  This is what keeps
self-referential recurrences such as the EMA correct: a second read in the
same bar returns the memoised value instead of applying the step again.

``StatefulFunctor`` covers indicators with several outputs (regression,
CAPM, MACD, stochastic).  Each subclass owns its private state and updates
all outputs together in one ``_update`` per bar.

Entry lifecycle::

    Uninitialized --create--> Seeded --first bar--> Stable
    Stable --bar advances--> Stale --recompute--> Stable   (once per bar)
"""
from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Type, TypeVar, Union

from ..errors import OutOfOrderBarError
from .context import SimulationContext
from .identity import CacheKey
from .series import LaggedSeries

F = TypeVar("F", bound="StatefulFunctor")

Step = Callable[[float], float]


class ScalarEntry:
    """Cache entry for a buffered scalar computation.

    Holds the output series, the step that extends it and the last bar the
    step ran for.  The output series is bound to the entry, so reading it
    in a later bar recomputes first.
    """

    def __init__(
        self,
        ctx: SimulationContext,
        key: CacheKey,
        step: Step,
        seed: float,
        nan_fallback: float,
        name: str = "",
    ) -> None:
        self.key = key
        self.step = step
        self.nan_fallback = nan_fallback
        self.last_bar: Optional[int] = None
        self._ctx = ctx
        self._busy = False
        self.series = LaggedSeries(name=name or key.path, key=key)
        self.series.seed(seed)
        self.series._bind(self)

    @property
    def stale(self) -> bool:
        return self.last_bar != self._ctx.bar

    def sync(self) -> None:
        """Run the step once for the current bar if it has not run yet."""
        bar = self._ctx.require_bar()
        if self.last_bar == bar or self._busy:
            return
        if self.last_bar is not None and bar < self.last_bar:
            raise OutOfOrderBarError(
                f"{self.key!r} computed for bar {self.last_bar}, asked for bar {bar}"
            )
        self._busy = True
        try:
            value = float(self.step(self.series._peek()))
        finally:
            self._busy = False
        if math.isnan(value):
            value = self.nan_fallback
            self._ctx.nan_substitutions += 1
        self.series.append(value)
        self.last_bar = bar
        self._ctx.recomputes += 1


def buffered(
    ctx: SimulationContext,
    key: CacheKey,
    step: Step,
    seed: Union[float, Callable[[], float]],
    nan_fallback: Optional[float] = None,
    name: str = "",
) -> LaggedSeries:
    """Evaluate a recurrence for the current bar and return its series.

    Parameters
    ----------
    ctx : SimulationContext
        Run whose store holds the entry and whose clock defines "this bar".
    key : CacheKey
        Identity of the computation.
    step : callable
        ``step(previous_output) -> new_output``.  May read any current-bar
        input through its closure.
    seed : float or callable
        Bootstrap value appended once when the entry is created; acts as the
        "previous output" for the first step.  A callable is only evaluated
        on creation.
    nan_fallback : float, optional
        Replacement for a NaN step result.  Defaults to
        ``numerics.nan_fallback``.

    Returns
    -------
    LaggedSeries
        The memoised output; lag 0 is the value for the current bar.
    """
    ctx.require_bar()
    if nan_fallback is None:
        nan_fallback = ctx.config.numerics.nan_fallback

    def _create() -> ScalarEntry:
        value = seed() if callable(seed) else seed
        return ScalarEntry(ctx, key, step, float(value), float(nan_fallback), name)

    entry = ctx.store.get_or_create(key, _create, ScalarEntry)
    entry.step = step
    entry.sync()
    return entry.series


class StatefulFunctor(ABC):
    """Indicator with private state and several output series.

    Subclasses implement ``_update`` and either publish into their own
    outputs (``_output`` + ``_publish``) or expose series produced by nested
    buffered calls keyed under ``self.key``.
    """

    def __init__(self, ctx: SimulationContext, key: CacheKey) -> None:
        self.key = key
        self.last_bar: Optional[int] = None
        self._ctx = ctx
        self._busy = False
        self._outputs: Dict[str, LaggedSeries] = {}

    @property
    def outputs(self) -> Dict[str, LaggedSeries]:
        return dict(self._outputs)

    def _output(self, name: str) -> LaggedSeries:
        """Declare an output series owned by this functor."""
        if name in self._outputs:
            raise ValueError(f"output '{name}' already declared")
        series = LaggedSeries(name=f"{self.key.path}.{name}", key=self.key.child("output", name))
        series._bind(self)
        self._outputs[name] = series
        return series

    def _publish(self, **values: float) -> None:
        """Append one value to every output at once."""
        missing = set(self._outputs) - set(values)
        unknown = set(values) - set(self._outputs)
        if missing or unknown:
            raise ValueError(
                f"publish must cover exactly {sorted(self._outputs)}; "
                f"missing {sorted(missing)}, unknown {sorted(unknown)}"
            )
        for name, value in values.items():
            self._outputs[name].append(value)

    def sync(self) -> None:
        """Advance to the current bar if not already there."""
        bar = self._ctx.require_bar()
        if self.last_bar == bar or self._busy:
            return
        if self.last_bar is not None and bar < self.last_bar:
            raise OutOfOrderBarError(
                f"{self.key!r} advanced for bar {self.last_bar}, asked for bar {bar}"
            )
        self._busy = True
        try:
            self._update()
        finally:
            self._busy = False
        self.last_bar = bar
        self._ctx.recomputes += 1

    def advance(self) -> None:
        self.sync()

    @abstractmethod
    def _update(self) -> None:
        """Compute this bar's outputs from inputs and private state."""


def functor(
    ctx: SimulationContext,
    key: CacheKey,
    factory: Callable[[], F],
    cls: Type[F],
) -> F:
    """Resolve (or create) a functor for ``key`` and advance it to this bar."""
    ctx.require_bar()
    instance = ctx.store.get_or_create(key, factory, cls)
    instance.advance()
    return instance
