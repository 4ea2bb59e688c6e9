"""
Simulation run context: the bar clock and the memoization store it owns.

One ``SimulationContext`` is one run.  The driver advances it once per
simulated period; every indicator call receives it explicitly.  Closing the
context ends the run and empties the store, so a fresh context always
starts cold.
"""
from __future__ import annotations

import logging
import uuid
from typing import Any, Optional

from ..config_structured import SystemConfig, get_config
from ..errors import EngineError, OutOfOrderBarError
from ..utils.logging import RunMetricsEmitter
from .store import MemoStore

logger = logging.getLogger(__name__)

BEFORE_TIME = -1


class SimulationContext:
    """Bar clock plus run-scoped cache.

    Parameters
    ----------
    config : SystemConfig, optional
        Configuration for this run; defaults to the process singleton.
    run_id : str, optional
        Label used in logs and run metrics.
    """

    def __init__(self, config: Optional[SystemConfig] = None, run_id: Optional[str] = None) -> None:
        self.config = config or get_config()
        self.run_id = run_id or uuid.uuid4().hex[:12]
        self.store = MemoStore()
        self.timestamp: Any = None
        self.recomputes = 0
        self.nan_substitutions = 0
        self._bar = BEFORE_TIME
        self._bars = 0
        self._closed = False

    @property
    def bar(self) -> int:
        """Index of the bar being simulated, ``BEFORE_TIME`` before the first advance."""
        return self._bar

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def epsilon(self) -> float:
        return self.config.numerics.epsilon

    def advance(self, bar: Optional[int] = None, timestamp: Any = None) -> int:
        """Move the clock to ``bar`` (default: the next bar).

        Raises
        ------
        OutOfOrderBarError
            If ``bar`` does not lie strictly after the current bar.
        """
        if self._closed:
            raise EngineError(f"run {self.run_id} is closed")
        nxt = self._bar + 1 if bar is None else int(bar)
        if nxt <= self._bar:
            logger.error("bar regressed from %d to %d in run %s", self._bar, nxt, self.run_id)
            raise OutOfOrderBarError(
                f"bar index must increase: current {self._bar}, requested {nxt}"
            )
        self._bar = nxt
        self._bars += 1
        self.timestamp = timestamp
        return nxt

    def require_bar(self) -> int:
        """Current bar, or raise if no bar is active."""
        if self._closed:
            raise EngineError(f"run {self.run_id} is closed")
        if self._bar == BEFORE_TIME:
            raise OutOfOrderBarError("indicator evaluated before the first bar")
        return self._bar

    def close(self) -> None:
        """End the run: emit metrics and release all cached state."""
        if self._closed:
            return
        stats = self.store.stats()
        if self.config.logging.emit_run_metrics:
            RunMetricsEmitter().emit_run_metrics(
                run_id=self.run_id,
                bars=self._bars,
                entries=stats.entries,
                hits=stats.hits,
                misses=stats.misses,
                recomputes=self.recomputes,
                nan_substitutions=self.nan_substitutions,
            )
        self.store.clear()
        self._closed = True

    def __enter__(self) -> "SimulationContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"SimulationContext(run_id={self.run_id!r}, bar={self._bar}, entries={len(self.store)})"
