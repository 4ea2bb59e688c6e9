"""
Minimal simulation driver over pandas OHLCV frames.

Aligns one frame per symbol on a common index, advances a
``SimulationContext`` once per row, appends each row to its ``Instrument``
and hands control to a per-bar callback.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

import numpy as np
import pandas as pd

from .config_structured import SystemConfig, get_config
from .engine.context import SimulationContext
from .engine.instrument import Instrument
from .errors import EngineError

logger = logging.getLogger(__name__)

OnBar = Callable[[SimulationContext, Dict[str, Instrument], Any], Any]


def _close_column(frame: pd.DataFrame, symbol: str) -> str:
    for col in frame.columns:
        if str(col).lower() == "close":
            return col
    raise ValueError(f"frame for '{symbol}' has no Close column (columns: {list(frame.columns)})")


class Simulation:
    """Bar-by-bar replay of one or more OHLCV frames.

    Parameters
    ----------
    frames : DataFrame or dict of str -> DataFrame
        OHLCV data with case-insensitive Open/High/Low/Close/Volume columns.
        Only Close is required.  A single frame is treated as
        ``{symbol: frame}``.
    symbol : str
        Symbol used when ``frames`` is a single DataFrame.
    config : SystemConfig, optional
        Configuration for the run; defaults to the process singleton.
    """

    def __init__(
        self,
        frames: Union[pd.DataFrame, Mapping[str, pd.DataFrame]],
        symbol: str = "ASSET",
        config: Optional[SystemConfig] = None,
    ) -> None:
        if isinstance(frames, pd.DataFrame):
            frames = {symbol: frames}
        if not frames:
            raise ValueError("at least one frame is required")
        self.config = config or get_config()
        self.frames = self._align(dict(frames))
        self.context: Optional[SimulationContext] = None

    @staticmethod
    def _align(frames: Dict[str, pd.DataFrame]) -> Dict[str, pd.DataFrame]:
        """Reindex all frames on the union of their indexes.

        Gaps are forward-filled; leading rows where any symbol has no close
        yet are dropped.
        """
        index = frames[next(iter(frames))].index
        for frame in frames.values():
            index = index.union(frame.index)
        aligned = {sym: frame.reindex(index).ffill() for sym, frame in frames.items()}
        valid = np.ones(len(index), dtype=bool)
        for sym, frame in aligned.items():
            valid &= frame[_close_column(frame, sym)].notna().to_numpy()
        dropped = int((~valid).sum())
        if dropped:
            logger.warning("Dropping %d leading row(s) without a close for every symbol", dropped)
        return {sym: frame.loc[valid] for sym, frame in aligned.items()}

    @property
    def index(self) -> pd.Index:
        return self.frames[next(iter(self.frames))].index

    def run(self, on_bar: OnBar) -> SimulationContext:
        """Replay every row, calling ``on_bar(ctx, instruments, timestamp)``.

        The context is closed (and its metrics emitted) when the replay ends,
        including when ``on_bar`` raises.  Engine errors are logged before
        being re-raised.

        Returns
        -------
        SimulationContext
            The closed context, for its counters.
        """
        capacity = self.config.history.min_capacity
        instruments = {sym: Instrument(sym, capacity=capacity) for sym in self.frames}
        records = {sym: frame.to_dict("records") for sym, frame in self.frames.items()}
        ctx = SimulationContext(config=self.config)
        self.context = ctx
        logger.info("Starting run %s: %d symbol(s), %d bar(s)", ctx.run_id, len(instruments), len(self.index))
        with ctx:
            try:
                for i, timestamp in enumerate(self.index):
                    ctx.advance(timestamp=timestamp)
                    for sym, instrument in instruments.items():
                        instrument.append_row(records[sym][i])
                    on_bar(ctx, instruments, timestamp)
            except EngineError:
                logger.exception("Run %s failed at bar %d (%s)", ctx.run_id, ctx.bar, ctx.timestamp)
                raise
        return ctx

    def collect(self, fn: OnBar) -> pd.DataFrame:
        """Run the simulation and tabulate what ``fn`` returns on each bar.

        ``fn`` returns a mapping of column -> value, a scalar (stored in a
        ``value`` column) or ``None`` (row skipped).
        """
        rows: List[Dict[str, Any]] = []
        stamps: List[Any] = []

        def _on_bar(ctx, instruments, timestamp):
            out = fn(ctx, instruments, timestamp)
            if out is None:
                return
            rows.append(dict(out) if isinstance(out, Mapping) else {"value": out})
            stamps.append(timestamp)

        self.run(_on_bar)
        return pd.DataFrame(rows, index=pd.Index(stamps, name=self.index.name))
