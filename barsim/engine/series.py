"""
Lagged series: bounded, append-only history addressed by lag.

Lag 0 is the value of the current bar, lag ``k`` the value produced ``k``
bars earlier.  Values live in a numpy ring buffer indexed through a write
cursor; appending never shifts memory.  Capacity starts at the configured
floor and grows toward the largest lag ever requested as values arrive.

A bootstrap seed (see ``recurrence.buffered``) is readable by lag but is
not an observation: once a real value exists, windows leave it out.

Series produced by the engine carry a *source* (the cache entry or
functor that owns them).  Every read first asks the source to catch up
with the current bar, so reading lag 0 of an indicator always observes it
advanced to the bar being simulated.
"""
from __future__ import annotations

import math
import operator
import uuid
from typing import Any, NamedTuple, Optional

import numpy as np

from ..config_structured import get_config
from ..errors import InsufficientHistoryError

MISSING: Any = object()


class Lookup(NamedTuple):
    """Typed result of a history lookup.

    ``Lookup.of(v)`` is a ready value, ``NOT_ENOUGH_HISTORY`` the absence of
    one.  Formulas branch on ``ready`` to apply their documented fallback
    instead of catching ``InsufficientHistoryError``.
    """
    ready: bool
    value: float = math.nan

    @classmethod
    def of(cls, value: float) -> "Lookup":
        return cls(True, float(value))

    def value_or(self, fallback: float) -> float:
        return self.value if self.ready else fallback


NOT_ENOUGH_HISTORY = Lookup(False)


class LaggedSeries:
    """Bounded float64 history with lag-indexed reads.

    Parameters
    ----------
    name : str, optional
        Label used in error messages and ``repr``.
    capacity : int, optional
        Initial ring size.  Defaults to ``history.min_capacity``.
    key : CacheKey, optional
        Identity key.  Engine-produced series use the key of their cache
        entry; named inputs use a key derived from their name.
    """

    def __init__(
        self,
        name: Optional[str] = None,
        capacity: Optional[int] = None,
        key: Any = None,
    ) -> None:
        if capacity is None:
            capacity = get_config().history.min_capacity
        capacity = operator.index(capacity)
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.name = name or ""
        self._key = key
        self._identity = key.digest if key is not None else uuid.uuid4().int & 0xFFFFFFFFFFFFFFFF
        self._buf = np.empty(capacity, dtype=np.float64)
        self._cursor = -1       # slot holding lag 0
        self._retained = 0      # valid slots in the ring
        self._count = 0         # values ever appended
        self._wanted = capacity  # largest retention ever requested
        self._seeded = False
        self._source: Any = None

    # ── Identity ──────────────────────────────────────────────────────

    @property
    def key(self) -> Any:
        return self._key

    @property
    def identity(self) -> int:
        """Stable 64-bit identity used when this series is an indicator input."""
        return self._identity

    # ── Producer side ─────────────────────────────────────────────────

    def append(self, value: float) -> None:
        """Push ``value`` as the new lag 0."""
        cap = self._buf.shape[0]
        if self._retained == cap and cap < self._wanted:
            self._reserve(min(self._wanted, 2 * cap))
            cap = self._buf.shape[0]
        self._cursor = (self._cursor + 1) % cap
        self._buf[self._cursor] = float(value)
        self._count += 1
        if self._retained < cap:
            self._retained += 1

    def seed(self, value: float) -> None:
        """Push the bootstrap value of an empty series."""
        if self._count:
            raise ValueError(f"series {self.name!r} already has values")
        self.append(value)
        self._seeded = True

    def _bind(self, source: Any) -> None:
        self._source = source

    # ── Reader side ───────────────────────────────────────────────────

    @property
    def capacity(self) -> int:
        return self._buf.shape[0]

    @property
    def count(self) -> int:
        """Number of values ever appended."""
        self._sync()
        return self._count

    @property
    def available(self) -> int:
        """Number of retained observations (the seed excluded once superseded)."""
        self._sync()
        return self._observed()

    def at(self, lag: int, default: Any = MISSING) -> float:
        """Return the value ``lag`` bars back.

        Raises
        ------
        ValueError
            If ``lag`` is negative.
        InsufficientHistoryError
            If the value was never appended (or is no longer retained) and
            no ``default`` was given.
        """
        lag = self._check_lag(lag)
        self._sync()
        self._want(lag + 1)
        if lag >= self._retained:
            if default is not MISSING:
                return default
            raise InsufficientHistoryError(lag, self._retained, self.name)
        return float(self._buf[(self._cursor - lag) % self._buf.shape[0]])

    __getitem__ = at

    def lookup(self, lag: int) -> Lookup:
        """Like ``at`` but returns ``NOT_ENOUGH_HISTORY`` instead of raising."""
        lag = self._check_lag(lag)
        self._sync()
        self._want(lag + 1)
        if lag >= self._retained:
            return NOT_ENOUGH_HISTORY
        return Lookup.of(self._buf[(self._cursor - lag) % self._buf.shape[0]])

    def window(self, n: int) -> np.ndarray:
        """Return the newest ``min(n, available)`` values, newest first.

        This is the under-filled window policy shared by all window
        formulas: before ``n`` bars exist, they use what is there.  A seed
        is only part of the window while it is the sole value.
        """
        n = operator.index(n)
        if n < 1:
            raise ValueError(f"window length must be >= 1, got {n}")
        self._sync()
        self._want(n)
        m = min(n, self._observed())
        idx = (self._cursor - np.arange(m)) % self._buf.shape[0]
        return self._buf[idx]

    @property
    def oldest(self) -> float:
        """Oldest retained value."""
        self._sync()
        if self._retained == 0:
            raise InsufficientHistoryError(0, 0, self.name)
        return float(self._buf[(self._cursor - self._retained + 1) % self._buf.shape[0]])

    def values(self) -> np.ndarray:
        """Retained history, oldest first."""
        self._sync()
        if self._retained == 0:
            return np.empty(0, dtype=np.float64)
        return self.window(self._observed())[::-1].copy()

    # ── Internal ──────────────────────────────────────────────────────

    def _peek(self) -> float:
        """Lag 0 without synchronising the source (for the owning producer)."""
        if self._retained == 0:
            raise InsufficientHistoryError(0, 0, self.name)
        return float(self._buf[self._cursor])

    def _sync(self) -> None:
        if self._source is not None:
            self._source.sync()

    @staticmethod
    def _check_lag(lag: int) -> int:
        lag = operator.index(lag)
        if lag < 0:
            raise ValueError(f"lag must be >= 0, got {lag}")
        return lag

    def _observed(self) -> int:
        if self._seeded and 1 < self._count == self._retained:
            return self._retained - 1
        return self._retained

    def _want(self, size: int) -> None:
        """Remember a retention request; the ring grows on later appends."""
        if size > self._wanted:
            self._wanted = size

    def _reserve(self, size: int) -> None:
        """Grow the ring to hold ``size`` values. Already-dropped values stay dropped."""
        cap = self._buf.shape[0]
        if size <= cap:
            return
        ordered = self._buf[(self._cursor - np.arange(self._retained)) % cap][::-1]
        buf = np.empty(size, dtype=np.float64)
        buf[: self._retained] = ordered
        self._buf = buf
        self._cursor = self._retained - 1 if self._retained else -1

    def __repr__(self) -> str:
        label = self.name or f"{self._identity:016x}"
        return (
            f"LaggedSeries({label!r}, available={self._retained}, "
            f"count={self._count}, capacity={self._buf.shape[0]})"
        )
