"""Raw per-bar inputs: OHLCV instruments and named scalar series."""
from __future__ import annotations

from typing import Any, Mapping, Optional

from .identity import CacheKey, make_key
from .series import LaggedSeries

OHLCV_FIELDS = ("open", "high", "low", "close", "volume")


def input_series(name: str, capacity: Optional[int] = None) -> LaggedSeries:
    """A raw input series whose identity derives from ``name``.

    Two input series created with the same name address the same cached
    indicators, so a driver may rebuild its inputs without losing state.
    """
    return LaggedSeries(name=name, capacity=capacity, key=make_key(None, "input", name))


class Instrument:
    """OHLCV bars for one symbol, appended by the driver once per bar.

    Parameters
    ----------
    symbol : str
        Ticker or other label.  Identity (and therefore cache keys of any
        indicator computed on this instrument) derives from it.
    """

    def __init__(self, symbol: str, capacity: Optional[int] = None) -> None:
        self.symbol = symbol
        self.key: CacheKey = make_key(None, "instrument", symbol)
        for field in OHLCV_FIELDS:
            series = LaggedSeries(
                name=f"{symbol}.{field}",
                capacity=capacity,
                key=self.key.child("instrument.field", field),
            )
            setattr(self, field, series)

    @property
    def identity(self) -> int:
        return self.key.digest

    def append_bar(
        self,
        open: float,
        high: float,
        low: float,
        close: float,
        volume: float = 0.0,
    ) -> None:
        """Append one bar to all five series."""
        self.open.append(open)
        self.high.append(high)
        self.low.append(low)
        self.close.append(close)
        self.volume.append(volume)

    def append_row(self, row: Mapping[str, Any]) -> None:
        """Append a bar from a mapping with case-insensitive OHLCV keys.

        Only ``close`` is required; missing open/high/low default to close and
        missing volume to zero.
        """
        lowered = {str(k).lower(): v for k, v in row.items()}
        if "close" not in lowered:
            raise KeyError("bar is missing a 'close' value")
        close = float(lowered["close"])
        self.append_bar(
            float(lowered.get("open", close)),
            float(lowered.get("high", close)),
            float(lowered.get("low", close)),
            close,
            float(lowered.get("volume", 0.0)),
        )

    @property
    def bars(self) -> int:
        return self.close.count

    def __repr__(self) -> str:
        return f"Instrument({self.symbol!r}, bars={self.close.count})"
