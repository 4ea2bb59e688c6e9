"""Shared test fixtures for the barsim test suite."""
from __future__ import annotations

from typing import Callable, Iterable, List

import numpy as np
import pandas as pd
import pytest

from barsim.config_structured import SystemConfig, reset_config, set_config
from barsim.engine import Instrument, LaggedSeries, SimulationContext, input_series


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch):
    """Every test starts from default configuration, not the environment's."""
    monkeypatch.delenv("BARSIM_CONFIG", raising=False)
    reset_config()
    set_config(SystemConfig())
    yield
    reset_config()


# ── Engine fixtures ──────────────────────────────────────────────────


@pytest.fixture
def ctx():
    """A fresh run context, closed after the test."""
    context = SimulationContext(run_id="test")
    yield context
    context.close()


@pytest.fixture
def prices() -> LaggedSeries:
    return input_series("prices")


def _drive(ctx: SimulationContext, series: LaggedSeries, values: Iterable[float],
           fn: Callable[[], float]) -> List[float]:
    """Feed ``values`` bar by bar and record ``fn()`` after each bar."""
    out = []
    for v in values:
        ctx.advance()
        series.append(v)
        out.append(fn())
    return out


def _drive_bars(ctx: SimulationContext, instrument: Instrument, frame: pd.DataFrame,
                fn: Callable[[], float]) -> List[float]:
    """Feed OHLCV rows of ``frame`` bar by bar and record ``fn()`` after each bar."""
    out = []
    for row in frame.to_dict("records"):
        ctx.advance()
        instrument.append_row(row)
        out.append(fn())
    return out


@pytest.fixture
def drive():
    """Helper feeding values into a series bar by bar, see ``_drive``."""
    return _drive


@pytest.fixture
def drive_bars():
    return _drive_bars


# ── Data fixtures ────────────────────────────────────────────────────


def _ohlcv(n: int, seed: int = 42, start: float = 100.0) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    dates = pd.bdate_range("2022-01-03", periods=n)
    close = start * np.exp(np.cumsum(rng.normal(0.0005, 0.02, n)))
    opn = close * (1 + rng.normal(0, 0.005, n))
    bar_max = np.maximum(opn, close)
    bar_min = np.minimum(opn, close)
    high = bar_max * (1 + rng.uniform(0, 0.02, n))
    low = bar_min * (1 - rng.uniform(0, 0.02, n))
    vol = rng.integers(100_000, 10_000_000, n).astype(float)
    return pd.DataFrame(
        {"Open": opn, "High": high, "Low": low, "Close": close, "Volume": vol},
        index=pd.Index(dates, name="Date"),
    )


@pytest.fixture
def synthetic_ohlcv():
    """One synthetic daily OHLCV series with 300 bars."""
    return _ohlcv(300)


@pytest.fixture
def synthetic_universe():
    """Three synthetic OHLCV series on a shared calendar."""
    return {f"TEST{i}": _ohlcv(200, seed=42 + i) for i in range(3)}


@pytest.fixture
def flat_ohlcv():
    """100 bars where open == high == low == close."""
    dates = pd.bdate_range("2022-01-03", periods=100)
    return pd.DataFrame(
        {"Open": 50.0, "High": 50.0, "Low": 50.0, "Close": 50.0, "Volume": 1e6},
        index=pd.Index(dates, name="Date"),
    )


@pytest.fixture
def ohlcv_csv(tmp_path, synthetic_ohlcv):
    """The synthetic series written to a CSV file."""
    path = tmp_path / "prices.csv"
    synthetic_ohlcv.iloc[:120].to_csv(path)
    return path
