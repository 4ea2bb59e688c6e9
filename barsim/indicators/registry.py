"""
Indicator registry: named, parameterised indicator requests for the driver and CLI.

Each class wraps one indicator function, evaluates it for the current bar
and reports its value(s) as named columns, e.g. ``EMA_20`` or
``MACD_12_26_9_signal``.  Requests are written ``NAME`` or
``NAME:p1,p2,...``; omitted parameters come from ``indicators`` defaults
in the configuration.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Sequence, Type

from ..config_structured import IndicatorDefaults, get_config
from ..engine.context import SimulationContext
from ..engine.instrument import Instrument
from . import performance, trend, volatility
from .momentum import (
    adx, cci, lin_regression, momentum, rsi, stochastic, tsi, williams_percent_r,
)


class Indicator(ABC):
    """Base class for registry indicators."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the indicator's output column name (prefix for multi-output)."""

    @abstractmethod
    def evaluate(self, ctx: SimulationContext, instrument: Instrument) -> Dict[str, float]:
        """Advance to the current bar and return ``{column: value}``."""

    @classmethod
    def from_params(cls, params: Sequence[float], defaults: IndicatorDefaults) -> "Indicator":
        return cls(*(int(p) for p in params))


# ── Single-series indicators on the close ──────────────────────────


class _ClosePeriodIndicator(Indicator):
    """Indicator ``fn(ctx, close, period)`` with a single output."""

    label = ""
    default_field = ""
    fn: Callable

    def __init__(self, period: int):
        if period < 1:
            raise ValueError(f"{self.label} period must be >= 1, got {period}")
        self.period = period

    @property
    def name(self) -> str:
        return f"{self.label}_{self.period}"

    def evaluate(self, ctx, instrument):
        return {self.name: self.fn(ctx, instrument.close, self.period)[0]}

    @classmethod
    def from_params(cls, params, defaults):
        if params:
            return cls(int(params[0]))
        return cls(getattr(defaults, cls.default_field))


class SMA(_ClosePeriodIndicator):
    """Simple moving average of the close."""
    label, default_field = "SMA", "sma_period"
    fn = staticmethod(trend.sma)


class EMA(_ClosePeriodIndicator):
    """Exponential moving average of the close."""
    label, default_field = "EMA", "ema_period"
    fn = staticmethod(trend.ema)


class WMA(_ClosePeriodIndicator):
    label, default_field = "WMA", "sma_period"
    fn = staticmethod(trend.wma)


class DEMA(_ClosePeriodIndicator):
    label, default_field = "DEMA", "ema_period"
    fn = staticmethod(trend.dema)


class TEMA(_ClosePeriodIndicator):
    label, default_field = "TEMA", "ema_period"
    fn = staticmethod(trend.tema)


class HMA(_ClosePeriodIndicator):
    label, default_field = "HMA", "sma_period"
    fn = staticmethod(trend.hma)


class ZLEMA(_ClosePeriodIndicator):
    label, default_field = "ZLEMA", "ema_period"
    fn = staticmethod(trend.zlema)


class RSI(_ClosePeriodIndicator):
    """Relative strength index of the close."""
    label, default_field = "RSI", "rsi_period"
    fn = staticmethod(rsi)


class Momentum(_ClosePeriodIndicator):
    """Per-bar log momentum of the close."""
    label, default_field = "MOM", "momentum_period"
    fn = staticmethod(momentum)


class StdDev(_ClosePeriodIndicator):
    label, default_field = "STD", "sma_period"
    fn = staticmethod(volatility.standard_deviation)


class MaxDrawdown(_ClosePeriodIndicator):
    label, default_field = "MDD", "sma_period"
    fn = staticmethod(performance.max_drawdown)


# ── Instrument indicators ──────────────────────────────────────────


class _InstrumentPeriodIndicator(_ClosePeriodIndicator):
    """Indicator ``fn(ctx, instrument, period)`` using high, low and close."""

    def evaluate(self, ctx, instrument):
        return {self.name: self.fn(ctx, instrument, self.period)[0]}


class CCI(_InstrumentPeriodIndicator):
    """Commodity channel index on the typical price."""
    label, default_field = "CCI", "cci_period"
    fn = staticmethod(cci)


class WilliamsR(_InstrumentPeriodIndicator):
    label, default_field = "WillR", "williams_period"
    fn = staticmethod(williams_percent_r)


class ADX(_InstrumentPeriodIndicator):
    """Average directional index."""
    label, default_field = "ADX", "adx_period"
    fn = staticmethod(adx)


class ATR(_InstrumentPeriodIndicator):
    """Average true range."""
    label, default_field = "ATR", "adx_period"
    fn = staticmethod(volatility.average_true_range)


# ── Multi-parameter / multi-output ─────────────────────────────────


class KAMA(Indicator):
    """Kaufman adaptive moving average of the close."""

    def __init__(self, er_period: int = 10, fast: int = 2, slow: int = 30):
        self.er_period, self.fast, self.slow = er_period, fast, slow

    @property
    def name(self) -> str:
        return f"KAMA_{self.er_period}_{self.fast}_{self.slow}"

    def evaluate(self, ctx, instrument):
        value = trend.kama(ctx, instrument.close, self.er_period, self.fast, self.slow)[0]
        return {self.name: value}

    @classmethod
    def from_params(cls, params, defaults):
        values = [defaults.kama_er_period, defaults.kama_fast, defaults.kama_slow]
        values[: len(params)] = [int(p) for p in params]
        return cls(*values)


class TSI(Indicator):
    """True strength index of the close."""

    def __init__(self, r: int = 25, s: int = 13):
        self.r, self.s = r, s

    @property
    def name(self) -> str:
        return f"TSI_{self.r}_{self.s}"

    def evaluate(self, ctx, instrument):
        return {self.name: tsi(ctx, instrument.close, self.r, self.s)[0]}

    @classmethod
    def from_params(cls, params, defaults):
        values = [defaults.tsi_r, defaults.tsi_s]
        values[: len(params)] = [int(p) for p in params]
        return cls(*values)


class MACD(Indicator):
    """MACD line, signal and divergence of the close."""

    def __init__(self, fast: int = 12, slow: int = 26, signal: int = 9):
        if fast >= slow:
            raise ValueError(f"MACD fast period must be below slow period, got {fast} >= {slow}")
        self.fast, self.slow, self.signal = fast, slow, signal

    @property
    def name(self) -> str:
        return f"MACD_{self.fast}_{self.slow}_{self.signal}"

    def evaluate(self, ctx, instrument):
        result = trend.macd(ctx, instrument.close, self.fast, self.slow, self.signal)
        return {
            self.name: result.macd[0],
            f"{self.name}_signal": result.signal[0],
            f"{self.name}_divergence": result.divergence[0],
        }

    @classmethod
    def from_params(cls, params, defaults):
        values = [defaults.macd_fast, defaults.macd_slow, defaults.macd_signal]
        values[: len(params)] = [int(p) for p in params]
        return cls(*values)


class Stochastic(Indicator):
    """Stochastic %K and %D on high, low and close."""

    def __init__(self, period: int = 14, smoothing: int = 3):
        self.period, self.smoothing = period, smoothing

    @property
    def name(self) -> str:
        return f"Stoch_{self.period}_{self.smoothing}"

    def evaluate(self, ctx, instrument):
        result = stochastic(ctx, instrument, self.period, self.smoothing)
        return {f"{self.name}_k": result.percent_k[0], f"{self.name}_d": result.percent_d[0]}

    @classmethod
    def from_params(cls, params, defaults):
        values = [defaults.stochastic_period, defaults.stochastic_smoothing]
        values[: len(params)] = [int(p) for p in params]
        return cls(*values)


class LinReg(Indicator):
    """Linear regression slope and R² of the close."""

    def __init__(self, period: int = 20):
        self.period = period

    @property
    def name(self) -> str:
        return f"LinReg_{self.period}"

    def evaluate(self, ctx, instrument):
        result = lin_regression(ctx, instrument.close, self.period)
        return {f"{self.name}_slope": result.slope[0], f"{self.name}_r2": result.r2[0]}

    @classmethod
    def from_params(cls, params, defaults):
        return cls(int(params[0]) if params else defaults.sma_period)


def get_all_indicators() -> Dict[str, Type[Indicator]]:
    """Return dictionary of all registry indicator classes."""
    return {
        # Trend
        'SMA': SMA,
        'EMA': EMA,
        'WMA': WMA,
        'DEMA': DEMA,
        'TEMA': TEMA,
        'HMA': HMA,
        'ZLEMA': ZLEMA,
        'KAMA': KAMA,
        'MACD': MACD,

        # Momentum
        'RSI': RSI,
        'CCI': CCI,
        'TSI': TSI,
        'WillR': WilliamsR,
        'Stoch': Stochastic,
        'ADX': ADX,
        'MOM': Momentum,
        'LinReg': LinReg,

        # Volatility / performance
        'ATR': ATR,
        'STD': StdDev,
        'MDD': MaxDrawdown,
    }


def parse_indicator(request: str, defaults: Optional[IndicatorDefaults] = None) -> Indicator:
    """Build an indicator from a request such as ``"EMA:20"`` or ``"MACD:8,21,5"``.

    Names are case-insensitive.

    Raises
    ------
    ValueError
        If the name is unknown or a parameter is not an integer.
    """
    if defaults is None:
        defaults = get_config().indicators
    name, _, raw = request.strip().partition(":")
    table = {k.lower(): v for k, v in get_all_indicators().items()}
    cls = table.get(name.strip().lower())
    if cls is None:
        known = ", ".join(sorted(get_all_indicators()))
        raise ValueError(f"unknown indicator '{name}'; known: {known}")
    try:
        params = [int(p) for p in raw.split(",") if p.strip()]
    except ValueError as e:
        raise ValueError(f"invalid parameters in '{request}': {e}") from e
    return cls.from_params(params, defaults)


def parse_indicators(requests: Sequence[str],
                     defaults: Optional[IndicatorDefaults] = None) -> List[Indicator]:
    return [parse_indicator(r, defaults) for r in requests]
