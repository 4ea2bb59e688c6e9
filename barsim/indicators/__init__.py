"""
barsim indicators: bar-by-bar formulas built on the evaluation engine.

Every function takes the run context first and returns either a
``LaggedSeries`` or a functor exposing several output series.
"""
from .basic import (
    abs_value, add, const, delay, divide, highest, log, log_return, lowest,
    maximum, minimum, multiply, return_, subtract, sum_, typical_price,
)
from .trend import MACD, dema, ema, envelope_detector, hma, kama, macd, sma, tema, wma, zlema
from .momentum import (
    Regression, Stochastic, adx, cci, lin_regression, log_momentum, log_regression,
    momentum, rsi, simple_momentum, stochastic, tsi, williams_percent_r,
)
from .volatility import average_true_range, fast_standard_deviation, standard_deviation, true_range
from .performance import drawdown, max_drawdown, return_on_max_drawdown, runup, sharpe_ratio
from .market import CAPM, benchmark, capm
from .registry import Indicator, get_all_indicators, parse_indicator, parse_indicators

__all__ = [
    # Basic
    "abs_value", "add", "const", "delay", "divide", "highest", "log", "log_return",
    "lowest", "maximum", "minimum", "multiply", "return_", "subtract", "sum_",
    "typical_price",
    # Trend
    "MACD", "dema", "ema", "envelope_detector", "hma", "kama", "macd", "sma",
    "tema", "wma", "zlema",
    # Momentum
    "Regression", "Stochastic", "adx", "cci", "lin_regression", "log_momentum",
    "log_regression", "momentum", "rsi", "simple_momentum", "stochastic", "tsi",
    "williams_percent_r",
    # Volatility
    "average_true_range", "fast_standard_deviation", "standard_deviation", "true_range",
    # Performance
    "drawdown", "max_drawdown", "return_on_max_drawdown", "runup", "sharpe_ratio",
    # Market
    "CAPM", "benchmark", "capm",
    # Registry
    "Indicator", "get_all_indicators", "parse_indicator", "parse_indicators",
]
