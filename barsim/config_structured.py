"""
Structured configuration for the indicator engine using typed dataclasses.

This is the AUTHORITATIVE source of truth for all configuration values.
``config.py`` checks a loaded config for suspicious values.

Usage:
    from barsim.config_structured import get_config
    cfg = get_config()
    cfg.history.min_capacity     # ring buffer floor for every series
    cfg.numerics.epsilon         # denominator floor used by formulas

A YAML file can override any field::

    history:
      min_capacity: 512
    numerics:
      nan_fallback: 0.0
    logging:
      level: DEBUG
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .errors import ConfigError


CONFIG_ENV_VAR = "BARSIM_CONFIG"


# ── Engine ────────────────────────────────────────────────────────────


@dataclass
class HistoryConfig:
    """Lagged series retention.

    Every series starts with ``min_capacity`` slots and grows to the
    largest lag ever requested against it.
    """
    min_capacity: int = 256

    def __post_init__(self):
        if not isinstance(self.min_capacity, int) or self.min_capacity < 1:
            raise ConfigError(
                f"history.min_capacity must be a positive integer, got {self.min_capacity}"
            )


@dataclass
class NumericsConfig:
    """Numeric sanitisation applied by formulas and the recurrence step."""
    epsilon: float = 1e-10
    nan_fallback: float = 0.0

    def __post_init__(self):
        self.epsilon = float(self.epsilon)
        self.nan_fallback = float(self.nan_fallback)
        if not self.epsilon > 0.0:
            raise ConfigError(f"numerics.epsilon must be > 0, got {self.epsilon}")
        if self.nan_fallback != self.nan_fallback:
            raise ConfigError("numerics.nan_fallback must not be NaN")


@dataclass
class IndicatorDefaults:
    """Default periods used when an indicator is requested without parameters."""
    sma_period: int = 20
    ema_period: int = 20
    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9
    rsi_period: int = 14
    cci_period: int = 20
    adx_period: int = 14
    stochastic_period: int = 14
    stochastic_smoothing: int = 3
    williams_period: int = 10
    momentum_period: int = 21
    kama_er_period: int = 10
    kama_fast: int = 2
    kama_slow: int = 30
    tsi_r: int = 25
    tsi_s: int = 13
    capm_initial_variance: float = 0.0025


@dataclass
class LoggingConfig:
    """Log level and format for engine loggers."""
    level: str = "INFO"
    structured: bool = True
    emit_run_metrics: bool = True

    def __post_init__(self):
        self.level = str(self.level).upper()
        if self.level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigError(f"logging.level must be a standard level name, got {self.level}")


@dataclass
class SystemConfig:
    """Top-level configuration aggregating all subsystems."""

    history: HistoryConfig = field(default_factory=HistoryConfig)
    numerics: NumericsConfig = field(default_factory=NumericsConfig)
    indicators: IndicatorDefaults = field(default_factory=IndicatorDefaults)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Return a plain nested dict (YAML friendly)."""
        out: Dict[str, Any] = {}
        for f in fields(self):
            section = getattr(self, f.name)
            out[f.name] = {sf.name: getattr(section, sf.name) for sf in fields(section)}
        return out


# ── Loading ─────────────────────────────────────────────────────────


def _build_section(cls: type, raw: Any, section: str) -> Any:
    if raw is None:
        return cls()
    if not isinstance(raw, dict):
        raise ConfigError(f"section '{section}' must be a mapping, got {type(raw).__name__}")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigError(f"unknown key(s) in section '{section}': {', '.join(unknown)}")
    try:
        return cls(**raw)
    except TypeError as e:
        raise ConfigError(f"invalid values in section '{section}': {e}") from e


def config_from_dict(data: Optional[Dict[str, Any]]) -> SystemConfig:
    """Build a ``SystemConfig`` from a nested dict, rejecting unknown keys."""
    data = data or {}
    if not isinstance(data, dict):
        raise ConfigError("configuration root must be a mapping")
    sections = {f.name: f for f in fields(SystemConfig)}
    unknown = sorted(set(data) - set(sections))
    if unknown:
        raise ConfigError(f"unknown config section(s): {', '.join(unknown)}")
    kwargs = {}
    for name, f in sections.items():
        section_cls = f.default_factory  # type: ignore[misc]
        if not (isinstance(section_cls, type) and is_dataclass(section_cls)):
            continue
        kwargs[name] = _build_section(section_cls, data.get(name), name)
    return SystemConfig(**kwargs)


def load_config(path: Union[str, Path]) -> SystemConfig:
    """Load a YAML configuration file.

    Raises
    ------
    ConfigError
        If the file is missing, unparsable, or contains unknown fields.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        with open(path) as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"could not parse {path}: {e}") from e
    return config_from_dict(raw)


# ── Module-level singleton ──────────────────────────────────────────

_CONFIG: Optional[SystemConfig] = None


def get_config() -> SystemConfig:
    """Return the singleton SystemConfig instance.

    On first call, loads the YAML file named by ``BARSIM_CONFIG`` if set,
    otherwise instantiates the defaults. Subsequent calls return the same
    instance so all callers share one source of truth.
    """
    global _CONFIG
    if _CONFIG is None:
        env_path = os.environ.get(CONFIG_ENV_VAR, "").strip()
        _CONFIG = load_config(env_path) if env_path else SystemConfig()
    return _CONFIG


def set_config(cfg: SystemConfig) -> None:
    """Replace the singleton (used by the CLI and tests)."""
    global _CONFIG
    _CONFIG = cfg


def reset_config() -> None:
    """Drop the singleton so the next ``get_config()`` rebuilds it."""
    global _CONFIG
    _CONFIG = None
