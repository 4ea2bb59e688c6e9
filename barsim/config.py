"""
Configuration checks for the indicator engine.

Values live in the structured config singleton of ``config_structured.py``;
every module reads ``get_config()`` so that a config swapped in later (tests,
the CLI ``--config`` flag) takes effect.  This module reports settings that
load fine but are suspicious.
"""
from __future__ import annotations

import math
from typing import Dict, List, Optional

from .config_structured import SystemConfig, get_config as _get_config


def validate_config(cfg: Optional[SystemConfig] = None) -> List[Dict[str, str]]:
    """Check a configuration for values that load fine but are suspicious.

    Returns
    -------
    list of dict
        Each issue is ``{"level": "WARNING" | "ERROR", "message": str}``.
        An empty list means the configuration is sound.
    """
    cfg = cfg or _get_config()
    issues: List[Dict[str, str]] = []

    # 1. Epsilon too coarse to act as a floor
    if cfg.numerics.epsilon > 1e-4:
        issues.append({
            "level": "WARNING",
            "message": (
                f"numerics.epsilon={cfg.numerics.epsilon} is large; ratio indicators "
                "will be visibly biased on low-variance inputs."
            ),
        })

    # 2. Non-finite NaN replacement poisons every downstream recurrence
    if not math.isfinite(cfg.numerics.nan_fallback):
        issues.append({
            "level": "ERROR",
            "message": "numerics.nan_fallback must be finite.",
        })

    # 3. Retention shorter than the longest default look-back
    ind = cfg.indicators
    longest = max(
        ind.sma_period, ind.ema_period, ind.macd_slow, ind.cci_period,
        ind.momentum_period, ind.kama_er_period + 1, ind.tsi_r,
    )
    if cfg.history.min_capacity <= longest:
        issues.append({
            "level": "WARNING",
            "message": (
                f"history.min_capacity={cfg.history.min_capacity} does not exceed the "
                f"longest default look-back ({longest}); early bars may report "
                "insufficient history."
            ),
        })

    # 4. Nonsensical MACD ordering
    if ind.macd_fast >= ind.macd_slow:
        issues.append({
            "level": "WARNING",
            "message": (
                f"indicators.macd_fast={ind.macd_fast} is not below "
                f"indicators.macd_slow={ind.macd_slow}."
            ),
        })

    return issues
