"""
Structured logging for the indicator engine.

Provides:
    - StructuredFormatter: JSON formatter for machine-parseable log output.
    - get_logger: Factory for structured loggers.
    - RunMetricsEmitter: Emit engine cache statistics when a run closes.
"""
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional


class StructuredFormatter(logging.Formatter):
    """JSON formatter for machine-parseable log output.

    Each log record is serialised as a single JSON line containing at minimum:
        timestamp, level, module, message.
    If the record carries a ``metrics`` attribute (set via ``extra={"metrics": {...}}``),
    those key-value pairs are included under the ``"metrics"`` key.
    """

    def format(self, record: logging.LogRecord) -> str:
        """format."""
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.module,
            "message": record.getMessage(),
        }
        if hasattr(record, "metrics"):
            log_entry["metrics"] = record.metrics
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def get_logger(name: str, level: str = "INFO", structured: bool = True) -> logging.Logger:
    """Get a logger for the indicator engine.

    Parameters
    ----------
    name : str
        Logger name (typically ``__name__`` of the calling module).
    level : str
        Minimum log level.  One of DEBUG, INFO, WARNING, ERROR, CRITICAL.
    structured : bool
        Attach a ``StructuredFormatter`` (JSON lines) when True, a plain
        ``asctime | level | message`` formatter otherwise.

    Returns
    -------
    logging.Logger
        Configured logger.  If the logger already has handlers (e.g. from
        a previous call), no duplicate handler is added.
    """
    logger = logging.getLogger(name)
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(numeric_level)

    # Avoid adding duplicate handlers on repeated calls
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(numeric_level)
        if structured:
            handler.setFormatter(StructuredFormatter())
        else:
            handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(message)s"))
        logger.addHandler(handler)

    return logger


class RunMetricsEmitter:
    """Emit per-run engine statistics when a simulation context closes.

    Usage::

        emitter = RunMetricsEmitter()
        emitter.emit_run_metrics(
            run_id="a1b2c3",
            bars=250,
            entries=14,
            hits=3100,
            misses=14,
            recomputes=3500,
            nan_substitutions=0,
        )
    """

    def __init__(self, logger_name: str = "barsim.metrics", logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger(logger_name)

    def emit_run_metrics(
        self,
        run_id: str,
        bars: int,
        entries: int,
        hits: int,
        misses: int,
        recomputes: int,
        nan_substitutions: int,
    ) -> Dict[str, Any]:
        """Log a structured metrics payload for one finished run.

        Parameters
        ----------
        run_id : str
            Identifier of the simulation context.
        bars : int
            Number of bars the context advanced through.
        entries : int
            Cache entries alive at close.
        hits, misses : int
            ``get_or_create`` lookups that found / created an entry.
        recomputes : int
            Per-bar step evaluations across all entries.
        nan_substitutions : int
            Step results replaced by the NaN fallback.

        Returns
        -------
        dict
            The emitted metrics payload.
        """
        lookups = hits + misses
        metrics: Dict[str, Any] = {
            "run_id": run_id,
            "bars": bars,
            "entries": entries,
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / lookups, 6) if lookups else 0.0,
            "recomputes": recomputes,
            "nan_substitutions": nan_substitutions,
        }
        self.logger.info("run_metrics", extra={"metrics": metrics})
        if nan_substitutions:
            self.logger.warning(
                f"{nan_substitutions} NaN step result(s) replaced by fallback",
                extra={"metrics": {"run_id": run_id, "nan_substitutions": nan_substitutions}},
            )
        return metrics
