"""
Evaluate registry indicators over an OHLCV CSV file.

Usage:
    barsim-run --csv prices.csv                          # default EMA and SMA
    barsim-run --csv prices.csv --indicator EMA:20 --indicator MACD
    barsim-run --csv prices.csv --indicator RSI:14 --output rsi.csv
    barsim-run --csv prices.csv --config barsim.yaml --log-level DEBUG
"""
from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

import pandas as pd

from .config import validate_config
from .config_structured import get_config, load_config, set_config
from .errors import ConfigError, EngineError
from .indicators.registry import get_all_indicators, parse_indicators
from .simulation import Simulation
from .utils.logging import get_logger

logger = logging.getLogger(__name__)

DEFAULT_INDICATORS = ["SMA", "EMA"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="barsim-run",
        description="Evaluate technical indicators bar by bar over an OHLCV CSV",
    )
    parser.add_argument("--csv", required=True, help="OHLCV CSV; first column is the index")
    parser.add_argument("--symbol", default="ASSET", help="Symbol label for the instrument")
    parser.add_argument(
        "--indicator", action="append", default=None, metavar="NAME[:P1,P2]",
        help=f"Indicator request, repeatable (known: {', '.join(sorted(get_all_indicators()))})",
    )
    parser.add_argument("--output", help="Write results to this CSV instead of stdout")
    parser.add_argument("--config", help="YAML configuration file")
    parser.add_argument("--log-level", default=None, help="Override logging.level")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Run the command-line entry point. Returns the process exit code."""
    args = build_parser().parse_args(argv)

    try:
        if args.config:
            set_config(load_config(args.config))
    except ConfigError as e:
        print(f"barsim-run: {e}", file=sys.stderr)
        return 2
    cfg = get_config()

    get_logger("barsim", level=args.log_level or cfg.logging.level, structured=cfg.logging.structured)
    for issue in validate_config(cfg):
        level = logging.ERROR if issue["level"] == "ERROR" else logging.WARNING
        logger.log(level, issue["message"])

    try:
        indicators = parse_indicators(args.indicator or DEFAULT_INDICATORS, cfg.indicators)
    except ValueError as e:
        print(f"barsim-run: {e}", file=sys.stderr)
        return 2

    try:
        frame = pd.read_csv(args.csv, index_col=0, parse_dates=True)
    except (OSError, ValueError) as e:
        print(f"barsim-run: could not read {args.csv}: {e}", file=sys.stderr)
        return 2

    def _evaluate(ctx, instruments, timestamp):
        instrument = instruments[args.symbol]
        row = {}
        for indicator in indicators:
            row.update(indicator.evaluate(ctx, instrument))
        return row

    try:
        result = Simulation(frame, symbol=args.symbol, config=cfg).collect(_evaluate)
    except (EngineError, ValueError) as e:
        print(f"barsim-run: {e}", file=sys.stderr)
        return 1

    if args.output:
        result.to_csv(args.output)
        logger.info("Wrote %d row(s) x %d column(s) to %s", len(result), result.shape[1], args.output)
    else:
        result.to_csv(sys.stdout)
    return 0


if __name__ == "__main__":
    sys.exit(main())
