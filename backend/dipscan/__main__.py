"""CLI entry point for the dip scanner.

Usage:
    python -m dipscan data/btc_1h.csv
    python -m dipscan data/btc_1h.csv --threshold 70 --cooldown-hours 240
    python -m dipscan data/btc_1h.csv --window-days 730 --offset-days 90
    python -m dipscan data/btc_1h.csv --config weights.yaml -o scan.json
"""

import argparse
import logging
import sys

from pydantic import ValidationError

from dipscore.models.config import MS_PER_HOUR

from dipscan.config import ScanSettings, get_scan_settings, load_pipeline_config
from dipscan.loader import DataLoadError
from dipscan.report import ReportFormatter
from dipscan.runner import ScanRunner


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Score OHLCV bars for dip-buying confidence and list buy events",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m dipscan data/btc_1h.csv
  python -m dipscan data/btc_1h.csv --threshold 70 --peak-window-hours 24
  python -m dipscan data/btc_1h.csv --window-days 730 --offset-days 90
  python -m dipscan data/btc_1h.csv --config weights.yaml -o scan.json
        """,
    )

    parser.add_argument(
        "file",
        type=str,
        help="CSV file (headered OHLCV or Binance kline rows)",
    )

    # Buy-event parameters (default: settings / environment)
    parser.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="Confidence threshold for buy events (0-100)",
    )
    parser.add_argument(
        "--peak-window-hours",
        type=float,
        default=None,
        help="Forward window in which no higher confidence may follow a buy",
    )
    parser.add_argument(
        "--cooldown-hours",
        type=float,
        default=None,
        help="Minimum time between two buy events",
    )

    # Visible window
    parser.add_argument(
        "--window-days",
        type=int,
        default=None,
        help="Days of data to score, counted back from the last bar",
    )
    parser.add_argument(
        "--offset-days",
        type=int,
        default=None,
        help="Shift the window back by this many days",
    )

    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="YAML file with vsa_weights / score_weights / vsa_window / buy sections",
    )
    parser.add_argument(
        "--output", "-o",
        type=str,
        default=None,
        help="Output file path for JSON results",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose logging",
    )
    return parser.parse_args(argv)


def _apply_window_overrides(settings: ScanSettings, args: argparse.Namespace) -> ScanSettings:
    """Return ``settings`` with the window given on the command line, re-validated."""
    overrides = {}
    if args.window_days is not None:
        overrides["window_days"] = args.window_days
    if args.offset_days is not None:
        overrides["offset_days"] = args.offset_days
    if not overrides:
        return settings
    return ScanSettings(**{**settings.model_dump(), **overrides})


def _apply_overrides(config, args: argparse.Namespace):
    """Return ``config`` with the buy parameters given on the command line."""
    overrides = {}
    if args.threshold is not None:
        overrides["threshold"] = args.threshold
    if args.peak_window_hours is not None:
        overrides["peak_window_ms"] = int(args.peak_window_hours * MS_PER_HOUR)
    if args.cooldown_hours is not None:
        overrides["cooldown_ms"] = int(args.cooldown_hours * MS_PER_HOUR)
    if not overrides:
        return config

    # Re-validate through the model so bounds still apply
    buy = type(config.buy)(**{**config.buy.model_dump(), **overrides})
    return config.model_copy(update={"buy": buy})


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = get_scan_settings()

    # Configure logging
    level = logging.DEBUG if args.verbose else getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        config = _apply_overrides(load_pipeline_config(args.config, settings), args)
        settings = _apply_window_overrides(settings, args)
    except ValidationError as e:
        print(f"Error: invalid configuration\n{e}")
        return 1

    runner = ScanRunner(
        config=config,
        window_days=settings.window_days,
        offset_days=settings.offset_days,
    )

    print(f"\nScanning {args.file}...")
    try:
        result = runner.run_file(args.file)
    except DataLoadError as e:
        print(f"Error: {e}")
        return 1

    # Print console report
    ReportFormatter.print_console(result)

    # Optional: save JSON
    if args.output:
        ReportFormatter.save_json(result, args.output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
