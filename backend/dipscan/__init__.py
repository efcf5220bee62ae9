"""Dip scanner: CSV in, confidence report and buy events out.

Only depends on dipscore/ for business logic; this package owns file
ingestion, configuration and reporting.

Usage:
    python -m dipscan data/btc_1h.csv
    python -m dipscan data/btc_1h.csv --threshold 70 --window-days 730 -o scan.json
"""

from dipscan.runner import ScanResult, ScanRunner

__all__ = ["ScanResult", "ScanRunner"]
