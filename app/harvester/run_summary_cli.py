from __future__ import annotations

"""CLI helper for printing the summary of the last harvest run."""

import argparse
from pathlib import Path
from typing import Sequence

from . import config
from .utils import load_json_file


def _build_parser() -> argparse.ArgumentParser:
    """Return an argument parser for the run summary CLI."""

    parser = argparse.ArgumentParser(
        description="Show records per filter value for the last harvest run.",
    )
    parser.add_argument(
        "--summary-file",
        type=Path,
        default=None,
        help="Summary JSON to read (defaults to the last run's summary).",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the run summary CLI."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    path = args.summary_file or config.SUMMARY_FILE
    summary = load_json_file(path)
    if not isinstance(summary, dict):
        parser.error(f"No run summary found at {path}")

    print(f"Run {summary.get('run_id', '?')} [{summary.get('status', 'unknown')}]")
    if summary.get("error_code"):
        print(f"  error: {summary['error_code']} {summary.get('error') or ''}".rstrip())

    filters = summary.get("filters") or []
    for item in filters:
        print(
            f"  {item.get('filter_label')}: {item.get('records', 0)} record(s), "
            f"{len(item.get('pages') or [])} page(s) [{item.get('status')}]"
        )
    if filters:
        print(f"  total: {summary.get('total_records', 0)}")

    aborted = [item for item in filters if item.get("status") == "aborted"]
    if aborted:
        print("\nAborted filter values:")
        for item in aborted:
            print(f"  {item.get('filter_label')}: {item.get('error_code')}")

    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry
    raise SystemExit(main())
