"""Harvest every filter value of the member search grid.

Workflow:

- Open the search page in a browser session (Playwright by default).
- Read the filter dimension's options once (e.g. every state).
- For each value: select it, run the search, wait for the results grid to be
  replaced, then walk the pager from page 1 to the last page, appending each
  confirmed page's rows to the records file.
- Write a run summary with records per filter value and the filter values that
  were abandoned after a sync timeout.

Wired to ``POST /harvest`` via run_harvest() and to the command line via
``python -m app.harvester.run``.
"""

from __future__ import annotations

import argparse
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, ContextManager, Dict, List, Optional

from . import config
from .config_validation import validate_runtime_config
from .error_codes import HarvestError
from .logging_utils import _harvest_event
from .orchestrator import HarvestOrchestrator, HarvestSummary
from .records import JsonlRecordSink
from .selectors import MEMBER_SEARCH_SELECTORS, GridSelectors
from .surface import AutomationSurface, open_surface
from .telemetry import RunTelemetry
from .utils import ensure_dirs, log_line, save_json_file, setup_run_logger

SurfaceFactory = Callable[..., ContextManager[AutomationSurface]]


def _now_iso() -> str:
    return datetime.utcnow().isoformat(timespec="seconds") + "Z"


def _short_error_message(exc: Exception, max_length: int = 200) -> str:
    message = str(exc) or exc.__class__.__name__
    if len(message) > max_length:
        return message[: max_length - 3] + "..."
    return message


def _record_outcomes(telemetry: RunTelemetry, summary: HarvestSummary) -> None:
    for outcome in summary.outcomes:
        telemetry.add(
            outcome.status,
            outcome.filter_value.label,
            {
                "filter_value": outcome.filter_value.value,
                "records": outcome.records,
                "pages": len(outcome.pages),
                "error_code": outcome.error_code,
            },
        )


def run_harvest(
    search_url: Optional[str] = None,
    *,
    backend: Optional[str] = None,
    headless: Optional[bool] = None,
    max_filters: Optional[int] = None,
    only: Optional[List[str]] = None,
    reset_pager: Optional[bool] = None,
    records_path: Optional[Path] = None,
    trigger: str = "cli",
    selectors: GridSelectors = MEMBER_SEARCH_SELECTORS,
    surface_factory: SurfaceFactory = open_surface,
) -> Dict[str, Any]:
    """Public entrypoint: run one complete crawl and persist its summary.

    Session-level failures (lost browser, no filter values) are recorded in
    the summary file and re-raised.
    """

    ensure_dirs()
    log_path = setup_run_logger()

    url = (search_url or config.SEARCH_URL).strip()
    backend_name = (backend or config.BACKEND).strip().lower()
    limit = config.MAX_FILTERS if max_filters is None else max_filters
    sink = JsonlRecordSink(records_path)
    telemetry = RunTelemetry(trigger)

    result: Dict[str, Any] = {
        "run_id": telemetry.run_id,
        "trigger": trigger,
        "search_url": url,
        "backend": backend_name,
        "log_file": str(log_path),
        "records_file": str(sink.path),
        "started_at": _now_iso(),
    }
    _harvest_event("run", phase="start", run_id=telemetry.run_id, url=url, backend=backend_name)

    try:
        with surface_factory(backend_name, headless=headless) as surface:
            orchestrator = HarvestOrchestrator(surface, sink, selectors, reset_pager=reset_pager)
            orchestrator.open(url)
            summary = orchestrator.run(max_filters=limit, only=only)
    except HarvestError as exc:
        _harvest_event(
            "error",
            phase="run",
            run_id=telemetry.run_id,
            error_code=exc.error_code,
            error=_short_error_message(exc),
        )
        result.update(
            {
                "status": "failed",
                "error_code": exc.error_code,
                "error": _short_error_message(exc),
                "finished_at": _now_iso(),
            }
        )
        save_json_file(config.SUMMARY_FILE, result)
        telemetry.finalize({"status": "failed", "error_code": exc.error_code})
        raise

    _record_outcomes(telemetry, summary)
    result.update(summary.to_dict())
    result["status"] = "completed"
    result["finished_at"] = _now_iso()
    result["telemetry_file"] = telemetry.finalize({"status": "completed"})
    save_json_file(config.SUMMARY_FILE, result)

    for line in summary.format_lines():
        log_line(line)
    _harvest_event("run", phase="end", run_id=telemetry.run_id, records=summary.total_records)
    return result


def _cli_entrypoint(argv: Optional[List[str]] = None) -> None:  # pragma: no cover
    parser = argparse.ArgumentParser(description="Harvest the paginated member search grid")
    parser.add_argument("--url", default=None, help="Search page URL")
    parser.add_argument("--backend", choices=list(config.SUPPORTED_BACKENDS), default=None)
    parser.add_argument("--headful", action="store_true", help="Show the browser window")
    parser.add_argument("--max-filters", type=int, default=None)
    parser.add_argument(
        "--only",
        nargs="*",
        default=None,
        help="Harvest only these filter labels or values",
    )
    parser.add_argument(
        "--reset-pager",
        action="store_true",
        default=None,
        help="Return the pager to page 1 after each filter value",
    )
    parser.add_argument("--records", type=Path, default=None, help="JSON-lines output file")

    args = parser.parse_args(argv)

    ensure_dirs()
    validate_runtime_config("cli")

    run_harvest(
        search_url=args.url,
        backend=args.backend,
        headless=False if args.headful else None,
        max_filters=args.max_filters,
        only=args.only,
        reset_pager=args.reset_pager,
        records_path=args.records,
        trigger="cli",
    )


if __name__ == "__main__":  # pragma: no cover
    _cli_entrypoint()

__all__ = ["run_harvest", "_cli_entrypoint"]
