"""End-to-end crawl over every filter value and every result page.

For each filter value the orchestrator selects it, runs the search, waits for
the grid to settle, harvests page 1, and keeps advancing the pager until it
reports no further pages. A sync timeout abandons only the filter value in
progress; a lost session ends the crawl.
"""
from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from bs4 import BeautifulSoup

from . import config
from .error_codes import ErrorCode, HarvestError, SessionLost, SyncTimeout
from .filters import FilterValue, enumerate_filter_values, limit_filter_values
from .logging_utils import _harvest_event
from .page_harvester import harvest_current_page
from .pager import NoFurtherPages, PagerInterpreter
from .records import HarvestRecord, RecordSink
from .selectors import MEMBER_SEARCH_SELECTORS, GridSelectors
from .staleness import TableTracker
from .surface import AutomationSurface
from .utils import append_json_line, log_line, log_warning

SNAPSHOT_MANIFEST = "snapshots.jsonl"


class HarvestState(str, Enum):
    IDLE = "idle"
    FILTER_SELECTED = "filter_selected"
    AWAITING_SETTLE = "awaiting_settle"
    PAGE_READY = "page_ready"
    PAGINATING = "paginating"
    FILTER_DONE = "filter_done"
    ALL_FILTERS_DONE = "all_filters_done"


@dataclass
class FilterOutcome:
    filter_value: FilterValue
    status: str = "pending"
    records: int = 0
    pages: List[int] = field(default_factory=list)
    page_rows: List[int] = field(default_factory=list)
    error_code: Optional[str] = None
    error: Optional[str] = None
    stop_reason: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def aborted(self) -> bool:
        return self.status == "aborted"

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload.pop("filter_value")
        payload["filter_label"] = self.filter_value.label
        payload["filter_value"] = self.filter_value.value
        return payload


@dataclass
class HarvestSummary:
    outcomes: List[FilterOutcome] = field(default_factory=list)
    page_size: Optional[str] = None
    page_size_error: Optional[str] = None

    @property
    def total_records(self) -> int:
        return sum(outcome.records for outcome in self.outcomes)

    @property
    def aborted(self) -> List[FilterOutcome]:
        return [outcome for outcome in self.outcomes if outcome.aborted]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_records": self.total_records,
            "filters": [outcome.to_dict() for outcome in self.outcomes],
            "aborted": [outcome.filter_value.label for outcome in self.aborted],
            "page_size": self.page_size,
            "page_size_error": self.page_size_error,
        }

    def format_lines(self) -> List[str]:
        lines = [f"Harvested {self.total_records} record(s) across {len(self.outcomes)} filter value(s)"]
        for outcome in self.outcomes:
            lines.append(
                f"  {outcome.filter_value.label}: {outcome.records} record(s), "
                f"{len(outcome.pages)} page(s) [{outcome.status}]"
            )
        if self.aborted:
            lines.append("Aborted filter values:")
            for outcome in self.aborted:
                lines.append(f"  {outcome.filter_value.label}: {outcome.error_code} {outcome.error or ''}".rstrip())
        return lines


def _snapshot_slug(value: str) -> str:
    return re.sub(r"[^A-Za-z0-9_-]+", "_", value).strip("_") or "value"


class HarvestOrchestrator:
    """Drive one automation surface through the whole crawl.

    The surface is owned by the caller and passed in; the orchestrator never
    opens or closes it.
    """

    def __init__(
        self,
        surface: AutomationSurface,
        sink: RecordSink,
        selectors: GridSelectors = MEMBER_SEARCH_SELECTORS,
        *,
        timeout_s: Optional[float] = None,
        reset_pager: Optional[bool] = None,
        raise_page_size: Optional[bool] = None,
        tag_records: Optional[bool] = None,
        record_snapshots: Optional[bool] = None,
        snapshot_dir: Optional[Path] = None,
    ) -> None:
        self.surface = surface
        self.sink = sink
        self.selectors = selectors
        self.timeout_s = config.SETTLE_TIMEOUT_SECONDS if timeout_s is None else timeout_s
        self.reset_pager = config.RESET_PAGER if reset_pager is None else reset_pager
        self.raise_page_size = config.RAISE_PAGE_SIZE if raise_page_size is None else raise_page_size
        self.tag_records = config.TAG_RECORDS if tag_records is None else tag_records
        self.record_snapshots = config.RECORD_SNAPSHOTS if record_snapshots is None else record_snapshots
        self.snapshot_dir = Path(snapshot_dir) if snapshot_dir is not None else config.SNAPSHOT_DIR

        self.tracker = TableTracker(surface, selectors, timeout_s=self.timeout_s)
        self.pager = PagerInterpreter(surface, selectors, self.tracker, timeout_s=self.timeout_s)
        self.state = HarvestState.IDLE
        self.history: List[HarvestState] = [HarvestState.IDLE]

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def open(self, url: str, *, timeout_s: Optional[float] = None) -> None:
        seconds = config.NAV_TIMEOUT_SECONDS if timeout_s is None else timeout_s
        _harvest_event("nav", step="goto", url=url)
        self.surface.navigate(url, timeout_ms=int(seconds * 1000))

    def run(
        self,
        filter_values: Optional[List[FilterValue]] = None,
        *,
        max_filters: int = 0,
        only: Optional[Iterable[str]] = None,
    ) -> HarvestSummary:
        values = filter_values if filter_values is not None else enumerate_filter_values(
            self.surface, self.selectors
        )
        values = limit_filter_values(values, max_filters=max_filters, only=only)

        summary = HarvestSummary()
        for index, filter_value in enumerate(values):
            if self.surface.is_closed():
                raise SessionLost(f"Browser session closed before harvesting {filter_value.label}")
            log_line(f"[{index + 1}/{len(values)}] Harvesting data for {filter_value.label}")
            outcome = FilterOutcome(filter_value)
            summary.outcomes.append(outcome)
            try:
                self._harvest_filter(filter_value, outcome, summary, first=index == 0)
            except SyncTimeout as exc:
                self._abort(outcome, exc)
                continue
            outcome.status = "completed"
            log_line(f"Got {outcome.records} records in all for {filter_value.label}")

        self._transition(HarvestState.ALL_FILTERS_DONE, records=summary.total_records)
        return summary

    # ------------------------------------------------------------------
    # Per-filter state machine
    # ------------------------------------------------------------------

    def _harvest_filter(
        self,
        filter_value: FilterValue,
        outcome: FilterOutcome,
        summary: HarvestSummary,
        *,
        first: bool,
    ) -> None:
        self.surface.select(self.selectors.filter_select, filter_value.value)
        for control, value in self.selectors.fixed_filters:
            self.surface.select(control, value)
        self._transition(HarvestState.FILTER_SELECTED, filter=filter_value.label)

        # The first search has no table to go stale; later searches replace
        # the one left by the previous filter value.
        button = self.surface.query_one(self.selectors.search_button)
        if button is None:
            raise HarvestError(
                f"Search button {self.selectors.search_button!r} not found",
                error_code=ErrorCode.INTERNAL,
            )
        self.tracker.capture()
        try:
            self.surface.click(button)
        except Exception:
            self.tracker.discard()
            raise
        self._transition(HarvestState.AWAITING_SETTLE, filter=filter_value.label)
        self.tracker.settle(label="search")

        if first and self.raise_page_size:
            self._raise_page_size(summary)

        pageno = 1
        self._transition(HarvestState.PAGE_READY, page=pageno)
        while True:
            self._emit_page(filter_value, pageno, outcome)
            self._transition(HarvestState.PAGINATING, page=pageno + 1)
            state = self.pager.advance(pageno + 1)
            if isinstance(state, NoFurtherPages):
                outcome.stop_reason = state.reason
                if state.reason == ErrorCode.PAGER_SHAPE_UNRECOGNIZED:
                    outcome.warnings.append(f"{state.reason} after page {pageno}")
                break
            pageno += 1
            self._transition(HarvestState.PAGE_READY, page=pageno)

        self._transition(HarvestState.FILTER_DONE, filter=filter_value.label, records=outcome.records)
        if self.reset_pager:
            self._reset_pager(outcome)

    def _reset_pager(self, outcome: FilterOutcome) -> None:
        # Every page is already harvested; a stalled reset only costs a warning.
        try:
            self.pager.reset()
        except SyncTimeout as exc:
            self.tracker.discard()
            outcome.warnings.append(f"pager_reset: {exc.error_code}")
            log_warning(f"[PAGER][WARN] Reset to page 1 after {outcome.filter_value.label} did not settle: {exc}")
            _harvest_event("warn", phase="reset", filter=outcome.filter_value.label, error_code=exc.error_code)

    def _emit_page(self, filter_value: FilterValue, pageno: int, outcome: FilterOutcome) -> None:
        log_line(f"Harvesting page {pageno}")
        rows = harvest_current_page(self.surface, self.selectors)
        if self.record_snapshots:
            self._save_snapshot(filter_value, pageno)
        for row in rows:
            record = HarvestRecord(row=row, filter_value=filter_value, page=pageno)
            self.sink.append(record.to_dict(tagged=self.tag_records))
        outcome.pages.append(pageno)
        outcome.page_rows.append(len(rows))
        outcome.records += len(rows)

    def _raise_page_size(self, summary: HarvestSummary) -> None:
        html = self.surface.content()
        match = re.search(self.selectors.page_size_name_pattern, html)
        if not match:
            log_line("[PAGE_SIZE] No page size control found; keeping default page size")
            return

        selector = self.selectors.page_size_selector(match.group(0))
        control = BeautifulSoup(html, "html.parser").select_one(selector)
        if control is None:
            log_line(f"[PAGE_SIZE] Control {selector!r} not present in document")
            return

        sizes: Dict[int, str] = {}
        selected: Optional[str] = None
        for option in control.find_all("option"):
            value = (option.get("value") or "").strip()
            if value.isdigit():
                sizes[int(value)] = value
            if option.has_attr("selected"):
                selected = value
        if not sizes:
            return

        best = sizes[max(sizes)]
        if best == selected:
            summary.page_size = best
            return

        self.tracker.capture()
        try:
            self.surface.select(selector, best)
        except Exception:
            self.tracker.discard()
            raise
        try:
            self.tracker.settle(label="page_size")
        except SyncTimeout as exc:
            summary.page_size_error = str(exc)
            log_warning(f"[PAGE_SIZE][WARN] Page size change to {best} did not settle: {exc}")
            _harvest_event("warn", phase="page_size", error_code=exc.error_code, size=best)
            return
        summary.page_size = best
        _harvest_event("state", phase="page_size", size=best)

    def _save_snapshot(self, filter_value: FilterValue, pageno: int) -> None:
        self.snapshot_dir.mkdir(parents=True, exist_ok=True)
        name = f"{_snapshot_slug(filter_value.value)}_p{pageno:04d}.html"
        (self.snapshot_dir / name).write_text(self.surface.content(), encoding="utf-8")
        append_json_line(
            self.snapshot_dir / SNAPSHOT_MANIFEST,
            {
                "file": name,
                "filter_label": filter_value.label,
                "filter_value": filter_value.value,
                "page": pageno,
            },
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _abort(self, outcome: FilterOutcome, exc: HarvestError) -> None:
        self.tracker.discard()
        outcome.status = "aborted"
        outcome.error_code = exc.error_code
        outcome.error = str(exc)
        log_warning(
            f"[HARVEST][WARN] Abandoning {outcome.filter_value.label} after "
            f"{len(outcome.pages)} page(s): {exc}"
        )
        _harvest_event(
            "error",
            phase="filter",
            filter=outcome.filter_value.label,
            error_code=exc.error_code,
            pages=len(outcome.pages),
            records=outcome.records,
        )
        try:
            self.surface.screenshot(config.SCREENSHOT_FILE)
        except Exception as screenshot_exc:  # noqa: BLE001
            log_line(f"Failed to save debug screenshot: {screenshot_exc}")
        self._transition(HarvestState.FILTER_DONE, filter=outcome.filter_value.label, aborted=True)

    def _transition(self, new_state: HarvestState, **fields: Any) -> None:
        _harvest_event("state", phase="transition", src=self.state.value, dst=new_state.value, **fields)
        self.state = new_state
        self.history.append(new_state)


__all__ = [
    "FilterOutcome",
    "HarvestOrchestrator",
    "HarvestState",
    "HarvestSummary",
]
