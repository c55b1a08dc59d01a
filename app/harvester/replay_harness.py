"""Offline replay of captured page snapshots.

A run with ``HARVEST_RECORD_SNAPSHOTS`` enabled stores the HTML of every
confirmed page next to a ``snapshots.jsonl`` manifest. This module re-extracts
rows from those files without a browser, which is how selector changes are
checked against real pages.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from .config_validation import validate_runtime_config
from .filters import FilterValue
from .logging_utils import _harvest_event
from .orchestrator import SNAPSHOT_MANIFEST
from .page_harvester import parse_rows
from .pager import classify_shape, parse_pager
from .records import HarvestRecord, RecordSink
from .selectors import MEMBER_SEARCH_SELECTORS, GridSelectors
from .utils import load_json_lines, log_line


@dataclass
class ReplayConfig:
    snapshot_dir: Path
    selectors: GridSelectors = MEMBER_SEARCH_SELECTORS
    tagged: bool = True


def load_snapshot_manifest(snapshot_dir: Path) -> Iterable[Dict[str, Any]]:
    for item in load_json_lines(snapshot_dir / SNAPSHOT_MANIFEST):
        if not isinstance(item, dict) or not item.get("file"):
            continue
        yield item


def run_replay(config_obj: ReplayConfig, sink: Optional[RecordSink] = None) -> Dict[str, Any]:
    validate_runtime_config("replay")
    entries = list(load_snapshot_manifest(config_obj.snapshot_dir))
    summary: Dict[str, Any] = {
        "snapshots": len(entries),
        "processed": 0,
        "missing": 0,
        "records": 0,
        "shapes": {},
    }
    shapes: Counter = Counter()

    _harvest_event("replay", phase="start", snapshot_dir=str(config_obj.snapshot_dir))

    for item in entries:
        path = config_obj.snapshot_dir / str(item["file"])
        if not path.exists():
            log_line(f"[REPLAY] Snapshot {path} listed in manifest but missing")
            summary["missing"] += 1
            continue

        html = path.read_text(encoding="utf-8")
        rows = parse_rows(html, config_obj.selectors)
        shapes[classify_shape(parse_pager(html, config_obj.selectors)).value] += 1

        filter_value = FilterValue(
            label=str(item.get("filter_label") or ""),
            value=str(item.get("filter_value") or ""),
        )
        page = item.get("page")
        if sink is not None:
            for row in rows:
                record = HarvestRecord(row=row, filter_value=filter_value, page=page)
                sink.append(record.to_dict(tagged=config_obj.tagged))

        summary["processed"] += 1
        summary["records"] += len(rows)
        log_line(f"[REPLAY] {path.name}: {len(rows)} row(s)")

    summary["shapes"] = dict(shapes)
    _harvest_event("replay", phase="end", **{k: v for k, v in summary.items() if k != "shapes"})
    return summary


if __name__ == "__main__":
    import argparse

    from .records import JsonlRecordSink

    parser = argparse.ArgumentParser(description="Re-extract rows from saved page snapshots.")
    parser.add_argument("snapshot_dir", help="Directory holding snapshots.jsonl")
    parser.add_argument("--output", default=None, help="JSON-lines file to append records to")
    args = parser.parse_args()

    output_sink = JsonlRecordSink(Path(args.output)) if args.output else None
    result = run_replay(ReplayConfig(snapshot_dir=Path(args.snapshot_dir)), output_sink)
    log_line(f"[REPLAY] {result}")
