"""Per-run telemetry: one JSON document per harvest run under ``RUNS_DIR``."""

from __future__ import annotations

import time
import uuid
from collections import Counter
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import config
from .utils import save_json_file


def _run_stamp() -> str:
    return time.strftime("%Y%m%d_%H%M%S")


class RunTelemetry:
    """Collect per-filter outcomes for one harvest run."""

    def __init__(self, trigger: str) -> None:
        self.run_id = f"{_run_stamp()}_{uuid.uuid4().hex[:8]}"
        self.trigger = trigger
        self.started_at = time.time()
        self.filters: List[Dict[str, Any]] = []
        self.counts: Counter = Counter()
        config.RUNS_DIR.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return config.RUNS_DIR / f"run_{self.run_id}.json"

    def add(self, status: str, filter_label: str, meta: Dict[str, Any]) -> None:
        self.filters.append({"status": status, "filter_label": filter_label, **meta})
        self.counts[f"count_{status}"] += 1
        self.counts["records"] += int(meta.get("records") or 0)
        self.counts["pages"] += int(meta.get("pages") or 0)

    def finalize(self, extra: Optional[Dict[str, Any]] = None) -> str:
        finished = time.time()
        save_json_file(
            self.path,
            {
                "run_id": self.run_id,
                "trigger": self.trigger,
                "started_at": self.started_at,
                "ended_at": finished,
                "duration_s": round(finished - self.started_at, 3),
                "summary": dict(self.counts),
                "filters": self.filters,
                **(extra or {}),
            },
        )
        return str(self.path)


__all__ = ["RunTelemetry"]
