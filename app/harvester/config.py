"""Configuration constants for the paginated grid harvester."""
from __future__ import annotations

import os
from pathlib import Path

DATA_DIR: Path = Path(os.getenv("HARVEST_DATA_DIR", "/app/data"))
LOG_DIR: Path = DATA_DIR / "logs"
LOG_FILE: Path = LOG_DIR / "latest.log"
RECORDS_FILE: Path = DATA_DIR / "records.jsonl"
SUMMARY_FILE: Path = DATA_DIR / "last_summary.json"
SNAPSHOT_DIR: Path = DATA_DIR / "snapshots"
RUNS_DIR: Path = DATA_DIR / "runs"
EXPORTS_DIR: Path = DATA_DIR / "exports"
SCREENSHOT_FILE: Path = DATA_DIR / "last_failure.png"

DEFAULT_SEARCH_URL: str = "https://myaccount.rid.org/Public/Search/Member.aspx"
SEARCH_URL: str = os.getenv("HARVEST_SEARCH_URL", DEFAULT_SEARCH_URL).strip() or DEFAULT_SEARCH_URL

SUPPORTED_BACKENDS = ("playwright", "selenium")
BACKEND: str = os.getenv("HARVEST_BACKEND", "playwright").strip().lower() or "playwright"
HEADLESS: bool = os.getenv("HARVEST_HEADLESS", "true").strip().lower() not in {"0", "false"}
CHROMIUM_BINARY: str = os.getenv("HARVEST_CHROMIUM_BINARY", "/usr/bin/chromium")


def _parse_timeout_seconds(env_var: str, default: int, *, minimum: int = 1) -> int:
    """Parse a timeout value in seconds from the environment with bounds."""

    try:
        value = int(os.getenv(env_var, str(default)))
    except ValueError:
        return default
    return max(minimum, value)


# Navigation timeout for the initial page load.
NAV_TIMEOUT_SECONDS: int = _parse_timeout_seconds("HARVEST_NAV_TIMEOUT_SECONDS", 30)
# Budget for a single settle wait (table detachment, marker, first appearance).
SETTLE_TIMEOUT_SECONDS: int = _parse_timeout_seconds("HARVEST_SETTLE_TIMEOUT_SECONDS", 30)
# Poll interval for backends without frame-aligned polling (one frame at 60Hz).
POLL_INTERVAL_MS: int = int(os.getenv("HARVEST_POLL_INTERVAL_MS", "16"))

# Reset the pager to page 1 after each filter value.
RESET_PAGER: bool = os.getenv("HARVEST_RESET_PAGER", "false").strip().lower() in {"1", "true"}
# Stop after this many filter values; 0 harvests all of them.
MAX_FILTERS: int = int(os.getenv("HARVEST_MAX_FILTERS", "0"))
# Attach filter label/value and page number to each emitted record.
TAG_RECORDS: bool = os.getenv("HARVEST_TAG_RECORDS", "true").strip().lower() not in {"0", "false"}
# Persist the HTML of each confirmed page for offline replay.
RECORD_SNAPSHOTS: bool = os.getenv("HARVEST_RECORD_SNAPSHOTS", "0").strip().lower() not in {
    "0",
    "false",
}
# Try to raise the results page size on the first filter value.
RAISE_PAGE_SIZE: bool = os.getenv("HARVEST_RAISE_PAGE_SIZE", "true").strip().lower() not in {
    "0",
    "false",
}

BROWSER_ARGS: tuple[str, ...] = (
    "--disable-gpu",
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--window-size=1920,1080",
)

