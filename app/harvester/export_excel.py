"""Excel export of harvested records."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import pandas as pd

from . import config
from .records import FILTER_LABEL_KEY, PAGE_KEY, load_records

MAX_EXPORTS = int(os.environ.get("EXPORTS_KEEP_MAX", "5"))


def prune_old_exports() -> None:
    if not config.EXPORTS_DIR.is_dir():
        return
    files = sorted(path for path in config.EXPORTS_DIR.iterdir() if path.suffix == ".xlsx")
    while len(files) > MAX_EXPORTS:
        old = files.pop(0)
        try:
            old.unlink()
        except OSError:
            continue


def export_records_to_excel(
    records_path: Optional[Path] = None, dest_path: Optional[Path] = None
) -> Path:
    """Write harvested records and a per-filter summary to an ``.xlsx`` workbook."""

    records = load_records(records_path)
    if not records:
        raise FileNotFoundError("No harvested records available to export")

    df = pd.DataFrame(records)

    if FILTER_LABEL_KEY in df.columns:
        grouped = df.groupby(FILTER_LABEL_KEY, sort=False)
        summary = grouped.size().reset_index(name="records")
        if PAGE_KEY in df.columns:
            pages = grouped[PAGE_KEY].nunique().reset_index(name="pages")
            summary = summary.merge(pages, on=FILTER_LABEL_KEY)
    else:
        summary = pd.DataFrame([{"records": len(df)}])

    if dest_path is None:
        config.EXPORTS_DIR.mkdir(parents=True, exist_ok=True)
        dest_path = config.EXPORTS_DIR / f"records_{pd.Timestamp.now(tz='UTC'):%Y%m%d_%H%M%S}.xlsx"

    with pd.ExcelWriter(dest_path, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name="Records")
        summary.to_excel(writer, index=False, sheet_name="Summary_Filter")

    prune_old_exports()
    return Path(dest_path)


__all__ = ["export_records_to_excel", "prune_old_exports"]
