"""Extract the rows of the results grid currently on screen."""
from __future__ import annotations

from typing import Dict, List

from bs4 import BeautifulSoup
from bs4.element import Tag

from .logging_utils import _harvest_event
from .selectors import GridSelectors
from .surface import AutomationSurface

RawRow = Dict[str, str]


def _cell_text(cell: Tag) -> str:
    return " ".join(cell.stripped_strings)


def _is_data_row(row: Tag, selectors: GridSelectors) -> bool:
    classes = row.get("class") or []
    return any(name in classes for name in selectors.row_classes)


def parse_rows(html: str, selectors: GridSelectors) -> List[RawRow]:
    """Return the data rows of the results table in ``html``.

    Header cells are read once and applied positionally to every data row.
    Rows shorter than the header get empty strings for the missing columns.
    """

    soup = BeautifulSoup(html, "html.parser")
    table = soup.select_one(selectors.results_table)
    if table is None:
        return []

    header_row = next(
        (row for row in table.find_all("tr") if row.find("th", recursive=False) is not None),
        None,
    )
    headers = (
        [_cell_text(th) for th in header_row.find_all("th", recursive=False)]
        if header_row is not None
        else []
    )

    results: List[RawRow] = []
    for row in table.find_all("tr"):
        if not _is_data_row(row, selectors):
            continue
        values = [_cell_text(td) for td in row.find_all("td", recursive=False)]
        record: RawRow = {}
        for index, header in enumerate(headers):
            record[header] = values[index] if index < len(values) else ""
        results.append(record)

    return results


def harvest_current_page(surface: AutomationSurface, selectors: GridSelectors) -> List[RawRow]:
    """Read every data row of the settled page from the live document."""

    rows = parse_rows(surface.content(), selectors)
    _harvest_event("page", phase="harvest", rows=len(rows))
    return rows


__all__ = ["RawRow", "harvest_current_page", "parse_rows"]
