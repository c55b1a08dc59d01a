from __future__ import annotations

"""Enumerate the values of the filter dimension that drives the crawl."""

from dataclasses import dataclass
from typing import Iterable, List, Optional

from bs4 import BeautifulSoup

from .error_codes import FilterEnumerationEmpty
from .logging_utils import _harvest_event
from .selectors import GridSelectors
from .surface import AutomationSurface


@dataclass(frozen=True)
class FilterValue:
    label: str
    value: str


def parse_filter_options(html: str, select_selector: str) -> List[FilterValue]:
    """Return the options of ``select_selector`` in rendering order.

    Options with an empty value are placeholders ("Select a state") and are
    left out.
    """

    soup = BeautifulSoup(html, "html.parser")
    control = soup.select_one(select_selector)
    if control is None:
        return []

    values: List[FilterValue] = []
    for option in control.find_all("option"):
        value = (option.get("value") or "").strip()
        if not value:
            continue
        values.append(FilterValue(label=option.get_text(strip=True), value=value))
    return values


def enumerate_filter_values(surface: AutomationSurface, selectors: GridSelectors) -> List[FilterValue]:
    """Read the filter control's options once from the live document."""

    values = parse_filter_options(surface.content(), selectors.filter_select)
    if not values:
        raise FilterEnumerationEmpty(
            f"No filter values found in {selectors.filter_select!r}"
        )
    _harvest_event("filters", phase="enumerate", count=len(values))
    return values


def limit_filter_values(
    values: List[FilterValue],
    *,
    max_filters: int = 0,
    only: Optional[Iterable[str]] = None,
) -> List[FilterValue]:
    """Restrict a run to selected filter values without reordering them.

    ``only`` matches either the label or the value, case-insensitively.
    ``max_filters`` of zero keeps everything.
    """

    selected = list(values)
    if only:
        wanted = {item.strip().lower() for item in only if item and item.strip()}
        selected = [
            item for item in selected if item.label.lower() in wanted or item.value.lower() in wanted
        ]
    if max_filters and max_filters > 0:
        selected = selected[:max_filters]
    if not selected:
        raise FilterEnumerationEmpty("No filter values left after applying run limits")
    return selected


__all__ = [
    "FilterValue",
    "enumerate_filter_values",
    "limit_filter_values",
    "parse_filter_options",
]
