"""Pager interpretation and page-to-page navigation for the results grid.

The pager changes shape with the size of the result set and the active page:

* ``LINKED``: numbered links around a plain ``<span>`` marking the active page.
* ``DEEP``: low page numbers are hidden once the active page moves far enough
  along, and a "first" control (postback target ``Page$First``) replaces the
  link to page 1.
* ``SINGLE_PAGE``: only the active-page marker is rendered, or no pager row at
  all when the grid has a single page of results.

Anything else is ``UNRECOGNIZED`` and is treated as the end of pagination.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Union

from bs4 import BeautifulSoup

from . import config
from .error_codes import ErrorCode, PagerShapeUnrecognized
from .logging_utils import _harvest_event
from .selectors import GridSelectors
from .staleness import TableTracker
from .surface import AutomationSurface
from .utils import log_line, log_warning

# Page-side predicate: a non-link span in the pager row shows the given text.
MARKER_PRESENT_JS = """
([rowSelector, text]) => Array.from(document.querySelectorAll(rowSelector + ' span'))
    .some(s => !s.closest('a') && s.textContent.trim() === text)
"""


class PagerShape(str, Enum):
    LINKED = "linked"
    DEEP = "deep"
    SINGLE_PAGE = "single_page"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class PagerCell:
    kind: str  # link, ellipsis, current, first or last
    text: str
    target: Optional[str] = None
    page: Optional[int] = None


@dataclass(frozen=True)
class LinkAvailable:
    page: int


@dataclass(frozen=True)
class CurrentPageMarker:
    page: int


@dataclass(frozen=True)
class NoFurtherPages:
    reason: str = "no_link"


PagerState = Union[LinkAvailable, CurrentPageMarker, NoFurtherPages]


def parse_pager(html: str, selectors: GridSelectors) -> List[PagerCell]:
    """Return the pager cells found in ``html`` in rendering order."""

    soup = BeautifulSoup(html, "html.parser")
    row = soup.select_one(selectors.pager_row)
    if row is None:
        return []

    target_re = re.compile(r"'(" + re.escape(selectors.page_token_prefix) + r"[^']+)'")
    cells: List[PagerCell] = []
    for node in row.find_all(["a", "span"]):
        text = node.get_text(strip=True)
        if node.name == "a":
            match = target_re.search(node.get("href") or "")
            if not match:
                continue
            target = match.group(1)
            if target == selectors.first_page_token:
                cells.append(PagerCell("first", text, target))
                continue
            if target == selectors.last_page_token:
                cells.append(PagerCell("last", text, target))
                continue
            suffix = target[len(selectors.page_token_prefix):]
            if suffix.isdigit():
                kind = "ellipsis" if text == "..." else "link"
                cells.append(PagerCell(kind, text, target, int(suffix)))
            continue

        if node.find_parent("a") is not None:
            continue
        if text.isdigit():
            cells.append(PagerCell("current", text, None, int(text)))

    return cells


def links_to(cells: List[PagerCell], pageno: int) -> bool:
    return any(cell.kind in ("link", "ellipsis") and cell.page == pageno for cell in cells)


def classify_shape(cells: List[PagerCell]) -> PagerShape:
    if not cells:
        return PagerShape.SINGLE_PAGE

    markers = [cell for cell in cells if cell.kind == "current"]
    if len(markers) != 1:
        return PagerShape.UNRECOGNIZED

    navigable = [cell for cell in cells if cell.kind != "current"]
    if not navigable:
        return PagerShape.SINGLE_PAGE

    has_page_one_link = links_to(cells, 1)
    has_first_control = any(cell.kind == "first" for cell in cells)
    if has_first_control and not has_page_one_link and markers[0].page != 1:
        return PagerShape.DEEP
    return PagerShape.LINKED


def require_shape(cells: List[PagerCell]) -> PagerShape:
    shape = classify_shape(cells)
    if shape is PagerShape.UNRECOGNIZED:
        rendered = ", ".join(f"{cell.kind}:{cell.text}" for cell in cells) or "<empty>"
        raise PagerShapeUnrecognized(f"Pager matched no known shape: {rendered}")
    return shape


def current_page_of(cells: List[PagerCell]) -> Optional[int]:
    if not cells:
        # A grid with a single page of results renders no pager row at all.
        return 1
    for cell in cells:
        if cell.kind == "current":
            return cell.page
    return None


def locate_page(cells: List[PagerCell], pageno: int) -> PagerState:
    """Answer whether ``pageno`` can be reached from the pager described by ``cells``."""

    require_shape(cells)
    if links_to(cells, pageno):
        return LinkAvailable(pageno)
    if current_page_of(cells) == pageno:
        return CurrentPageMarker(pageno)
    return NoFurtherPages()


class PagerInterpreter:
    """Read the pager of the live document and move between pages."""

    def __init__(
        self,
        surface: AutomationSurface,
        selectors: GridSelectors,
        tracker: TableTracker,
        *,
        timeout_s: Optional[float] = None,
    ) -> None:
        self.surface = surface
        self.selectors = selectors
        self.tracker = tracker
        self.timeout_s = config.SETTLE_TIMEOUT_SECONDS if timeout_s is None else timeout_s

    def read(self) -> List[PagerCell]:
        return parse_pager(self.surface.content(), self.selectors)

    def shape(self) -> PagerShape:
        return classify_shape(self.read())

    def locate(self, pageno: int) -> PagerState:
        cells = self.read()
        try:
            return locate_page(cells, pageno)
        except PagerShapeUnrecognized as exc:
            self._warn_unrecognized(exc, pageno=pageno)
            return NoFurtherPages(reason=ErrorCode.PAGER_SHAPE_UNRECOGNIZED)

    def advance(self, pageno: int) -> PagerState:
        """Click through to ``pageno`` and confirm arrival.

        Returns ``CurrentPageMarker(pageno)`` once the old table is stale and
        the pager marks ``pageno`` as active, or ``NoFurtherPages`` when there
        is no link to it. A pager already showing ``pageno`` as active also
        yields ``NoFurtherPages`` so a repeated call never re-harvests a page.
        """

        state = self.locate(pageno)
        if isinstance(state, CurrentPageMarker):
            _harvest_event("pager", phase="advance", page=pageno, result="already_current")
            return NoFurtherPages(reason="already_current")
        if isinstance(state, NoFurtherPages):
            _harvest_event("pager", phase="advance", page=pageno, result=state.reason)
            return state

        log_line(f"Going to page {pageno}")
        token = self.selectors.page_token(pageno)
        if not self._click_and_confirm(self.selectors.link_selector(token), pageno):
            return NoFurtherPages(reason="link_vanished")
        return CurrentPageMarker(pageno)

    def reset(self) -> PagerState:
        """Return the grid to page 1.

        Prefers the direct page 1 link, then the jump-to-first control. When
        neither exists the marker must already show page 1.
        """

        cells = self.read()
        try:
            require_shape(cells)
        except PagerShapeUnrecognized as exc:
            self._warn_unrecognized(exc, pageno=1)
            return NoFurtherPages(reason=ErrorCode.PAGER_SHAPE_UNRECOGNIZED)

        if links_to(cells, 1):
            selector = self.selectors.link_selector(self.selectors.page_token(1))
        elif any(cell.kind == "first" for cell in cells):
            selector = self.selectors.link_selector(self.selectors.first_page_token)
        elif current_page_of(cells) == 1:
            _harvest_event("pager", phase="reset", result="already_first")
            return CurrentPageMarker(1)
        else:
            exc = PagerShapeUnrecognized("Pager offers no way back to page 1")
            self._warn_unrecognized(exc, pageno=1)
            return NoFurtherPages(reason=ErrorCode.PAGER_SHAPE_UNRECOGNIZED)

        if not self._click_and_confirm(selector, 1):
            return NoFurtherPages(reason="link_vanished")
        _harvest_event("pager", phase="reset", result="clicked")
        return CurrentPageMarker(1)

    def await_marker(self, pageno: int) -> None:
        self.surface.wait_for_function(
            MARKER_PRESENT_JS,
            [self.selectors.pager_row, str(pageno)],
            timeout_ms=max(1, int(self.timeout_s * 1000)),
        )

    def _click_and_confirm(self, selector: str, pageno: int) -> bool:
        link = self.surface.query_one(selector)
        if link is None:
            log_line(f"[PAGER] Link {selector!r} disappeared before it could be clicked")
            return False

        self.tracker.capture()
        try:
            self.surface.click(link)
        except Exception:
            self.tracker.discard()
            raise
        # Staleness proves the old rows are gone; the marker proves we landed
        # on the page we asked for.
        self.tracker.settle(label=f"page_{pageno}")
        self.await_marker(pageno)
        return True

    @staticmethod
    def _warn_unrecognized(exc: PagerShapeUnrecognized, *, pageno: int) -> None:
        log_warning(f"[PAGER][WARN] {exc}; treating page {pageno} as unreachable")
        _harvest_event(
            "warn",
            phase="pager",
            error_code=exc.error_code,
            page=pageno,
            error=str(exc),
        )


__all__ = [
    "CurrentPageMarker",
    "LinkAvailable",
    "MARKER_PRESENT_JS",
    "NoFurtherPages",
    "PagerCell",
    "PagerInterpreter",
    "PagerShape",
    "PagerState",
    "classify_shape",
    "current_page_of",
    "links_to",
    "locate_page",
    "parse_pager",
]
