from typing import List

import pytest

from app.harvester.error_codes import ErrorCode, PagerShapeUnrecognized
from app.harvester.pager import (
    CurrentPageMarker,
    LinkAvailable,
    NoFurtherPages,
    PagerInterpreter,
    PagerShape,
    classify_shape,
    current_page_of,
    locate_page,
    parse_pager,
    require_shape,
)
from app.harvester.selectors import MEMBER_SEARCH_SELECTORS
from app.harvester.staleness import TableTracker
from tests.fake_surface import FakeGridSurface, StaticSurface, grid_document, page_link, pager_row

SEL = MEMBER_SEARCH_SELECTORS


def _pager(cells: List[str]) -> str:
    return grid_document(pager_html=pager_row(cells))


def _numbers(current: int, pages: range) -> List[str]:
    return [
        f"<td><span>{n}</span></td>" if n == current else page_link(f"Page${n}", str(n))
        for n in pages
    ]


def _interpreter(surface) -> PagerInterpreter:  # noqa: ANN001
    tracker = TableTracker(surface, SEL, timeout_s=1)
    return PagerInterpreter(surface, SEL, tracker, timeout_s=1)


def _searched(results, **kwargs) -> FakeGridSurface:  # noqa: ANN001
    surface = FakeGridSurface(results, **kwargs)
    surface.navigate("https://example.com/search", timeout_ms=1000)
    value = next(iter(results))
    surface.select(SEL.filter_select, value)
    surface.click(surface.query_one(SEL.search_button))
    return surface


def test_parse_pager_reads_links_marker_and_jump_controls() -> None:
    html = _pager(
        [page_link("Page$First", "First"), page_link("Page$10", "...")]
        + _numbers(11, range(11, 14))
        + [page_link("Page$Last", "Last")]
    )

    cells = parse_pager(html, SEL)

    assert [(cell.kind, cell.page) for cell in cells] == [
        ("first", None),
        ("ellipsis", 10),
        ("current", 11),
        ("link", 12),
        ("link", 13),
        ("last", None),
    ]


def test_parse_pager_without_pager_row_is_empty() -> None:
    assert parse_pager(grid_document(), SEL) == []


def test_shape_linked_when_page_one_reachable() -> None:
    cells = parse_pager(_pager(_numbers(2, range(1, 6))), SEL)
    assert classify_shape(cells) is PagerShape.LINKED


def test_shape_deep_when_low_pages_hidden() -> None:
    cells = parse_pager(
        _pager([page_link("Page$First", "First"), page_link("Page$10", "...")] + _numbers(11, range(11, 16))),
        SEL,
    )
    assert classify_shape(cells) is PagerShape.DEEP


def test_shape_single_page_for_missing_row_or_lone_marker() -> None:
    assert classify_shape([]) is PagerShape.SINGLE_PAGE
    cells = parse_pager(_pager(["<td><span>1</span></td>"]), SEL)
    assert classify_shape(cells) is PagerShape.SINGLE_PAGE
    assert current_page_of(cells) == 1
    assert current_page_of([]) == 1


def test_shape_unrecognized_without_exactly_one_marker() -> None:
    no_marker = parse_pager(_pager([page_link("Page$1", "1"), page_link("Page$2", "2")]), SEL)
    two_markers = parse_pager(_pager(["<td><span>1</span></td>", "<td><span>2</span></td>"]), SEL)

    assert classify_shape(no_marker) is PagerShape.UNRECOGNIZED
    assert classify_shape(two_markers) is PagerShape.UNRECOGNIZED
    with pytest.raises(PagerShapeUnrecognized):
        require_shape(no_marker)


def test_locate_page_never_confuses_one_with_ten() -> None:
    cells = parse_pager(_pager(_numbers(2, range(1, 11))), SEL)

    assert locate_page(cells, 10) == LinkAvailable(10)
    assert locate_page(cells, 2) == CurrentPageMarker(2)
    assert locate_page(cells, 11) == NoFurtherPages()


def test_locate_reports_unrecognized_shape_as_no_further_pages() -> None:
    surface = StaticSurface(_pager([page_link("Page$1", "1"), page_link("Page$2", "2")]))

    state = _interpreter(surface).locate(2)

    assert state == NoFurtherPages(reason=ErrorCode.PAGER_SHAPE_UNRECOGNIZED)


def test_advance_clicks_link_and_confirms_marker() -> None:
    surface = _searched({"AL": 35})
    pager = _interpreter(surface)

    state = pager.advance(2)

    assert state == CurrentPageMarker(2)
    assert surface.current_page == 2
    assert pager.tracker.tracking is False


def test_advance_is_idempotent_on_current_page() -> None:
    surface = _searched({"AL": 35})
    pager = _interpreter(surface)
    pager.advance(2)
    clicks_before = len(surface.clicks)

    state = pager.advance(2)

    assert state == NoFurtherPages(reason="already_current")
    assert len(surface.clicks) == clicks_before


def test_advance_past_last_page_reports_no_link() -> None:
    surface = _searched({"AL": 20})
    pager = _interpreter(surface)

    assert pager.advance(2) == CurrentPageMarker(2)
    assert pager.advance(3) == NoFurtherPages()


def test_advance_follows_ellipsis_into_next_window() -> None:
    surface = _searched({"AL": 150})
    pager = _interpreter(surface)
    for page in range(2, 11):
        assert pager.advance(page) == CurrentPageMarker(page)

    assert pager.advance(11) == CurrentPageMarker(11)
    assert pager.shape() is PagerShape.DEEP


def test_reset_uses_first_control_on_deep_pager() -> None:
    surface = _searched({"AL": 150})
    pager = _interpreter(surface)
    for page in range(2, 12):
        pager.advance(page)

    assert pager.reset() == CurrentPageMarker(1)
    assert surface.current_page == 1
    assert surface.clicks[-1] == "First"


def test_reset_uses_page_one_link_on_linked_pager() -> None:
    surface = _searched({"AL": 35})
    pager = _interpreter(surface)
    pager.advance(3)

    assert pager.reset() == CurrentPageMarker(1)
    assert surface.clicks[-1] == "1"


def test_reset_without_click_when_already_on_first_page() -> None:
    surface = _searched({"AL": 35})
    pager = _interpreter(surface)
    clicks_before = len(surface.clicks)

    assert pager.reset() == CurrentPageMarker(1)
    assert len(surface.clicks) == clicks_before


def test_reset_on_single_page_grid() -> None:
    surface = _searched({"AL": 4})

    assert _interpreter(surface).reset() == CurrentPageMarker(1)
