import pytest

from app.harvester import staleness
from app.harvester.error_codes import SyncTimeout
from app.harvester.selectors import MEMBER_SEARCH_SELECTORS
from app.harvester.staleness import TableTracker, await_detachment
from tests.fake_surface import FakeGridSurface, StaticSurface, grid_document

SEL = MEMBER_SEARCH_SELECTORS


def _opened(results, **kwargs) -> FakeGridSurface:  # noqa: ANN001
    surface = FakeGridSurface(results, **kwargs)
    surface.navigate("https://example.com/search", timeout_ms=1000)
    return surface


def test_first_search_waits_for_table_to_appear() -> None:
    surface = _opened({"AL": 5})
    tracker = TableTracker(surface, SEL, timeout_s=1)

    assert tracker.capture() is False
    surface.select(SEL.filter_select, "AL")
    surface.click(surface.query_one(SEL.search_button))
    tracker.settle(label="search")

    assert tracker.tracking is False
    assert surface.query_one(SEL.results_table) is not None


def test_settle_waits_for_captured_table_to_detach() -> None:
    surface = _opened({"AL": 5, "AK": 3})
    surface.select(SEL.filter_select, "AL")
    surface.click(surface.query_one(SEL.search_button))
    tracker = TableTracker(surface, SEL, timeout_s=1)

    assert tracker.capture() is True
    surface.select(SEL.filter_select, "AK")
    surface.click(surface.query_one(SEL.search_button))
    tracker.settle(label="search")

    assert surface.searched_value == "AK"


def test_settle_times_out_when_table_is_never_replaced() -> None:
    surface = _opened({"AL": 5, "AK": 3}, stall_search=["AK"])
    surface.select(SEL.filter_select, "AL")
    surface.click(surface.query_one(SEL.search_button))
    tracker = TableTracker(surface, SEL, timeout_s=1)

    tracker.capture()
    surface.select(SEL.filter_select, "AK")
    surface.click(surface.query_one(SEL.search_button))
    with pytest.raises(SyncTimeout):
        tracker.settle(label="search")

    # The stale handle is dropped even though the wait failed.
    assert tracker.tracking is False
    assert tracker.capture() is True


def test_capture_refuses_a_second_handle() -> None:
    surface = StaticSurface(grid_document())
    tracker = TableTracker(surface, SEL, timeout_s=1)
    tracker.capture()

    with pytest.raises(RuntimeError):
        tracker.capture()

    tracker.discard()
    assert tracker.capture() is True


def test_settle_requires_capture() -> None:
    tracker = TableTracker(StaticSurface(grid_document()), SEL, timeout_s=1)
    with pytest.raises(RuntimeError):
        tracker.settle()


def test_await_detachment_logs_elapsed_time(monkeypatch: pytest.MonkeyPatch) -> None:
    events = []
    monkeypatch.setattr(staleness, "_harvest_event", lambda label, **fields: events.append((label, fields)))
    surface = StaticSurface(grid_document())
    handle = surface.query_one(SEL.results_table)
    surface._replace(grid_document())

    await_detachment(surface, handle, timeout_s=1, label="page_2")

    assert events[-1][0] == "sync"
    assert events[-1][1]["action"] == "page_2"
    assert "elapsed_ms" in events[-1][1]


def test_settle_times_out_when_first_table_never_appears() -> None:
    surface = StaticSurface()
    tracker = TableTracker(surface, SEL, timeout_s=1)

    assert tracker.capture() is False
    with pytest.raises(SyncTimeout):
        tracker.settle(label="search")

    assert tracker.tracking is False
