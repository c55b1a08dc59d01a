from app.harvester.page_harvester import harvest_current_page, parse_rows
from app.harvester.selectors import MEMBER_SEARCH_SELECTORS
from tests.fake_surface import StaticSurface, grid_document, page_link, pager_row

SEL = MEMBER_SEARCH_SELECTORS


def test_parse_rows_maps_cells_to_headers() -> None:
    rows_html = (
        '<tr class="RowStyle"><td>Jane <b>Doe</b></td><td>Mobile</td><td>Alabama</td></tr>'
        '<tr class="AlternatingRowStyle"><td>John Roe</td><td> Selma </td><td>Alabama</td></tr>'
    )

    rows = parse_rows(grid_document(rows_html), SEL)

    assert rows == [
        {"Name": "Jane Doe", "City": "Mobile", "State": "Alabama"},
        {"Name": "John Roe", "City": "Selma", "State": "Alabama"},
    ]


def test_parse_rows_skips_pager_and_pads_short_rows() -> None:
    rows_html = '<tr class="RowStyle"><td>Only Name</td></tr>'
    pager = pager_row(["<td><span>1</span></td>", page_link("Page$2", "2")])

    rows = parse_rows(grid_document(rows_html, pager), SEL)

    assert rows == [{"Name": "Only Name", "City": "", "State": ""}]


def test_parse_rows_without_table_returns_nothing() -> None:
    assert parse_rows("<html><body><p>No results</p></body></html>", SEL) == []


def test_harvest_current_page_reads_live_document() -> None:
    surface = StaticSurface(grid_document('<tr class="RowStyle"><td>A</td><td>B</td><td>C</td></tr>'))

    assert harvest_current_page(surface, SEL) == [{"Name": "A", "City": "B", "State": "C"}]
