from bs4 import BeautifulSoup

from app.harvester.selectors import MEMBER_SEARCH_SELECTORS, GridSelectors
from tests.fake_surface import page_link, pager_row


def test_link_selector_matches_exact_page_token() -> None:
    html = pager_row([page_link("Page$1", "1"), page_link("Page$10", "10"), page_link("Page$11", "...")])
    soup = BeautifulSoup(html, "html.parser")

    selector = MEMBER_SEARCH_SELECTORS.link_selector(MEMBER_SEARCH_SELECTORS.page_token(1))
    matches = soup.select(selector)

    assert [node.get_text() for node in matches] == ["1"]


def test_pager_row_follows_pager_class() -> None:
    selectors = GridSelectors(pager_class="GridPager")

    assert selectors.pager_row == "tr.GridPager"
    assert selectors.link_selector("Page$Last").startswith("tr.GridPager a[href*=")


def test_page_size_selector_quotes_control_name() -> None:
    name = "ctl00$FormContentPlaceHolder$Panel$resultsGrid$ctl13$ctl01"
    soup = BeautifulSoup(f'<select name="{name}"><option>10</option></select>', "html.parser")

    assert soup.select_one(MEMBER_SEARCH_SELECTORS.page_size_selector(name)) is not None
