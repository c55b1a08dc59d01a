from __future__ import annotations

"""Selectors and identifier conventions for the member search grid."""

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class GridSelectors:
    """Site-specific selector hints for a postback-paginated results grid.

    The results grid renders its pager as a ``tr`` carrying ``pager_class``.
    Page links post back with a target such as ``'Page$6'`` in their href and
    the active page is rendered as a plain ``span``. Data rows carry one of
    ``row_classes``; header, footer and pager rows do not.
    """

    filter_select: str = "#FormContentPlaceHolder_Panel_stateDropDownList"
    fixed_filters: Tuple[Tuple[str, str], ...] = (
        ("#FormContentPlaceHolder_Panel_freelanceDropDownList", "1"),
    )
    search_button: str = "#FormContentPlaceHolder_Panel_searchButtonStrip_searchButton"
    results_table: str = "#FormContentPlaceHolder_Panel_resultsGrid"
    page_size_name_pattern: str = (
        r"ctl00\$FormContentPlaceHolder\$Panel\$resultsGrid\$ctl\d+\$ctl\d+"
    )
    pager_class: str = "PagerStyle"
    row_classes: Tuple[str, ...] = ("RowStyle", "AlternatingRowStyle")
    page_token_prefix: str = "Page$"
    first_page_token: str = "Page$First"
    last_page_token: str = "Page$Last"

    @property
    def pager_row(self) -> str:
        return f"tr.{self.pager_class}"

    def page_token(self, pageno: int) -> str:
        return f"{self.page_token_prefix}{pageno}"

    def link_selector(self, token: str) -> str:
        """CSS selector for a pager link whose postback target is exactly ``token``.

        The quotes around the token keep ``Page$1`` from matching ``Page$10``.
        """

        return f"{self.pager_row} a[href*=\"'{token}'\"]"

    def page_size_selector(self, control_name: str) -> str:
        return f'select[name="{control_name}"]'


MEMBER_SEARCH_SELECTORS = GridSelectors()

__all__ = [
    "GridSelectors",
    "MEMBER_SEARCH_SELECTORS",
]
