"""Automation surface boundary consumed by the harvester.

The harvester never talks to a browser library directly. It drives an object
satisfying :class:`AutomationSurface`; ``open_surface`` builds one for the
configured backend and owns its lifetime.
"""
from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Optional, Protocol

from . import config

# Page-side predicate: the element is no longer attached to its document.
DETACHED_JS = "e => !e.ownerDocument.contains(e)"

TARGET_CLOSED_MARKERS = (
    "Target closed",
    "Target crashed",
    "has been closed",
    "invalid session id",
    "no such window",
    "chrome not reachable",
)


class AutomationSurface(Protocol):
    def navigate(self, url: str, *, timeout_ms: int) -> None: ...

    def select(self, selector: str, value: str) -> None: ...

    def click(self, handle: Any) -> None: ...

    def evaluate(self, script: str, arg: Any = None) -> Any: ...

    def query_all(self, selector: str) -> List[Any]: ...

    def query_all_xpath(self, expression: str) -> List[Any]: ...

    def query_one(self, selector: str) -> Optional[Any]: ...

    def content(self) -> str: ...

    def wait_for_selector(self, selector: str, *, timeout_ms: int) -> None: ...

    def wait_for_function(self, script: str, arg: Any, *, timeout_ms: int) -> None: ...

    def wait_for_detached(self, handle: Any, *, timeout_ms: int) -> None: ...

    def screenshot(self, path: Path) -> None: ...

    def is_closed(self) -> bool: ...

    def close(self) -> None: ...


def is_target_closed_message(message: str) -> bool:
    """Return ``True`` if an automation error message means the session is gone."""

    return any(marker in message for marker in TARGET_CLOSED_MARKERS)


@contextmanager
def open_surface(
    backend: Optional[str] = None, *, headless: Optional[bool] = None
) -> Iterator[AutomationSurface]:
    """Open an automation session for ``backend`` and close it on exit."""

    name = (backend or config.BACKEND).strip().lower()
    use_headless = config.HEADLESS if headless is None else headless

    if name == "selenium":
        from .selenium_surface import open_selenium_surface

        with open_selenium_surface(headless=use_headless) as surface:
            yield surface
        return

    if name == "playwright":
        from .playwright_surface import open_playwright_surface

        with open_playwright_surface(headless=use_headless) as surface:
            yield surface
        return

    raise ValueError(f"Unknown automation backend {name!r}")


__all__ = [
    "AutomationSurface",
    "DETACHED_JS",
    "is_target_closed_message",
    "open_surface",
]
