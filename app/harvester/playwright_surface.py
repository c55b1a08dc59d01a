"""Playwright-backed automation surface (sync API)."""
from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Optional

from playwright.sync_api import (
    ConsoleMessage,
    ElementHandle,
    Error as PWError,
    Page,
    TimeoutError as PWTimeout,
    sync_playwright,
)

from . import config
from .error_codes import SessionLost, SyncTimeout
from .surface import DETACHED_JS, is_target_closed_message
from .utils import log_line

CONTEXT_DESTROYED = "Execution context was destroyed"

UA = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


@contextmanager
def _translated(action: str) -> Iterator[None]:
    """Map Playwright failures onto the harvester's error taxonomy."""

    try:
        yield
    except PWTimeout as exc:
        raise SyncTimeout(f"{action} timed out: {exc}") from exc
    except PWError as exc:
        if is_target_closed_message(str(exc)):
            raise SessionLost(f"{action} failed, browser target is gone: {exc}") from exc
        raise


class PlaywrightSurface:
    """Drive a single Playwright ``Page``.

    Waits run in the page with ``polling="raf"`` so predicates are checked
    once per rendered frame.
    """

    def __init__(self, page: Page) -> None:
        self.page = page
        page.on("console", self._on_console)

    @staticmethod
    def _on_console(msg: ConsoleMessage) -> None:
        log_line(f"[PAGE] {msg.text}")

    def navigate(self, url: str, *, timeout_ms: int) -> None:
        with _translated(f"goto({url!r})"):
            self.page.goto(url, wait_until="load", timeout=timeout_ms)

    def select(self, selector: str, value: str) -> None:
        with _translated(f"select({selector!r})"):
            self.page.select_option(selector, value)

    def click(self, handle: ElementHandle) -> None:
        with _translated("click"):
            handle.click()

    def evaluate(self, script: str, arg: Any = None) -> Any:
        with _translated("evaluate"):
            return self.page.evaluate(script, arg)

    def query_all(self, selector: str) -> List[ElementHandle]:
        with _translated(f"query_all({selector!r})"):
            return self.page.query_selector_all(selector)

    def query_all_xpath(self, expression: str) -> List[ElementHandle]:
        with _translated(f"query_all_xpath({expression!r})"):
            return self.page.query_selector_all(f"xpath={expression}")

    def query_one(self, selector: str) -> Optional[ElementHandle]:
        with _translated(f"query_one({selector!r})"):
            return self.page.query_selector(selector)

    def content(self) -> str:
        with _translated("content"):
            return self.page.content()

    def wait_for_selector(self, selector: str, *, timeout_ms: int) -> None:
        with _translated(f"wait_for_selector({selector!r})"):
            self.page.wait_for_selector(selector, state="attached", timeout=timeout_ms)

    def wait_for_function(self, script: str, arg: Any, *, timeout_ms: int) -> None:
        with _translated("wait_for_function"):
            self.page.wait_for_function(script, arg=arg, polling="raf", timeout=timeout_ms)

    def wait_for_detached(self, handle: ElementHandle, *, timeout_ms: int) -> None:
        try:
            with _translated("wait_for_detached"):
                self.page.wait_for_function(DETACHED_JS, arg=handle, polling="raf", timeout=timeout_ms)
        except PWError as exc:
            # A full postback replaces the whole document, which detaches the
            # handle along with its execution context.
            if CONTEXT_DESTROYED not in str(exc):
                raise
            return
        try:
            handle.dispose()
        except PWError:
            pass

    def screenshot(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with _translated("screenshot"):
            self.page.screenshot(path=str(path), full_page=True)

    def is_closed(self) -> bool:
        return self.page.is_closed()

    def close(self) -> None:
        if not self.page.is_closed():
            self.page.close()


@contextmanager
def open_playwright_surface(*, headless: bool = True) -> Iterator[PlaywrightSurface]:
    """Launch Chromium and yield a surface bound to one fresh page."""

    with sync_playwright() as pw:
        browser = pw.chromium.launch(headless=headless, args=list(config.BROWSER_ARGS))
        try:
            context = browser.new_context(
                user_agent=UA,
                locale="en-US",
                viewport={"width": 1920, "height": 1080},
            )
            page = context.new_page()
            if page is None:
                raise RuntimeError("Failed to create Playwright page")
            surface = PlaywrightSurface(page)
            yield surface
        finally:
            try:
                browser.close()
            except PWError as exc:
                log_line(f"[SURFACE][WARN] Error closing browser: {exc}")


__all__ = ["PlaywrightSurface", "open_playwright_surface"]
