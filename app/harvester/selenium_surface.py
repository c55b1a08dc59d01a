"""Selenium-backed automation surface for environments without Playwright browsers."""
from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Optional

from selenium import webdriver
from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.common.by import By
from selenium.webdriver.remote.webdriver import WebDriver
from selenium.webdriver.remote.webelement import WebElement
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.select import Select
from selenium.webdriver.support.ui import WebDriverWait

from . import config
from .error_codes import SessionLost, SyncTimeout
from .surface import is_target_closed_message
from .utils import ensure_dirs, log_line


def make_driver(*, headless: bool = True) -> WebDriver:
    """Instantiate a Chrome WebDriver instance."""
    ensure_dirs()
    chrome_options = Options()
    chrome_options.binary_location = config.CHROMIUM_BINARY
    if headless:
        chrome_options.add_argument("--headless=new")
    for arg in config.BROWSER_ARGS:
        chrome_options.add_argument(arg)
    driver = webdriver.Chrome(options=chrome_options)
    return driver


@contextmanager
def _translated(action: str) -> Iterator[None]:
    try:
        yield
    except TimeoutException as exc:
        raise SyncTimeout(f"{action} timed out") from exc
    except WebDriverException as exc:
        if is_target_closed_message(str(exc)):
            raise SessionLost(f"{action} failed, browser session is gone: {exc}") from exc
        raise


class SeleniumSurface:
    """Drive a Selenium ``WebDriver``.

    WebDriver cannot poll on animation frames, so predicates are re-checked
    every ``config.POLL_INTERVAL_MS`` milliseconds instead.
    """

    def __init__(self, driver: WebDriver, *, poll_interval_ms: Optional[int] = None) -> None:
        self.driver = driver
        interval = config.POLL_INTERVAL_MS if poll_interval_ms is None else poll_interval_ms
        self._poll_seconds = max(interval, 1) / 1000.0
        self._closed = False

    def _wait(self, timeout_ms: int) -> WebDriverWait:
        return WebDriverWait(self.driver, timeout_ms / 1000.0, poll_frequency=self._poll_seconds)

    def navigate(self, url: str, *, timeout_ms: int) -> None:
        with _translated(f"get({url!r})"):
            self.driver.set_page_load_timeout(timeout_ms / 1000.0)
            self.driver.get(url)

    def select(self, selector: str, value: str) -> None:
        with _translated(f"select({selector!r})"):
            element = self.driver.find_element(By.CSS_SELECTOR, selector)
            Select(element).select_by_value(value)

    def click(self, handle: WebElement) -> None:
        with _translated("click"):
            handle.click()

    def evaluate(self, script: str, arg: Any = None) -> Any:
        with _translated("execute_script"):
            return self.driver.execute_script(f"return ({script})(arguments[0]);", arg)

    def query_all(self, selector: str) -> List[WebElement]:
        with _translated(f"find_elements({selector!r})"):
            return self.driver.find_elements(By.CSS_SELECTOR, selector)

    def query_all_xpath(self, expression: str) -> List[WebElement]:
        with _translated(f"find_elements(xpath={expression!r})"):
            return self.driver.find_elements(By.XPATH, expression)

    def query_one(self, selector: str) -> Optional[WebElement]:
        found = self.query_all(selector)
        return found[0] if found else None

    def content(self) -> str:
        with _translated("page_source"):
            return self.driver.page_source

    def wait_for_selector(self, selector: str, *, timeout_ms: int) -> None:
        with _translated(f"wait_for_selector({selector!r})"):
            self._wait(timeout_ms).until(
                EC.presence_of_element_located((By.CSS_SELECTOR, selector))
            )

    def wait_for_function(self, script: str, arg: Any, *, timeout_ms: int) -> None:
        with _translated("wait_for_function"):
            self._wait(timeout_ms).until(
                lambda driver: driver.execute_script(f"return ({script})(arguments[0]);", arg)
            )

    def wait_for_detached(self, handle: WebElement, *, timeout_ms: int) -> None:
        with _translated("wait_for_detached"):
            self._wait(timeout_ms).until(EC.staleness_of(handle))

    def screenshot(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with _translated("screenshot"):
            self.driver.save_screenshot(str(path))

    def is_closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self.driver.quit()
        except WebDriverException as exc:
            log_line(f"[SURFACE][WARN] Error quitting WebDriver: {exc}")


@contextmanager
def open_selenium_surface(*, headless: bool = True) -> Iterator[SeleniumSurface]:
    surface = SeleniumSurface(make_driver(headless=headless))
    try:
        yield surface
    finally:
        surface.close()


__all__ = ["SeleniumSurface", "make_driver", "open_selenium_surface"]
