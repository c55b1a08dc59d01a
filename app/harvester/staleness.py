"""Completion detection for in-place partial page refreshes.

The grid gives no completion callback. What it does do is replace the results
table wholesale, so the handle captured before an action detaches exactly when
the new content is in place. Every refresh-causing action is bracketed by
``TableTracker.capture`` and ``TableTracker.settle``.
"""
from __future__ import annotations

import time
from typing import Any, Optional

from . import config
from .error_codes import SyncTimeout
from .logging_utils import _harvest_event
from .selectors import GridSelectors
from .surface import AutomationSurface


def _timeout_ms(timeout_s: Optional[float]) -> int:
    seconds = config.SETTLE_TIMEOUT_SECONDS if timeout_s is None else timeout_s
    return max(1, int(seconds * 1000))


def await_detachment(
    surface: AutomationSurface,
    handle: Any,
    *,
    timeout_s: Optional[float] = None,
    label: str = "table",
) -> None:
    """Block until ``handle`` is no longer attached to the live document.

    Raises :class:`SyncTimeout` if that does not happen within ``timeout_s``.
    """

    timeout_ms = _timeout_ms(timeout_s)
    started = time.monotonic()
    try:
        surface.wait_for_detached(handle, timeout_ms=timeout_ms)
    except SyncTimeout:
        _harvest_event("error", phase="staleness", action=label, timeout_ms=timeout_ms)
        raise
    _harvest_event(
        "sync",
        phase="staleness",
        action=label,
        elapsed_ms=int((time.monotonic() - started) * 1000),
    )


def await_first_appearance(
    surface: AutomationSurface,
    selector: str,
    *,
    timeout_s: Optional[float] = None,
    label: str = "table",
) -> None:
    timeout_ms = _timeout_ms(timeout_s)
    try:
        surface.wait_for_selector(selector, timeout_ms=timeout_ms)
    except SyncTimeout:
        _harvest_event("error", phase="appearance", action=label, selector=selector, timeout_ms=timeout_ms)
        raise
    _harvest_event("sync", phase="appearance", action=label, selector=selector)


class TableTracker:
    """Hold the single results-table handle that the next refresh will replace."""

    def __init__(
        self,
        surface: AutomationSurface,
        selectors: GridSelectors,
        *,
        timeout_s: Optional[float] = None,
    ) -> None:
        self.surface = surface
        self.selectors = selectors
        self.timeout_s = timeout_s
        self._handle: Any = None
        self._captured = False

    @property
    def tracking(self) -> bool:
        return self._captured

    def capture(self) -> bool:
        """Take the current results table handle; ``False`` when no table exists yet."""

        if self._captured:
            raise RuntimeError("A results table handle is already being tracked")
        self._handle = self.surface.query_one(self.selectors.results_table)
        self._captured = True
        return self._handle is not None

    def settle(self, *, label: str = "table") -> None:
        """Wait for the refresh triggered since :meth:`capture` to complete.

        With a captured handle this waits for it to go stale; without one it
        waits for the table to appear. The handle is dropped either way.
        """

        if not self._captured:
            raise RuntimeError("settle() called without a captured table handle")
        handle = self._handle
        self._handle = None
        self._captured = False
        if handle is None:
            await_first_appearance(
                self.surface,
                self.selectors.results_table,
                timeout_s=self.timeout_s,
                label=label,
            )
        else:
            await_detachment(self.surface, handle, timeout_s=self.timeout_s, label=label)

    def discard(self) -> None:
        self._handle = None
        self._captured = False


__all__ = [
    "TableTracker",
    "await_detachment",
    "await_first_appearance",
]
