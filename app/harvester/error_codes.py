from __future__ import annotations

"""Error taxonomy for harvest failures.

Codes are written to the run summary and structured logs so an operator can
tell why a filter value was abandoned or a run stopped. Only session and
enumeration failures end a run; the rest are handled per filter value.
"""


class ErrorCode:
    SYNC_TIMEOUT = "sync_timeout"
    PAGER_SHAPE_UNRECOGNIZED = "pager_shape_unrecognized"
    SESSION_LOST = "session_lost"
    FILTER_ENUMERATION_EMPTY = "filter_enumeration_empty"
    INTERNAL = "internal_error"


class HarvestError(Exception):
    error_code: str = ErrorCode.INTERNAL

    def __init__(self, message: str, *, error_code: str | None = None) -> None:
        super().__init__(message)
        if error_code is not None:
            self.error_code = error_code

    def __str__(self) -> str:  # pragma: no cover - inherited behaviour
        return str(self.args[0]) if self.args else ""


class SyncTimeout(HarvestError):
    """A wait predicate did not become true within its budget."""

    error_code = ErrorCode.SYNC_TIMEOUT


class PagerShapeUnrecognized(HarvestError):
    error_code = ErrorCode.PAGER_SHAPE_UNRECOGNIZED


class SessionLost(HarvestError):
    """The automation session is gone; nothing further can be harvested."""

    error_code = ErrorCode.SESSION_LOST


class FilterEnumerationEmpty(HarvestError):
    error_code = ErrorCode.FILTER_ENUMERATION_EMPTY


__all__ = [
    "ErrorCode",
    "FilterEnumerationEmpty",
    "HarvestError",
    "PagerShapeUnrecognized",
    "SessionLost",
    "SyncTimeout",
]
