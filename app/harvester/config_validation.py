from __future__ import annotations

from typing import Literal

from . import config
from .logging_utils import _harvest_event
from .utils import log_line

Entrypoint = Literal["ui", "cli", "replay", "tests"]


def _raise_config_error(message: str, *, entrypoint: Entrypoint, error: str) -> None:
    _harvest_event(
        "error",
        phase="config",
        context="runtime_validation",
        error=error,
        entrypoint=entrypoint,
    )
    log_line(f"[CONFIG] {message} (entrypoint={entrypoint})")
    raise ValueError(message)


def validate_runtime_config(entrypoint: Entrypoint) -> None:
    """Validate runtime configuration for the given entrypoint.

    Raises ``ValueError`` when a blocking misconfiguration is detected.
    Non-fatal adjustments (e.g., clamping run limits) are logged but do not
    raise.
    """

    if config.BACKEND not in config.SUPPORTED_BACKENDS and entrypoint != "replay":
        _raise_config_error(
            f"HARVEST_BACKEND must be one of {', '.join(config.SUPPORTED_BACKENDS)}.",
            entrypoint=entrypoint,
            error="unknown_backend",
        )

    timeout_fields = [
        ("NAV_TIMEOUT_SECONDS", config.NAV_TIMEOUT_SECONDS),
        ("SETTLE_TIMEOUT_SECONDS", config.SETTLE_TIMEOUT_SECONDS),
    ]
    for field_name, value in timeout_fields:
        if value <= 0:
            _raise_config_error(
                f"{field_name} must be greater than zero.",
                entrypoint=entrypoint,
                error="invalid_timeout",
            )

    if config.POLL_INTERVAL_MS < 1:
        _harvest_event(
            "state",
            phase="config",
            kind="config_adjustment",
            field="POLL_INTERVAL_MS",
            value=config.POLL_INTERVAL_MS,
            adjusted=1,
            entrypoint=entrypoint,
        )
        log_line("[CONFIG] POLL_INTERVAL_MS < 1; clamping to 1.")
        config.POLL_INTERVAL_MS = 1

    if config.MAX_FILTERS < 0:
        _harvest_event(
            "state",
            phase="config",
            kind="config_adjustment",
            field="MAX_FILTERS",
            value=config.MAX_FILTERS,
            adjusted=0,
            entrypoint=entrypoint,
        )
        log_line("[CONFIG] MAX_FILTERS < 0; harvesting every filter value.")
        config.MAX_FILTERS = 0

    if not config.SEARCH_URL.lower().startswith(("http://", "https://")):
        _raise_config_error(
            "HARVEST_SEARCH_URL must be an http(s) URL.",
            entrypoint=entrypoint,
            error="invalid_search_url",
        )


__all__ = ["validate_runtime_config", "Entrypoint"]
