from __future__ import annotations

from datetime import datetime
from typing import Literal

from . import config
from .logging_utils import _scraper_event
from .utils import log_line

Entrypoint = Literal["ui", "cli", "tests"]


def _raise_config_error(message: str, *, entrypoint: Entrypoint, error: str) -> None:
    _scraper_event(
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
    Non-fatal adjustments (e.g., normalising policy names) are logged but do
    not raise.
    """

    for field_name, allowed in (
        ("ON_RECORD_ERROR", config.RECORD_ERROR_POLICIES),
        ("ON_WINDOW_ERROR", config.WINDOW_ERROR_POLICIES),
    ):
        raw = getattr(config, field_name)
        normalised = str(raw).strip().lower()
        if normalised not in allowed:
            _raise_config_error(
                f"{field_name} must be one of {', '.join(allowed)}; got {raw!r}.",
                entrypoint=entrypoint,
                error="invalid_policy",
            )
        if normalised != raw:
            _scraper_event(
                "state",
                phase="config",
                context="runtime_validation",
                kind="config_adjustment",
                field=field_name,
                value=raw,
                adjusted=normalised,
                entrypoint=entrypoint,
            )
            setattr(config, field_name, normalised)

    timeout_fields = [
        ("IDLE_TIMEOUT_SECONDS", config.IDLE_TIMEOUT_SECONDS),
        ("REQUEST_TIMEOUT_SECONDS", config.REQUEST_TIMEOUT_SECONDS),
    ]
    for field_name, value in timeout_fields:
        if value <= 0:
            _raise_config_error(
                f"{field_name} must be greater than zero.",
                entrypoint=entrypoint,
                error="invalid_timeout",
            )

    if config.WINDOW_STEP_YEARS < 1:
        _raise_config_error(
            "WINDOW_STEP_YEARS must be at least 1.",
            entrypoint=entrypoint,
            error="invalid_window_step",
        )

    if config.WINDOW_SPAN_YEARS < 0:
        _raise_config_error(
            "WINDOW_SPAN_YEARS must be non-negative.",
            entrypoint=entrypoint,
            error="invalid_window_span",
        )

    if config.DATABASE_START_YEAR > datetime.now().year:
        _raise_config_error(
            "DATABASE_START_YEAR lies in the future; no window would be queried.",
            entrypoint=entrypoint,
            error="start_year_in_future",
        )

    if config.MIN_FREE_MB < 0:
        _raise_config_error(
            "MIN_FREE_MB must be non-negative.",
            entrypoint=entrypoint,
            error="min_free_mb_invalid",
        )

    if config.WINDOW_STEP_YEARS > config.WINDOW_SPAN_YEARS + 1:
        # Years between windows would never be queried.
        log_line(
            "[CONFIG] WINDOW_STEP_YEARS exceeds WINDOW_SPAN_YEARS + 1; some years are skipped."
        )


__all__ = ["validate_runtime_config", "Entrypoint"]
