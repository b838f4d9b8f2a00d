from __future__ import annotations

"""Centralised error code taxonomy for scraper failures.

These codes appear in structured logs and run telemetry so that every skipped
record or abandoned window can be explained after the fact. Keep them stable:
the Excel export groups on them.
"""

from typing import Any


class ErrorCode:
    ALREADY_EXISTS = "already_exists"
    NETWORK = "network_error"
    HTTP_4XX = "http_4xx"
    HTTP_404 = "http_404_not_found"
    HTTP_5XX = "http_5xx"
    SITE_STRUCTURE = "site_structure_changed"
    MISSING_SECTION = "missing_section"
    MALFORMED_FIELD = "malformed_field"
    INTERNAL = "internal_error"


class ScraperError(Exception):
    """Base class for failures carrying an :class:`ErrorCode`."""

    error_code = ErrorCode.INTERNAL

    def __init__(self, message: str, *, error_code: str | None = None, **context: Any) -> None:
        super().__init__(message)
        if error_code is not None:
            self.error_code = error_code
        self.context = context

    def __str__(self) -> str:  # pragma: no cover - inherited behaviour
        return str(self.args[0]) if self.args else ""


class AlreadyExistsError(ScraperError):
    """The output path is occupied and the overwrite guard is enabled."""

    error_code = ErrorCode.ALREADY_EXISTS


class FetchError(ScraperError):
    """A page could not be fetched or a navigation could not be performed."""

    error_code = ErrorCode.NETWORK

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        url: str | None = None,
        http_status: int | None = None,
        **context: Any,
    ) -> None:
        super().__init__(message, error_code=error_code, **context)
        self.url = url
        self.http_status = http_status


class MissingSectionError(ScraperError):
    """A detail page lacks the three-cell row holding the incident."""

    error_code = ErrorCode.MISSING_SECTION


class MalformedField(ScraperError):
    """A detail page section does not have the expected shape."""

    error_code = ErrorCode.MALFORMED_FIELD


__all__ = [
    "ErrorCode",
    "ScraperError",
    "AlreadyExistsError",
    "FetchError",
    "MissingSectionError",
    "MalformedField",
]
