from __future__ import annotations

"""Year windows submitted to the search form, one batch per window."""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, Optional

from . import config


@dataclass(frozen=True)
class QueryWindow:
    start_year: int
    end_year: int

    def label(self) -> str:
        return f"{self.start_year}-{self.end_year}"


def iter_query_windows(
    start_year: Optional[int] = None,
    current_year: Optional[int] = None,
    *,
    span: Optional[int] = None,
    step: Optional[int] = None,
) -> Iterator[QueryWindow]:
    """Yield ``[year, year + span]`` windows until ``year`` passes ``current_year``.

    With the default span and step of 5 each window shares its last year with
    the next window's first year, so incidents from boundary years are
    fetched twice.
    """

    year = config.DATABASE_START_YEAR if start_year is None else int(start_year)
    last_year = datetime.now().year if current_year is None else int(current_year)
    span = config.WINDOW_SPAN_YEARS if span is None else int(span)
    step = config.WINDOW_STEP_YEARS if step is None else int(step)
    if step < 1:
        raise ValueError("window step must be at least one year")
    if span < 0:
        raise ValueError("window span must not be negative")

    while year <= last_year:
        yield QueryWindow(year, year + span)
        year += step


__all__ = ["QueryWindow", "iter_query_windows"]
