"""Field extraction for the three cells of an incident detail page.

Each cell holds loosely formatted markup rather than a structured table:

- the lead cell lists date, location and responsible group separated by
  ``<br>`` markers;
- the metrics cell lists ``Label: value`` pairs (weapon, injuries,
  fatalities), also separated by ``<br>``;
- the narrative cell holds the free-text description wrapped in ``<p>``.

The functions here work on a cell's inner HTML string and keep no state, so
extracting the same fragment twice always gives the same result.
"""
from __future__ import annotations

import re
from enum import Enum
from typing import List

from .error_codes import MalformedField

_LINE_BREAK = re.compile(r"<br\s*/?>", re.IGNORECASE)
_TAG = re.compile(r"<[^>]*>")
_NARRATIVE_DROP = str.maketrans("", "", "\\/,")


class SectionRole(Enum):
    LEAD = 0
    METRICS = 1
    NARRATIVE = 2


def _squash(value: str) -> str:
    # One output line per incident: no newlines or runs of blanks in a field.
    return " ".join(value.split())


def _clean(value: str) -> str:
    return _squash(value.replace(",", ""))


def _split_lines(fragment: str) -> List[str]:
    pieces = _LINE_BREAK.split(fragment or "")
    while pieces and not pieces[-1].strip():
        pieces.pop()
    return pieces


def extract_lead(fragment: str) -> List[str]:
    """Return the cleaned ``<br>``-separated pieces of the lead cell."""

    return [_clean(piece) for piece in _split_lines(fragment)]


def extract_metrics(fragment: str) -> List[str]:
    """Return the value after the first colon of each metrics line."""

    values: List[str] = []
    for piece in _split_lines(fragment):
        label, sep, value = piece.partition(":")
        if not sep:
            raise MalformedField(
                f"Metrics line has no label delimiter: {piece.strip()[:80]!r}",
                piece=piece,
            )
        values.append(_clean(value))
    return values


def extract_narrative(fragment: str) -> List[str]:
    """Return the description with tags, slashes and commas removed."""

    text = _TAG.sub("", fragment or "")
    return [_squash(text.translate(_NARRATIVE_DROP))]


_EXTRACTORS = {
    SectionRole.LEAD: extract_lead,
    SectionRole.METRICS: extract_metrics,
    SectionRole.NARRATIVE: extract_narrative,
}


def extract_section(fragment: str, role: SectionRole) -> List[str]:
    """Extract the raw field strings of ``fragment`` for the given ``role``."""

    return _EXTRACTORS[SectionRole(role)](fragment)


__all__ = [
    "SectionRole",
    "extract_section",
    "extract_lead",
    "extract_metrics",
    "extract_narrative",
]
