"""Incident detail page parsing."""
from __future__ import annotations

from dataclasses import astuple, dataclass, fields
from typing import List, Union

from bs4 import BeautifulSoup, Tag

from .error_codes import MalformedField, MissingSectionError
from .extract import SectionRole, extract_section

SECTION_CELL_SELECTOR = "tr td"
LEAD_FIELD_COUNT = 3
METRICS_FIELD_COUNT = 3


@dataclass(frozen=True)
class IncidentRecord:
    """One incident row, in output column order."""

    date: str
    location: str
    responsible_group: str
    weapon_type: str
    injuries: str
    fatalities: str
    description: str

    def as_row(self) -> List[str]:
        return list(astuple(self))

    def as_line(self) -> str:
        """Serialise to the comma-joined output line (no terminator)."""

        return ",".join(value.replace(",", "") for value in self.as_row())


FIELD_NAMES = tuple(field.name for field in fields(IncidentRecord))


def parse_document(document: Union[str, bytes, BeautifulSoup]) -> BeautifulSoup:
    if isinstance(document, BeautifulSoup):
        return document
    return BeautifulSoup(document, "html5lib")


def select_section_cells(soup: BeautifulSoup) -> List[Tag]:
    """Return the lead, metrics and narrative cells of a detail page.

    The cells are the first three ``tr td`` descendants in document order.
    """

    cells = soup.select(SECTION_CELL_SELECTOR)
    if len(cells) < len(SectionRole):
        raise MissingSectionError(
            f"Expected {len(SectionRole)} table cells, found {len(cells)}",
            cell_count=len(cells),
        )
    return cells[: len(SectionRole)]


def assemble_record(document: Union[str, bytes, BeautifulSoup]) -> IncidentRecord:
    """Build one :class:`IncidentRecord` from a detail page."""

    cells = select_section_cells(parse_document(document))
    lead = extract_section(cells[0].decode_contents(), SectionRole.LEAD)
    metrics = extract_section(cells[1].decode_contents(), SectionRole.METRICS)
    narrative = extract_section(cells[2].decode_contents(), SectionRole.NARRATIVE)

    if len(lead) != LEAD_FIELD_COUNT:
        raise MalformedField(
            f"Lead section has {len(lead)} values, expected {LEAD_FIELD_COUNT}",
            section="lead",
            values=lead,
        )
    if len(metrics) != METRICS_FIELD_COUNT:
        raise MalformedField(
            f"Metrics section has {len(metrics)} values, expected {METRICS_FIELD_COUNT}",
            section="metrics",
            values=metrics,
        )

    return IncidentRecord(*lead, *metrics, *narrative)


__all__ = [
    "IncidentRecord",
    "FIELD_NAMES",
    "parse_document",
    "select_section_cells",
    "assemble_record",
]
