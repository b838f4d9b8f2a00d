import pytest
from bs4 import BeautifulSoup

from rwtid.scraper import parser
from rwtid.scraper.error_codes import ErrorCode, MalformedField, MissingSectionError


def detail_page(
    lead: str = "Mar 8, 1972<br>Belfast, United Kingdom<br>Irish Republican Army (IRA)",
    metrics: str = "Weapon: Explosives<br>Injuries: 3<br>Fatalities: 1",
    narrative: str = "<p>Attack occurred, at dawn\\/night</p>",
) -> str:
    return f"""
    <html><head><meta charset="utf-8"><title>Incident</title></head><body>
    <div id="content"><div id="indent">
    <table>
      <tr>
        <td>{lead}</td>
        <td>{metrics}</td>
        <td>{narrative}</td>
      </tr>
    </table>
    </div></div>
    </body></html>
    """


def test_assemble_record_builds_seven_fields_in_order() -> None:
    record = parser.assemble_record(detail_page())

    assert record.as_row() == [
        "Mar 8 1972",
        "Belfast United Kingdom",
        "Irish Republican Army (IRA)",
        "Explosives",
        "3",
        "1",
        "Attack occurred at dawnnight",
    ]
    assert len(parser.FIELD_NAMES) == 7


def test_serialised_line_has_seven_comma_free_fields() -> None:
    record = parser.assemble_record(
        detail_page(
            lead="Jan 1, 1970<br>Paris, France<br>Group, Name",
            metrics="Weapon: Fire, arms<br>Injuries: 1,000<br>Fatalities: 2",
            narrative="<p>Many, many, commas, here.</p>",
        )
    )

    line = record.as_line()
    fields = line.split(",")
    assert len(fields) == 7
    assert fields[0] == "Jan 1 1970"
    assert fields[4] == "1000"


def test_assemble_record_accepts_parsed_soup() -> None:
    soup = BeautifulSoup(detail_page(), "html5lib")

    assert parser.assemble_record(soup).weapon_type == "Explosives"


def test_first_three_cells_in_document_order_are_used() -> None:
    html = detail_page() + "<table><tr><td>extra</td><td>cells</td></tr></table>"

    record = parser.assemble_record(html)

    assert record.date == "Mar 8 1972"
    assert record.description == "Attack occurred at dawnnight"


def test_two_cells_raise_missing_section() -> None:
    html = """
    <html><body><table><tr>
      <td>Jan 1, 1970<br>Paris<br>Group</td>
      <td>Weapon: Bomb<br>Injuries: 3<br>Fatalities: 1</td>
    </tr></table></body></html>
    """

    with pytest.raises(MissingSectionError) as excinfo:
        parser.assemble_record(html)

    assert excinfo.value.error_code == ErrorCode.MISSING_SECTION
    assert excinfo.value.context["cell_count"] == 2


def test_page_without_table_raises_missing_section() -> None:
    with pytest.raises(MissingSectionError):
        parser.assemble_record("<html><body><p>No results</p></body></html>")


def test_metrics_line_without_colon_raises_malformed_field() -> None:
    with pytest.raises(MalformedField):
        parser.assemble_record(detail_page(metrics="Weapon Bomb<br>Injuries: 3<br>Fatalities: 1"))


@pytest.mark.parametrize(
    "lead, metrics",
    [
        ("Jan 1 1970<br>Paris", "Weapon: Bomb<br>Injuries: 3<br>Fatalities: 1"),
        ("Jan 1 1970<br>Paris<br>Group", "Weapon: Bomb<br>Injuries: 3"),
        ("Jan 1 1970<br>Paris<br>Group<br>Extra", "Weapon: Bomb<br>Injuries: 3<br>Fatalities: 1"),
    ],
)
def test_wrong_shaped_sections_are_rejected(lead: str, metrics: str) -> None:
    with pytest.raises(MalformedField) as excinfo:
        parser.assemble_record(detail_page(lead=lead, metrics=metrics))

    assert excinfo.value.context["section"] in {"lead", "metrics"}


def test_utf8_bytes_are_decoded_from_meta_charset() -> None:
    page = detail_page(lead="Mar 8, 1972<br>Bogotá, Colombia<br>FARC").encode("utf-8")

    record = parser.assemble_record(page)

    assert record.location == "Bogotá Colombia"
