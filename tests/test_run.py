from __future__ import annotations

import json
from pathlib import Path

import pytest
import requests

from rwtid.scraper import config, run
from rwtid.scraper.error_codes import (
    AlreadyExistsError,
    ErrorCode,
    FetchError,
    MissingSectionError,
)
from rwtid.scraper.http_client import ClientPolicy
from tests.test_pagination import FORM_URL, SEARCH_URL, build_site, detail_url
from tests.test_parser import detail_page

TWO_CELL_PAGE = "<html><body><table><tr><td>a<br>b<br>c</td><td>Weapon: x</td></tr></table></body></html>"


def _run(site, output: Path, **kwargs):
    progress: list[int] = []
    summary = run.run_scrape(
        output,
        start_year=1968,
        current_year=kwargs.pop("current_year", 1968),
        session_factory=site.session,
        progress=progress.append,
        form_url=FORM_URL,
        **kwargs,
    )
    return summary, progress


def test_full_run_single_window_writes_two_rows(data_dir: Path) -> None:
    site = build_site([detail_page(), detail_page(lead="Jan 1, 1970<br>Paris, France<br>Unknown")])
    output = data_dir / "out.csv"

    summary, progress = _run(site, output)

    lines = output.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    assert all(len(line.split(",")) == 7 for line in lines)
    assert lines[1].startswith("Jan 1 1970,Paris France,Unknown,")
    assert progress == [1, 2]
    assert summary["processed"] == 2
    assert summary["skipped"] == 0
    assert summary["windows"] == 1
    assert summary["aborted"] is False

    submit = site.calls[1]
    assert submit["url"] == SEARCH_URL
    assert submit["data"]["start_year"] == "1968"
    assert submit["data"]["end_year"] == "1973"


def test_each_window_gets_a_fresh_session(data_dir: Path) -> None:
    site = build_site([detail_page()])

    summary, progress = _run(site, data_dir / "out.csv", current_year=1978)

    assert summary["windows"] == 3
    assert len(site.sessions) == 3
    assert all(session.closed for session in site.sessions)
    assert progress == [1, 2, 3]
    windows = [(call["data"]["start_year"], call["data"]["end_year"]) for call in site.calls if call["url"] == SEARCH_URL]
    assert windows == [("1968", "1973"), ("1973", "1978"), ("1978", "1983")]


def test_shared_client_policy_reuses_one_session(data_dir: Path) -> None:
    site = build_site([detail_page()])

    _run(site, data_dir / "out.csv", current_year=1978, policy=ClientPolicy(per_window=False))

    assert len(site.sessions) == 1
    assert site.sessions[0].closed is True


def test_malformed_page_is_skipped_and_logged(data_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    events: list[tuple[str, dict]] = []
    monkeypatch.setattr(run, "_scraper_event", lambda label, **fields: events.append((label, fields)))
    site = build_site([detail_page(), TWO_CELL_PAGE, detail_page()])
    output = data_dir / "out.csv"

    summary, progress = _run(site, output)

    assert len(output.read_text(encoding="utf-8").splitlines()) == 2
    assert progress == [1, 2]
    assert summary["skipped"] == 1
    skips = [fields for label, fields in events if label == "skip"]
    assert skips == [
        {
            "window": "1968-1973",
            "url": detail_url(2),
            "error_code": ErrorCode.MISSING_SECTION,
            "will_continue": True,
            "error": "Expected 3 table cells, found 2",
        }
    ]


def test_abort_policy_stops_on_malformed_page(data_dir: Path) -> None:
    site = build_site([detail_page(), TWO_CELL_PAGE, detail_page()])
    output = data_dir / "out.csv"

    with pytest.raises(MissingSectionError):
        _run(site, output, on_record_error="abort")

    assert len(output.read_text(encoding="utf-8").splitlines()) == 1
    assert detail_url(3) not in [call["url"] for call in site.calls]


def test_failed_window_continues_with_next_window(data_dir: Path) -> None:
    site = build_site([detail_page(), 503])
    output = data_dir / "out.csv"

    summary, progress = _run(site, output, current_year=1973)

    # Both windows hit the same stub listing: one row each before the 503.
    assert progress == [1, 2]
    assert summary["failed_windows"] == ["1968-1973", "1973-1978"]
    assert len(output.read_text(encoding="utf-8").splitlines()) == 2


def test_abort_policy_stops_on_failed_window(data_dir: Path) -> None:
    site = build_site([detail_page()], extra={FORM_URL: requests.ConnectionError("reset")})
    output = data_dir / "out.csv"

    with pytest.raises(FetchError) as excinfo:
        _run(site, output, current_year=1978, on_window_error="abort")

    assert excinfo.value.error_code == ErrorCode.NETWORK
    assert len(site.sessions) == 1
    assert output.read_text(encoding="utf-8") == ""


def test_overwrite_guard_aborts_before_any_request(data_dir: Path) -> None:
    site = build_site([detail_page()])
    output = data_dir / "out.csv"
    output.write_text("previous run\n", encoding="utf-8")

    with pytest.raises(AlreadyExistsError):
        _run(site, output, overwrite_guard=True)

    assert site.calls == []
    assert output.read_text(encoding="utf-8") == "previous run\n"


def test_run_writes_telemetry_and_summary(data_dir: Path) -> None:
    site = build_site([detail_page(), TWO_CELL_PAGE])

    summary, _ = _run(site, data_dir / "out.csv")

    payload = json.loads(Path(summary["telemetry_file"]).read_text(encoding="utf-8"))
    assert payload["summary"] == {"count_written": 1, "count_skipped": 1}
    assert [entry["status"] for entry in payload["entries"]] == ["skipped"]
    assert payload["entries"][0]["reason"] == ErrorCode.MISSING_SECTION
    assert payload["entries"][0]["url"] == detail_url(2)
    saved = json.loads(config.SUMMARY_FILE.read_text(encoding="utf-8"))
    assert saved["processed"] == 1


def test_cli_passes_options_to_run_scrape(monkeypatch: pytest.MonkeyPatch, data_dir: Path) -> None:
    captured: dict = {}

    def _fake_run_scrape(output, **kwargs):
        captured["output"] = output
        captured.update(kwargs)
        return {}

    monkeypatch.setattr(run, "run_scrape", _fake_run_scrape)

    exit_code = run._cli_entrypoint(
        [
            "--output",
            str(data_dir / "x.csv"),
            "--current-year",
            "1980",
            "--shared-client",
            "--idle-timeout",
            "0.5",
            "--on-record-error",
            "abort",
        ]
    )

    assert exit_code == 0
    assert captured["output"] == data_dir / "x.csv"
    assert captured["start_year"] == config.DATABASE_START_YEAR
    assert captured["current_year"] == 1980
    assert captured["on_record_error"] == "abort"
    assert captured["policy"].per_window is False
    assert captured["policy"].idle_timeout == 0.5


def test_cli_reports_overwrite_abort(monkeypatch: pytest.MonkeyPatch, data_dir: Path) -> None:
    output = data_dir / "x.csv"
    output.write_text("keep\n", encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        run._cli_entrypoint(["--output", str(output), "--overwrite-guard"])

    assert excinfo.value.code == 1
    assert output.read_text(encoding="utf-8") == "keep\n"


def test_non_ascii_detail_pages_keep_their_characters(data_dir: Path) -> None:
    site = build_site([detail_page(lead="Aug 7, 2002<br>Bogotá, Colombia<br>FARC")])
    output = data_dir / "out.csv"

    _run(site, output)

    assert output.read_text(encoding="utf-8").startswith("Aug 7 2002,Bogotá Colombia,FARC,")


def test_unexpected_error_still_finalizes_telemetry(data_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def _disk_full(self, record):
        raise OSError("No space left on device")

    monkeypatch.setattr(run.IncidentSink, "append", _disk_full)
    site = build_site([detail_page()])

    with pytest.raises(OSError):
        _run(site, data_dir / "out.csv")

    runs = list(config.RUNS_DIR.glob("run_*.json"))
    assert len(runs) == 1
    payload = json.loads(runs[0].read_text(encoding="utf-8"))
    assert payload["aborted"] is True
    assert payload["processed"] == 0


@pytest.mark.parametrize(
    "flag, value",
    [
        ("--request-timeout", "0"),
        ("--idle-timeout", "-1"),
        ("--step", "0"),
        ("--span", "-1"),
    ],
)
def test_cli_rejects_invalid_arguments(monkeypatch: pytest.MonkeyPatch, flag: str, value: str) -> None:
    monkeypatch.setattr(run, "run_scrape", lambda *args, **kwargs: pytest.fail("run_scrape called"))

    with pytest.raises(SystemExit) as excinfo:
        run._cli_entrypoint([flag, value])

    assert excinfo.value.code == 2
