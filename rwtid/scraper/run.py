"""Scraper for the RAND Worldwide Terrorism Incidents Database.

Workflow:

- Open the output file (optionally refusing to overwrite an existing one).
- Walk year windows from 1968 to the current year: ``[1968, 1973]``,
  ``[1973, 1978]``, ... (consecutive windows share one year).
- For each window, open a fresh HTTP session, submit the search form with
  ``start_year`` / ``end_year`` and follow every result link.
- Parse each incident page into seven fields and append one line per
  incident:

      date,location,group,weapon,injuries,fatalities,description

- Log a running count of written incidents.

Malformed incident pages are skipped and a failed window is abandoned by
default; both policies can be switched to abort the run instead.
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

import requests

from . import config, pagination
from .config_validation import validate_runtime_config
from .error_codes import (
    AlreadyExistsError,
    ErrorCode,
    FetchError,
    MalformedField,
    MissingSectionError,
    ScraperError,
)
from .http_client import ClientPolicy, build_http_session
from .logging_utils import _scraper_event
from .parser import assemble_record
from .sink import IncidentSink
from .telemetry import SKIPPED, WINDOW_FAILED, WRITTEN, RunTelemetry
from .utils import ensure_dirs, log_line, save_json_file, setup_run_logger
from .windows import QueryWindow, iter_query_windows

ProgressReporter = Callable[[int], None]
SessionFactory = Callable[[ClientPolicy], requests.Session]


def report_progress(processed: int) -> None:
    """Default progress reporter: one log line per written incident."""

    _scraper_event("progress", processed=processed)


def _short_error_message(exc: BaseException, max_length: int = 200) -> str:
    message = str(exc) or exc.__class__.__name__
    if len(message) > max_length:
        return message[: max_length - 3] + "..."
    return message


class ScrapeOrchestrator:
    """Drive the window loop and own the sink and the processed count."""

    def __init__(
        self,
        sink: IncidentSink,
        *,
        policy: Optional[ClientPolicy] = None,
        session_factory: Optional[SessionFactory] = None,
        progress: Optional[ProgressReporter] = None,
        telemetry: Optional[RunTelemetry] = None,
        on_record_error: Optional[str] = None,
        on_window_error: Optional[str] = None,
        form_url: Optional[str] = None,
    ) -> None:
        self.sink = sink
        self.policy = policy or ClientPolicy.from_config()
        self.session_factory = session_factory or build_http_session
        self.progress = progress or report_progress
        self.telemetry = telemetry
        self.abort_on_record_error = config.is_abort_on_record_error(on_record_error)
        self.abort_on_window_error = config.is_abort_on_window_error(on_window_error)
        self.form_url = form_url or config.SEARCH_FORM_URL
        self.processed = 0
        self.skipped = 0
        self.windows = 0
        self.failed_windows: List[str] = []

    def _record(self, status: str, reason: str, **meta: Any) -> None:
        if self.telemetry is not None:
            self.telemetry.add(status, reason, meta)

    def run(self, windows: Iterable[QueryWindow]) -> None:
        shared: Optional[requests.Session] = None
        try:
            for window in windows:
                self.windows += 1
                if self.policy.per_window:
                    with self.session_factory(self.policy) as session:
                        self.scrape_window(session, window)
                else:
                    if shared is None:
                        shared = self.session_factory(self.policy)
                    self.scrape_window(shared, window)
        finally:
            if shared is not None:
                shared.close()

    def scrape_window(self, session: requests.Session, window: QueryWindow) -> None:
        _scraper_event("window", phase="start", window=window.label())
        written_before = self.processed
        link_url: Optional[str] = None
        try:
            for link, page in pagination.iter_detail_documents(
                session, window, policy=self.policy, form_url=self.form_url
            ):
                link_url = link.url
                self._handle_detail(window, link, page)
        except FetchError as exc:
            self.failed_windows.append(window.label())
            _scraper_event(
                "error",
                phase="window",
                window=window.label(),
                error_code=exc.error_code,
                http_status=exc.http_status,
                url=exc.url,
                last_link=link_url,
                will_continue=not self.abort_on_window_error,
                error=_short_error_message(exc),
            )
            self._record(
                WINDOW_FAILED,
                exc.error_code,
                window=window.label(),
                url=exc.url,
                http_status=exc.http_status,
                error=_short_error_message(exc),
            )
            if self.abort_on_window_error:
                raise
            return

        _scraper_event(
            "window",
            phase="end",
            window=window.label(),
            written=self.processed - written_before,
            processed=self.processed,
        )

    def _handle_detail(
        self,
        window: QueryWindow,
        link: pagination.DetailLink,
        page: requests.Response,
    ) -> None:
        try:
            record = assemble_record(page.content)
        except (MissingSectionError, MalformedField) as exc:
            self.skipped += 1
            _scraper_event(
                "skip",
                window=window.label(),
                url=link.url,
                error_code=exc.error_code,
                will_continue=not self.abort_on_record_error,
                error=_short_error_message(exc),
            )
            self._record(
                SKIPPED,
                exc.error_code,
                window=window.label(),
                url=link.url,
                title=link.text,
                error=_short_error_message(exc),
            )
            if self.abort_on_record_error:
                raise
            return

        self.sink.append(record)
        self.processed += 1
        self.progress(self.processed)
        if self.telemetry is not None:
            self.telemetry.count(WRITTEN)


def run_scrape(
    output_path: Optional[Path] = None,
    *,
    start_year: Optional[int] = None,
    current_year: Optional[int] = None,
    span: Optional[int] = None,
    step: Optional[int] = None,
    overwrite_guard: Optional[bool] = None,
    on_record_error: Optional[str] = None,
    on_window_error: Optional[str] = None,
    policy: Optional[ClientPolicy] = None,
    session_factory: Optional[SessionFactory] = None,
    progress: Optional[ProgressReporter] = None,
    form_url: Optional[str] = None,
    start_message: Optional[str] = None,
    trigger: str = "cli",
) -> Dict[str, Any]:
    """Public entrypoint: scrape every window into ``output_path``."""

    ensure_dirs()
    log_path = setup_run_logger()
    log_line(start_message or config.START_MESSAGE)

    output_path = Path(output_path or config.OUTPUT_FILE)
    guard = config.OVERWRITE_GUARD if overwrite_guard is None else bool(overwrite_guard)

    try:
        sink = IncidentSink.open(output_path, overwrite_guard=guard)
    except AlreadyExistsError as exc:
        _scraper_event(
            "error",
            phase="open_output",
            error_code=exc.error_code,
            path=str(output_path),
        )
        log_line("Aborted to prevent overwriting files")
        raise

    telemetry = RunTelemetry(mode=trigger)
    orchestrator = ScrapeOrchestrator(
        sink,
        policy=policy,
        session_factory=session_factory,
        progress=progress,
        telemetry=telemetry,
        on_record_error=on_record_error,
        on_window_error=on_window_error,
        form_url=form_url,
    )
    windows = iter_query_windows(start_year, current_year, span=span, step=step)

    _scraper_event(
        "plan",
        trigger=trigger,
        output=str(output_path),
        start_year=start_year if start_year is not None else config.DATABASE_START_YEAR,
        current_year=current_year,
        per_window_client=orchestrator.policy.per_window,
        idle_timeout=orchestrator.policy.idle_timeout,
        abort_on_record_error=orchestrator.abort_on_record_error,
        abort_on_window_error=orchestrator.abort_on_window_error,
    )

    def _summary(**extra: Any) -> Dict[str, Any]:
        return {
            "processed": orchestrator.processed,
            "skipped": orchestrator.skipped,
            "windows": orchestrator.windows,
            "failed_windows": list(orchestrator.failed_windows),
            "output_file": str(output_path),
            "log_file": str(log_path),
            **extra,
        }

    try:
        orchestrator.run(windows)
    except Exception as exc:
        telemetry_path = telemetry.finalize(_summary(aborted=True))
        _scraper_event(
            "error",
            phase="run",
            error_code=getattr(exc, "error_code", ErrorCode.INTERNAL),
            processed=orchestrator.processed,
            telemetry=telemetry_path,
            error=_short_error_message(exc),
        )
        raise
    finally:
        sink.close()

    result = _summary(aborted=False)
    result["telemetry_file"] = telemetry.finalize(result)
    _scraper_event("summary", **result)
    try:
        save_json_file(config.SUMMARY_FILE, result)
    except OSError as exc:
        log_line(f"[RUN][WARN] Unable to write summary: {exc}")
    return result


def _cli_entrypoint(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Scrape the RAND terrorism incident database into a CSV file"
    )
    parser.add_argument("--output", type=Path, default=config.OUTPUT_FILE)
    parser.add_argument("--form-url", default=config.SEARCH_FORM_URL)
    parser.add_argument("--start-year", type=int, default=config.DATABASE_START_YEAR)
    parser.add_argument(
        "--current-year",
        type=int,
        default=None,
        help="Last year a window may start in (defaults to the current year).",
    )
    parser.add_argument("--span", type=int, default=config.WINDOW_SPAN_YEARS)
    parser.add_argument("--step", type=int, default=config.WINDOW_STEP_YEARS)
    parser.add_argument("--idle-timeout", type=float, default=config.IDLE_TIMEOUT_SECONDS)
    parser.add_argument("--request-timeout", type=float, default=config.REQUEST_TIMEOUT_SECONDS)
    parser.add_argument(
        "--shared-client",
        action="store_true",
        help="Reuse one HTTP session for every window instead of one per window.",
    )
    parser.add_argument(
        "--overwrite-guard",
        action="store_true",
        default=config.OVERWRITE_GUARD,
        help="Abort instead of overwriting an existing output file.",
    )
    parser.add_argument(
        "--on-record-error",
        choices=config.RECORD_ERROR_POLICIES,
        default=config.ON_RECORD_ERROR,
    )
    parser.add_argument(
        "--on-window-error",
        choices=config.WINDOW_ERROR_POLICIES,
        default=config.ON_WINDOW_ERROR,
    )
    args = parser.parse_args(argv)
    if args.idle_timeout <= 0:
        parser.error("--idle-timeout must be greater than zero")
    if args.request_timeout <= 0:
        parser.error("--request-timeout must be greater than zero")
    if args.step < 1:
        parser.error("--step must be at least 1")
    if args.span < 0:
        parser.error("--span must not be negative")

    ensure_dirs()
    validate_runtime_config("cli")

    policy = ClientPolicy(
        idle_timeout=args.idle_timeout,
        request_timeout=args.request_timeout,
        per_window=not args.shared_client,
    )
    try:
        run_scrape(
            args.output,
            start_year=args.start_year,
            current_year=args.current_year,
            span=args.span,
            step=args.step,
            overwrite_guard=args.overwrite_guard,
            on_record_error=args.on_record_error,
            on_window_error=args.on_window_error,
            policy=policy,
            form_url=args.form_url,
        )
    except AlreadyExistsError as exc:
        parser.exit(1, f"Aborted to prevent overwriting files: {exc}\n")
    except ScraperError as exc:
        parser.exit(1, f"Scrape aborted ({exc.error_code}): {exc}\n")
    return 0


__all__ = ["ScrapeOrchestrator", "run_scrape", "report_progress", "_cli_entrypoint"]


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(_cli_entrypoint())
