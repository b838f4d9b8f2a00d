"""Configuration constants for the RAND incident database scraper."""
from __future__ import annotations

import os
from pathlib import Path


def _env_flag(env_var: str, default: str) -> bool:
    return os.getenv(env_var, default).strip().lower() not in {"0", "false", "no", ""}


DATA_DIR: Path = Path(os.getenv("RWTID_DATA_DIR", "/app/data"))
LOG_DIR: Path = DATA_DIR / "logs"
LOG_FILE: Path = LOG_DIR / "latest.log"
RUNS_DIR: Path = DATA_DIR / "runs"
EXPORTS_DIR: Path = DATA_DIR / "exports"
SUMMARY_FILE: Path = DATA_DIR / "last_summary.json"
OUTPUT_FILE: Path = DATA_DIR / os.getenv("RWTID_OUTPUT_FILE", "randTerrorismIncidents.csv")

SEARCH_FORM_URL: str = os.getenv(
    "RWTID_SEARCH_FORM_URL", "http://smapp.rand.org/rwtid/search_form.php"
)
SEARCH_FORM_ACTION: str = "search.php"
START_YEAR_FIELD: str = "start_year"
END_YEAR_FIELD: str = "end_year"
# Anchors on the results listing that lead to one incident each.
RESULT_LINK_SELECTOR: str = "div#content > div#indent > ol > li > a"

DATABASE_START_YEAR: int = int(os.getenv("RWTID_DATABASE_START_YEAR", "1968"))
# A window covers [year, year + WINDOW_SPAN_YEARS]; the next one starts at
# year + WINDOW_STEP_YEARS, so the defaults overlap by one year.
WINDOW_SPAN_YEARS: int = int(os.getenv("RWTID_WINDOW_SPAN_YEARS", "5"))
WINDOW_STEP_YEARS: int = int(os.getenv("RWTID_WINDOW_STEP_YEARS", "5"))

# Pooled connections idle for longer than this are dropped before reuse; the
# upstream server resets stale keep-alive connections.
IDLE_TIMEOUT_SECONDS: float = float(os.getenv("RWTID_IDLE_TIMEOUT_SECONDS", "0.1"))
REQUEST_TIMEOUT_SECONDS: float = float(os.getenv("RWTID_REQUEST_TIMEOUT_SECONDS", "60"))
CLIENT_PER_WINDOW: bool = _env_flag("RWTID_CLIENT_PER_WINDOW", "1")

# Refuse to overwrite an existing output file. Off by default: a new run
# silently replaces the previous file.
OVERWRITE_GUARD: bool = _env_flag("RWTID_OVERWRITE_GUARD", "0")

RECORD_ERROR_POLICIES = ("skip", "abort")
WINDOW_ERROR_POLICIES = ("continue", "abort")
ON_RECORD_ERROR: str = os.getenv("RWTID_ON_RECORD_ERROR", "skip").strip().lower() or "skip"
ON_WINDOW_ERROR: str = (
    os.getenv("RWTID_ON_WINDOW_ERROR", "continue").strip().lower() or "continue"
)

MIN_FREE_MB: int = int(os.getenv("MIN_FREE_MB", "50"))
EXPORTS_KEEP_MAX: int = int(os.getenv("EXPORTS_KEEP_MAX", "5"))

START_MESSAGE: str = (
    "Starting up the scraper for the RAND Terrorism Incident Database. "
    "The running count that follows is the number of incidents written."
)

COMMON_HEADERS: dict[str, str] = {
    "User-Agent": (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


def is_abort_on_record_error(policy: str | None = None) -> bool:
    """Return ``True`` when a malformed detail page should stop the run."""

    return str(policy or ON_RECORD_ERROR).strip().lower() == "abort"


def is_abort_on_window_error(policy: str | None = None) -> bool:
    """Return ``True`` when a failed window should stop the run."""

    return str(policy or ON_WINDOW_ERROR).strip().lower() == "abort"
