from __future__ import annotations

import os
import threading
from typing import Any, Dict

from flask import Flask, Response, jsonify, request, send_file

from rwtid.scraper import config
from rwtid.scraper.config_validation import validate_runtime_config
from rwtid.scraper.error_codes import ScraperError
from rwtid.scraper.export_excel import export_latest_run_to_excel
from rwtid.scraper.healthcheck import run_health_checks
from rwtid.scraper.run import run_scrape
from rwtid.scraper.telemetry import latest_run_path
from rwtid.scraper.utils import ensure_dirs, load_json_file, log_line

app = Flask(__name__)
app.secret_key = os.environ.get("SECRET_KEY", "dev-secret-change-me")

# Initialise storage paths on import so WSGI entrypoints also have the
# expected environment ready.
ensure_dirs()

_RUN_LOCK = threading.Lock()


def _int_arg(payload: Dict[str, Any], key: str) -> int | None:
    try:
        return int(payload[key])
    except (KeyError, TypeError, ValueError):
        return None


@app.post("/scrape")
def start_scrape() -> Response:
    """Start a scrape on a background thread; one run at a time."""

    payload: Dict[str, Any] = {}
    payload.update(request.args or {})
    if request.is_json:
        payload.update(request.get_json(silent=True) or {})
    else:
        payload.update(request.form or {})

    try:
        validate_runtime_config("ui")
    except ValueError as exc:
        return jsonify({"ok": False, "error": str(exc)}), 400

    if not _RUN_LOCK.acquire(blocking=False):
        return jsonify({"ok": False, "error": "a scrape is already running"}), 409

    start_year = _int_arg(payload, "start_year")
    current_year = _int_arg(payload, "current_year")

    def _run() -> None:
        try:
            summary = run_scrape(
                start_year=start_year,
                current_year=current_year,
                start_message="Initiating scrape via web API",
                trigger="ui",
            )
            app.config["LAST_SUMMARY"] = summary
        except ScraperError as exc:
            log_line(f"Scrape thread failed ({exc.error_code}): {exc}")
        except Exception as exc:  # noqa: BLE001
            log_line(f"Scrape thread failed: {exc}")
        finally:
            _RUN_LOCK.release()

    threading.Thread(target=_run, daemon=True).start()
    return jsonify({"ok": True, "status": "started"}), 202


@app.get("/api/health")
def api_health() -> Response:
    """Return a JSON health summary for configuration, filesystem, and output."""

    result = run_health_checks(entrypoint="ui")
    status = 200 if result.ok else 503
    return jsonify({"ok": result.ok, "checks": result.checks}), status


@app.get("/api/runs/latest")
def api_runs_latest() -> Response:
    """Return the latest run telemetry summary."""

    path = latest_run_path()
    payload = load_json_file(path) if path else None
    if not payload:
        return jsonify({"ok": False, "error": "no runs"}), 404

    return jsonify(
        {
            "ok": True,
            "run": {
                "id": payload.get("run_id"),
                "mode": payload.get("mode"),
                "started_at": payload.get("started_at"),
                "ended_at": payload.get("ended_at"),
                "summary": payload.get("summary", {}),
                "processed": payload.get("processed"),
                "skipped": payload.get("skipped"),
                "failed_windows": payload.get("failed_windows", []),
                "aborted": payload.get("aborted", False),
            },
        }
    )


@app.get("/api/exports/latest.xlsx")
def api_export_latest_xlsx() -> Response:
    try:
        path = export_latest_run_to_excel()
    except FileNotFoundError as exc:
        return jsonify({"ok": False, "error": str(exc)}), 404
    return send_file(path, as_attachment=True, download_name=os.path.basename(path))


@app.get("/export/csv")
def export_csv() -> Response:
    """Provide the incidents output file as a download."""

    if not config.OUTPUT_FILE.exists():
        return jsonify({"ok": False, "error": "no output yet"}), 404
    return send_file(
        config.OUTPUT_FILE,
        mimetype="text/csv",
        as_attachment=True,
        download_name=config.OUTPUT_FILE.name,
    )


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=8080)
