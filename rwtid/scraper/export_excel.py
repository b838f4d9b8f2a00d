"""Excel export helpers for run telemetry."""

from __future__ import annotations

import json
import os
from typing import Optional

import pandas as pd

from . import config
from .telemetry import SKIPPED, WINDOW_FAILED, WRITTEN, latest_run_path, prune_old_exports


def export_latest_run_to_excel(dest_path: Optional[str] = None) -> str:
    """Create an Excel workbook from the most recent telemetry payload."""

    run_path = latest_run_path()
    if not run_path:
        raise FileNotFoundError("No run telemetry available to export")

    with open(run_path, "r", encoding="utf-8") as handle:
        payload = json.load(handle)

    df = pd.DataFrame(payload.get("entries", []))
    if df.empty:
        df = pd.DataFrame([{"status": "", "reason": "No entries in latest run"}])

    skipped = df[df["status"] == SKIPPED].copy()
    failed = df[df["status"] == WINDOW_FAILED].copy()

    def safe_pivot(frame, by):
        if frame.empty or any(column not in frame.columns for column in by):
            return pd.DataFrame()
        return frame.groupby(by).size().reset_index(name="count").sort_values("count", ascending=False)

    summary_status = pd.DataFrame(
        [
            {"status": key[len("count_"):], "count": value}
            for key, value in sorted(payload.get("summary", {}).items())
        ],
        columns=["status", "count"],
    )
    summary_reason = safe_pivot(df[df["status"] != WRITTEN], ["status", "reason"])
    summary_window = safe_pivot(df, ["window", "status"])

    os.makedirs(config.EXPORTS_DIR, exist_ok=True)
    if not dest_path:
        basename = f"incidents_{payload['run_id']}.xlsx"
        dest_path = os.path.join(config.EXPORTS_DIR, basename)

    with pd.ExcelWriter(dest_path, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name="All")
        skipped.to_excel(writer, index=False, sheet_name="Skipped")
        failed.to_excel(writer, index=False, sheet_name="Failed")
        summary_status.to_excel(writer, index=False, sheet_name="Summary_Status")
        if not summary_reason.empty:
            summary_reason.to_excel(writer, index=False, sheet_name="Summary_Reason")
        if not summary_window.empty:
            summary_window.to_excel(writer, index=False, sheet_name="Summary_Window")

    prune_old_exports()
    return dest_path


__all__ = ["export_latest_run_to_excel"]
