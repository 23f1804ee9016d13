"""Persist a finished batch as CSV rows and a JSON summary."""
from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Dict, List

from .sizing import format_size
from .types import BackupResult, BatchReport

REPORT_COLUMNS = [
    "folder",
    "source_path",
    "size",
    "log_count",
    "log_size",
    "log_action",
    "timestamp",
    "status",
    "error",
    "archive_path",
    "archive_size",
    "locked_files",
    "logs_deleted",
]


def _flag(value) -> str:
    if value is None:
        return ""
    return "true" if value else "false"


def result_to_row(result: BackupResult) -> Dict[str, object]:
    inventory = result.log_inventory
    return {
        "folder": result.task.folder_label,
        "source_path": str(result.task.source_path),
        "size": result.source_size_label,
        "log_count": inventory.count,
        "log_size": format_size(inventory.total_size_bytes),
        "log_action": result.task.log_action.value if result.task.log_action else "",
        "timestamp": result.timestamp,
        "status": result.status.value,
        "error": result.error_detail or "",
        "archive_path": str(result.archive_path) if result.archive_path else "",
        "archive_size": format_size(result.archive_size_bytes) if result.archive_size_bytes is not None else "",
        "locked_files": len(result.locked_files),
        "logs_deleted": _flag(result.logs_deleted),
    }


def report_rows(report: BatchReport) -> List[Dict[str, object]]:
    return [result_to_row(result) for result in report.results]


def write_report_csv(report: BatchReport, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=REPORT_COLUMNS)
        writer.writeheader()
        for row in report_rows(report):
            writer.writerow(row)
    return path


def write_summary_json(report: BatchReport, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "started_utc": report.started_utc,
        "finished_utc": report.finished_utc,
        "total": report.total,
        "succeeded": report.succeeded,
        "failed": report.failed,
        "results": report_rows(report),
    }
    with path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, ensure_ascii=False, indent=2)
    return path


__all__ = ["REPORT_COLUMNS", "report_rows", "result_to_row", "write_report_csv", "write_summary_json"]
