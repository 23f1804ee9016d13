import csv
import json
from pathlib import Path

from backup.report import REPORT_COLUMNS, write_report_csv, write_summary_json
from backup.types import (
    BackupResult,
    BackupStatus,
    BackupTask,
    BatchReport,
    LockedFileRecord,
    LogAction,
    LogInventory,
)


def _report() -> BatchReport:
    report = BatchReport()
    report.append(
        BackupResult(
            task=BackupTask("web", Path("/srv/web"), LogAction.DELETE),
            source_size_label="12.00 MB",
            log_inventory=LogInventory(count=2, total_size_bytes=3 * 1024 ** 2, files=[]),
            archive_path=Path("/backups/20240101-000000/web.zip"),
            status=BackupStatus.SUCCESS,
            archive_size_bytes=1024 ** 2,
            logs_deleted=False,
            locked_files=(LockedFileRecord(Path("/srv/web/lock.db")),),
            timestamp="2024-01-01 00:00:05",
        )
    )
    report.append(
        BackupResult(
            task=BackupTask("gone", Path("/srv/gone"), LogAction.INCLUDE),
            source_size_label="Unknown size",
            log_inventory=LogInventory(),
            archive_path=None,
            status=BackupStatus.FAILED,
            error_detail="source folder not found: /srv/gone",
            timestamp="2024-01-01 00:00:06",
        )
    )
    return report.finalize()


def test_write_report_csv_rows(tmp_path):
    path = write_report_csv(_report(), tmp_path / "run" / "report.csv")

    with path.open("r", encoding="utf-8", newline="") as handle:
        reader = csv.DictReader(handle)
        assert reader.fieldnames == REPORT_COLUMNS
        rows = list(reader)

    assert [row["status"] for row in rows] == ["Success", "Failed"]
    first, second = rows
    assert first["log_count"] == "2"
    assert first["log_size"] == "3.00 MB"
    assert first["log_action"] == "delete"
    assert first["archive_size"] == "1.00 MB"
    assert first["locked_files"] == "1"
    assert first["logs_deleted"] == "false"
    assert second["error"].startswith("source folder not found")
    assert second["archive_path"] == ""
    assert second["logs_deleted"] == ""


def test_write_summary_json_counters(tmp_path):
    path = write_summary_json(_report(), tmp_path / "summary.json")

    data = json.loads(path.read_text(encoding="utf-8"))
    assert (data["total"], data["succeeded"], data["failed"]) == (2, 1, 1)
    assert data["finished_utc"]
    assert [row["folder"] for row in data["results"]] == ["web", "gone"]
