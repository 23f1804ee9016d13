"""Common dataclasses shared across backup modules."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple


class LogAction(str, Enum):
    """What to do with files classified as logs."""

    INCLUDE = "include"
    EXCLUDE = "exclude"
    DELETE = "delete"

    @classmethod
    def parse(cls, value: object) -> Optional["LogAction"]:
        if isinstance(value, LogAction):
            return value
        text = str(value or "").strip().lower()
        if not text:
            return None
        for member in cls:
            if member.value == text or member.value[0] == text:
                return member
        return None


class BackupStatus(str, Enum):
    SUCCESS = "Success"
    FAILED = "Failed"


@dataclass(slots=True, frozen=True)
class BackupTask:
    """One manifest row resolved into a backup unit."""

    folder_label: str
    source_path: Path
    log_action: Optional[LogAction] = None

    def with_log_action(self, action: LogAction) -> "BackupTask":
        return replace(self, log_action=action)


@dataclass(slots=True)
class LogInventory:
    """Log files found under a source folder."""

    count: int = 0
    total_size_bytes: int = 0
    files: List[Path] = field(default_factory=list)
    error: Optional[str] = None

    def names(self) -> set[str]:
        return {path.name for path in self.files}

    def __bool__(self) -> bool:
        return self.count > 0


@dataclass(slots=True, frozen=True)
class LockedFileRecord:
    path: Path


@dataclass(slots=True, frozen=True)
class BackupConfig:
    """Plain values the orchestrator needs, fixed for the whole run."""

    destination_root: Path
    log_extensions: Tuple[str, ...] = ("*.log", "*.txt")
    default_log_action: LogAction = LogAction.INCLUDE
    scratch_root: Optional[Path] = None
    compresslevel: int = 9
    verify_archives: bool = True


@dataclass(slots=True, frozen=True)
class BackupResult:
    task: BackupTask
    source_size_label: str
    log_inventory: LogInventory
    archive_path: Optional[Path]
    status: BackupStatus
    error_detail: Optional[str] = None
    logs_deleted: Optional[bool] = None
    archive_size_bytes: Optional[int] = None
    locked_files: Tuple[LockedFileRecord, ...] = ()
    timestamp: str = field(default_factory=lambda: datetime.now().strftime("%Y-%m-%d %H:%M:%S"))

    @property
    def ok(self) -> bool:
        return self.status is BackupStatus.SUCCESS


@dataclass(slots=True)
class BatchReport:
    """Per-task results in manifest order plus running counters."""

    results: List[BackupResult] = field(default_factory=list)
    succeeded: int = 0
    failed: int = 0
    started_utc: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    finished_utc: Optional[str] = None

    @property
    def total(self) -> int:
        return len(self.results)

    def append(self, result: BackupResult) -> None:
        if self.finished_utc is not None:
            raise ValueError("report already finalized")
        self.results.append(result)
        if result.ok:
            self.succeeded += 1
        else:
            self.failed += 1

    def finalize(self) -> "BatchReport":
        if self.finished_utc is None:
            self.finished_utc = datetime.now(timezone.utc).isoformat()
        return self


__all__ = [
    "BackupConfig",
    "BackupResult",
    "BackupStatus",
    "BackupTask",
    "BatchReport",
    "LockedFileRecord",
    "LogAction",
    "LogInventory",
]
