"""Manifest-driven folder backups with log-file handling."""
from __future__ import annotations

from .api import BackupService, RunOutcome, build_config
from .errors import BackupError, FatalBackupError
from .orchestrator import BackupOrchestrator
from .retention import RetentionPolicy, RetentionSummary
from .types import BackupConfig, BackupResult, BackupStatus, BackupTask, BatchReport, LogAction, LogInventory

__version__ = "1.0.0"

__all__ = [
    "BackupConfig",
    "BackupError",
    "BackupOrchestrator",
    "BackupResult",
    "BackupService",
    "BackupStatus",
    "BackupTask",
    "BatchReport",
    "FatalBackupError",
    "LogAction",
    "LogInventory",
    "RetentionPolicy",
    "RetentionSummary",
    "RunOutcome",
    "build_config",
]
