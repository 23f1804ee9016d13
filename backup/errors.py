"""Error hierarchy for folder backup runs."""
from __future__ import annotations


class BackupError(RuntimeError):
    """Base exception for backup related failures."""


class ConfigurationError(BackupError):
    """Raised when settings carry values the backup run cannot use."""


class FatalBackupError(BackupError):
    """Raised for conditions that abort the whole run."""


class DestinationError(FatalBackupError):
    """Raised when the destination root cannot be created."""


class ManifestError(FatalBackupError):
    """Raised when the manifest is missing or unusable."""


class StagingError(BackupError):
    """Raised when a scratch directory cannot be prepared for a task."""


class ArchiveError(BackupError):
    """Raised when an archive cannot be written or verified."""


__all__ = [
    "ArchiveError",
    "BackupError",
    "ConfigurationError",
    "DestinationError",
    "FatalBackupError",
    "ManifestError",
    "StagingError",
]
