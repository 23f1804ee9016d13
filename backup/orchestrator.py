"""Run a batch of folder backups, one task at a time, in manifest order."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence, Set, Tuple

from core.paths import safe_label

from .archive import build_archive
from .classify import classify_logs, normalize_globs
from .errors import DestinationError, FatalBackupError
from .logs import BackupLogger
from .sizing import UNKNOWN_SIZE, measure_size, size_label
from .staging import stage_for_archive
from .types import (
    BackupConfig,
    BackupResult,
    BackupStatus,
    BackupTask,
    BatchReport,
    LockedFileRecord,
    LogAction,
    LogInventory,
)

LOGGER = logging.getLogger("folderbackup.backup.orchestrator")

SOURCE_NOT_FOUND = "source folder not found"
NOTHING_TO_ARCHIVE = "no files to archive - all locked or excluded"

ResolveLogAction = Callable[[BackupTask], LogAction]
ResultCallback = Callable[[int, int, BackupResult], None]


class BackupOrchestrator:
    """Back up each task into its own archive and collect a :class:`BatchReport`.

    The log action for a task comes from the manifest when present. Otherwise
    ``resolve_log_action`` is asked, but only for tasks that actually contain
    logs; everything else gets the configured default.
    """

    def __init__(
        self,
        config: BackupConfig,
        *,
        logger: BackupLogger,
        resolve_log_action: Optional[ResolveLogAction] = None,
    ) -> None:
        self._config = config
        self._logger = logger
        self._resolve = resolve_log_action

    @property
    def config(self) -> BackupConfig:
        return self._config

    # ------------------------------------------------------------------
    def run_batch(
        self,
        tasks: Sequence[BackupTask],
        destination_dir: Optional[Path] = None,
        log_extensions: Optional[Iterable[str]] = None,
        *,
        on_result: Optional[ResultCallback] = None,
    ) -> BatchReport:
        destination = Path(destination_dir or self._config.destination_root)
        try:
            destination.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise DestinationError(f"cannot create destination {destination}: {exc}") from exc
        patterns = normalize_globs(self._config.log_extensions if log_extensions is None else log_extensions)

        tasks = list(tasks)
        report = BatchReport()
        self._logger.info(
            "batch_start",
            tasks=len(tasks),
            destination=str(destination),
            log_extensions=list(patterns),
        )
        seen_labels: Set[str] = set()
        for index, task in enumerate(tasks, start=1):
            archive_name = safe_label(task.folder_label)
            # archives differing only in case collide on case-insensitive filesystems
            if archive_name.casefold() in seen_labels:
                self._logger.warning("duplicate_label", folder=task.folder_label, archive=archive_name)
            seen_labels.add(archive_name.casefold())
            try:
                result = self._process(task, destination, patterns)
            except FatalBackupError:
                raise
            except Exception as exc:
                LOGGER.exception("task %s failed unexpectedly", task.folder_label)
                result = BackupResult(
                    task=task.with_log_action(task.log_action or self._config.default_log_action),
                    source_size_label=UNKNOWN_SIZE,
                    log_inventory=LogInventory(),
                    archive_path=None,
                    status=BackupStatus.FAILED,
                    error_detail=str(exc) or type(exc).__name__,
                )
            report.append(result)
            self._log_result(result)
            if on_result is not None:
                on_result(index, len(tasks), result)

        report.finalize()
        self._logger.event(
            event="batch_complete",
            ok=report.failed == 0,
            total=report.total,
            succeeded=report.succeeded,
            failed=report.failed,
        )
        return report

    # ------------------------------------------------------------------
    def resolve_log_action(self, task: BackupTask, inventory: LogInventory) -> LogAction:
        if task.log_action is not None:
            return task.log_action
        if inventory and self._resolve is not None:
            return self._resolve(task)
        return self._config.default_log_action

    def _process(self, task: BackupTask, destination: Path, patterns: Tuple[str, ...]) -> BackupResult:
        source = Path(task.source_path)
        if not source.is_dir():
            return BackupResult(
                task=task.with_log_action(task.log_action or self._config.default_log_action),
                source_size_label=UNKNOWN_SIZE,
                log_inventory=LogInventory(),
                archive_path=None,
                status=BackupStatus.FAILED,
                error_detail=f"{SOURCE_NOT_FOUND}: {source}",
            )

        size_bytes, size_ok = measure_size(source)
        if not size_ok:
            self._logger.warning("size_unknown", folder=task.folder_label, path=str(source))
        inventory = classify_logs(source, patterns)
        if inventory.error:
            self._logger.warning("log_scan_failed", folder=task.folder_label, error=inventory.error)

        task = task.with_log_action(self.resolve_log_action(task, inventory))
        exclude = inventory.names() if task.log_action is LogAction.EXCLUDE and inventory else set()

        def _result(status: BackupStatus, **extra) -> BackupResult:
            return BackupResult(
                task=task,
                source_size_label=size_label(size_bytes, size_ok),
                log_inventory=inventory,
                status=status,
                **extra,
            )

        with stage_for_archive(
            source, exclude, scratch_root=self._config.scratch_root, exclude_dirs=(destination,)
        ) as staging:
            locked = tuple(staging.locked_files)
            for path in staging.skipped:
                self._logger.warning("special_file_skipped", folder=task.folder_label, path=str(path))
            for record in locked:
                self._logger.warning("file_locked", folder=task.folder_label, path=str(record.path))
            if not staging.staged:
                return _result(
                    BackupStatus.FAILED,
                    archive_path=None,
                    error_detail=NOTHING_TO_ARCHIVE,
                    locked_files=locked,
                )
            outcome = build_archive(
                staging.directory,
                destination,
                task.folder_label,
                compresslevel=self._config.compresslevel,
                verify=self._config.verify_archives,
            )

        if not outcome.ok:
            return _result(
                BackupStatus.FAILED,
                archive_path=None,
                error_detail=f"archive failed: {outcome.error}",
                locked_files=locked,
            )

        logs_deleted: Optional[bool] = None
        if task.log_action is LogAction.DELETE and inventory:
            logs_deleted = self._delete_logs(task, inventory, locked)
        return _result(
            BackupStatus.SUCCESS,
            archive_path=outcome.path,
            archive_size_bytes=outcome.size_bytes,
            logs_deleted=logs_deleted,
            locked_files=locked,
        )

    def _delete_logs(
        self, task: BackupTask, inventory: LogInventory, locked: Tuple[LockedFileRecord, ...]
    ) -> bool:
        """Remove archived log files; return ``True`` only if every one is gone."""

        skipped = {record.path for record in locked}
        all_removed = True
        for path in inventory.files:
            if path in skipped:
                self._logger.warning(
                    "log_delete_failed", folder=task.folder_label, path=str(path), error="locked, not archived"
                )
                all_removed = False
                continue
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            except OSError as exc:
                self._logger.warning("log_delete_failed", folder=task.folder_label, path=str(path), error=str(exc))
                all_removed = False
        return all_removed

    def _log_result(self, result: BackupResult) -> None:
        inventory = result.log_inventory
        self._logger.event(
            event="task_complete",
            ok=result.ok,
            folder=result.task.folder_label,
            source=str(result.task.source_path),
            status=result.status.value,
            size=result.source_size_label,
            log_action=result.task.log_action.value if result.task.log_action else None,
            log_count=inventory.count,
            log_bytes=inventory.total_size_bytes,
            archive=str(result.archive_path) if result.archive_path else None,
            archive_bytes=result.archive_size_bytes,
            locked_files=len(result.locked_files),
            logs_deleted=result.logs_deleted,
            error=result.error_detail,
        )


__all__ = ["BackupOrchestrator", "NOTHING_TO_ARCHIVE", "SOURCE_NOT_FOUND"]
