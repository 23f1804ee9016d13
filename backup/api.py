"""Public API for running a manifest-driven backup."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

from core.paths import create_run_dir, expand_path

from .classify import normalize_globs
from .errors import ConfigurationError, DestinationError
from .logs import BackupLogger
from .manifest import load_manifest
from .orchestrator import BackupOrchestrator, ResolveLogAction, ResultCallback
from .report import write_report_csv, write_summary_json
from .retention import RetentionPolicy, RetentionSummary, apply_retention
from .types import BackupConfig, BatchReport, LogAction

REPORT_FILENAME = "report.csv"
SUMMARY_FILENAME = "summary.json"
RUN_LOG_FILENAME = "run.jsonl"


def _split_extensions(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [part for part in value.replace(";", ",").split(",")]
    return [str(part) for part in value]


def build_config(settings: Mapping[str, Any], **overrides: Any) -> BackupConfig:
    """Turn settings values (plus non-``None`` overrides) into a :class:`BackupConfig`."""

    values = dict(settings)
    values.update({key: value for key, value in overrides.items() if value is not None})

    destination = values.get("destination_root")
    if not destination:
        raise ConfigurationError("no destination root configured")
    action = LogAction.parse(values.get("default_log_action") or LogAction.INCLUDE)
    if action is None:
        raise ConfigurationError(f"unknown default log action: {values.get('default_log_action')!r}")
    archive = values.get("archive") if isinstance(values.get("archive"), Mapping) else {}
    try:
        compresslevel = min(9, max(0, int(archive.get("compresslevel", 9))))
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"invalid compresslevel: {archive.get('compresslevel')!r}") from exc
    scratch = values.get("scratch_root")
    return BackupConfig(
        destination_root=expand_path(destination),
        log_extensions=normalize_globs(_split_extensions(values.get("log_extensions"))),
        default_log_action=action,
        scratch_root=expand_path(scratch) if scratch else None,
        compresslevel=compresslevel,
        verify_archives=bool(archive.get("verify", True)),
    )


def retention_policy(settings: Mapping[str, Any]) -> Optional[RetentionPolicy]:
    raw = settings.get("retention")
    if not isinstance(raw, Mapping) or not raw.get("enable"):
        return None
    try:
        return RetentionPolicy(
            keep_last=int(raw.get("keep_last", 10) or 0),
            keep_daily=int(raw.get("keep_daily", 14) or 0),
            keep_weekly=int(raw.get("keep_weekly", 8) or 0),
            max_total_gb=float(raw.get("max_total_gb", 0) or 0),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"invalid retention settings: {exc}") from exc


@dataclass(slots=True)
class RunOutcome:
    report: BatchReport
    run_dir: Path
    report_path: Path
    summary_path: Path
    log_path: Path
    retention: Optional[RetentionSummary] = None
    warnings: int = 0


class BackupService:
    """Coordinate one run: fatal checks, the batch, the report and retention."""

    def __init__(
        self,
        config: BackupConfig,
        *,
        retention: Optional[RetentionPolicy] = None,
        resolve_log_action: Optional[ResolveLogAction] = None,
    ) -> None:
        self._config = config
        self._retention = retention
        self._resolve = resolve_log_action

    @property
    def config(self) -> BackupConfig:
        return self._config

    def _prepare_run_dir(self) -> Path:
        root = self._config.destination_root
        try:
            root.mkdir(parents=True, exist_ok=True)
            return create_run_dir(root)
        except OSError as exc:
            raise DestinationError(f"cannot create destination {root}: {exc}") from exc

    def run(self, manifest_path: Path, *, on_result: Optional[ResultCallback] = None) -> RunOutcome:
        tasks = load_manifest(manifest_path)
        run_dir = self._prepare_run_dir()
        logger = BackupLogger(run_dir / RUN_LOG_FILENAME)
        logger.info("manifest_loaded", path=str(manifest_path), tasks=len(tasks))

        orchestrator = BackupOrchestrator(self._config, logger=logger, resolve_log_action=self._resolve)
        report = orchestrator.run_batch(tasks, run_dir, on_result=on_result)

        report_path = write_report_csv(report, run_dir / REPORT_FILENAME)
        summary_path = write_summary_json(report, run_dir / SUMMARY_FILENAME)

        retention_summary = None
        if self._retention is not None:
            retention_summary = apply_retention(
                self._config.destination_root, self._retention, logger=logger, protect=run_dir
            )
        return RunOutcome(
            report=report,
            run_dir=run_dir,
            report_path=report_path,
            summary_path=summary_path,
            log_path=logger.path,
            retention=retention_summary,
            warnings=logger.count("warning"),
        )


__all__ = ["BackupService", "RunOutcome", "build_config", "retention_policy"]
