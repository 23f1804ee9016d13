"""Read the CSV manifest naming the folders to back up."""
from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Dict, List, Optional

from core.paths import expand_path

from .errors import ManifestError
from .types import BackupTask, LogAction

LOGGER = logging.getLogger("folderbackup.backup.manifest")

NAME_COLUMN = "name"
SOURCE_COLUMN = "app"
ACTION_COLUMN = "logaction"


def _header_map(fieldnames: Optional[List[str]]) -> Dict[str, str]:
    return {str(name).strip().lower(): name for name in fieldnames or [] if name is not None}


def load_manifest(path: Path) -> List[BackupTask]:
    """Return one :class:`BackupTask` per manifest row, in file order.

    Rows without a source path are skipped. A blank label falls back to the
    source folder's name. Unknown log actions are left unset so the default
    applies.
    """

    path = Path(path)
    if not path.is_file():
        raise ManifestError(f"manifest not found: {path}")
    try:
        with path.open("r", encoding="utf-8-sig", newline="") as handle:
            reader = csv.DictReader(handle)
            headers = _header_map(reader.fieldnames)
            missing = [col for col in (NAME_COLUMN, SOURCE_COLUMN) if col not in headers]
            if missing:
                raise ManifestError(f"manifest {path.name} lacks column(s): {', '.join(missing)}")
            rows = list(reader)
    except (OSError, UnicodeDecodeError, csv.Error) as exc:
        raise ManifestError(f"cannot read manifest {path}: {exc}") from exc

    tasks: List[BackupTask] = []
    for line_no, row in enumerate(rows, start=2):
        source_text = (row.get(headers[SOURCE_COLUMN]) or "").strip()
        label = (row.get(headers[NAME_COLUMN]) or "").strip()
        if not source_text:
            if label:
                LOGGER.warning("manifest line %s (%s) has no source path; skipped", line_no, label)
            continue
        source = expand_path(source_text)
        action: Optional[LogAction] = None
        if ACTION_COLUMN in headers:
            raw_action = (row.get(headers[ACTION_COLUMN]) or "").strip()
            action = LogAction.parse(raw_action)
            if raw_action and action is None:
                LOGGER.warning("manifest line %s: unknown log action %r", line_no, raw_action)
        tasks.append(BackupTask(folder_label=label or source.name, source_path=source, log_action=action))
    return tasks


__all__ = ["load_manifest"]
