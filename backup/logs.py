"""Run log: one JSON line per backup event, written as the run progresses.

Each line names the run it belongs to and carries a sequence number, so a
log copied out of its run directory still sorts and attributes correctly.
An interrupted run leaves every completed line intact; :func:`read_events`
drops a torn last line instead of failing.
"""
from __future__ import annotations

import json
import logging
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional

LOGGER = logging.getLogger("folderbackup.backup")

_LEVEL_NAMES = {logging.INFO: "info", logging.WARNING: "warning", logging.ERROR: "error"}


class BackupLogger:
    def __init__(self, log_path: Path, *, run: Optional[str] = None) -> None:
        self._path = Path(log_path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._run = run or self._path.parent.name
        self._seq = 0
        self._counts: Counter = Counter()
        self._lock = Lock()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def run(self) -> str:
        return self._run

    def count(self, level: str) -> int:
        """Lines written so far at *level* (``info``, ``warning`` or ``error``)."""

        return self._counts[level]

    def _append(self, name: str, ok: bool, level: int, fields: Dict[str, Any]) -> None:
        level_name = _LEVEL_NAMES[level]
        with self._lock:
            self._seq += 1
            record = dict(fields)
            record.update(
                event=name,
                ok=bool(ok),
                level=level_name,
                run=self._run,
                seq=self._seq,
                ts=datetime.now(timezone.utc).isoformat(),
            )
            line = json.dumps(record, sort_keys=True, default=str)
            with self._path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
            self._counts[level_name] += 1
        LOGGER.log(level, "%s %s", name, line)

    def event(self, *, event: str, ok: bool, **extra: Any) -> None:
        self._append(event, ok, logging.INFO if ok else logging.ERROR, extra)

    def info(self, event: str, **extra: Any) -> None:
        self._append(event, True, logging.INFO, extra)

    def warning(self, event: str, **extra: Any) -> None:
        self._append(event, False, logging.WARNING, extra)

    def error(self, event: str, **extra: Any) -> None:
        self._append(event, False, logging.ERROR, extra)


def read_events(log_path: Path) -> List[Dict[str, Any]]:
    events: List[Dict[str, Any]] = []
    with Path(log_path).open("r", encoding="utf-8") as handle:
        for number, raw in enumerate(handle, start=1):
            raw = raw.strip()
            if not raw:
                continue
            try:
                events.append(json.loads(raw))
            except json.JSONDecodeError:
                LOGGER.warning("unreadable run log line %d in %s", number, log_path)
    return events


__all__ = ["BackupLogger", "read_events"]
