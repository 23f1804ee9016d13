"""Prune old timestamped run directories under a destination root."""
from __future__ import annotations

import re
import shutil
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List, Optional, Set

from core.paths import RUN_DIR_FORMAT

from .logs import BackupLogger
from .sizing import measure_size

_RUN_DIR_PATTERN = re.compile(r"^(\d{8}-\d{6})(?:-\d+)?$")


@dataclass(slots=True)
class RetentionPolicy:
    keep_last: int = 10
    keep_daily: int = 14
    keep_weekly: int = 8
    max_total_gb: float = 0.0


@dataclass(slots=True)
class RetentionSummary:
    removed: List[str] = field(default_factory=list)
    kept: List[str] = field(default_factory=list)
    freed_bytes: int = 0


@dataclass(slots=True)
class _RunMeta:
    name: str
    created: datetime
    size_bytes: int
    path: Path


def _load_runs(root: Path) -> List[_RunMeta]:
    items: List[_RunMeta] = []
    if not root.is_dir():
        return items
    for child in root.iterdir():
        match = _RUN_DIR_PATTERN.match(child.name)
        if not match or not child.is_dir() or child.is_symlink():
            continue
        created = datetime.strptime(match.group(1), RUN_DIR_FORMAT)
        size, _ = measure_size(child)
        items.append(_RunMeta(name=child.name, created=created, size_bytes=size, path=child))
    items.sort(key=lambda meta: (meta.created, meta.name), reverse=True)
    return items


def _select_kept(items: List[_RunMeta], policy: RetentionPolicy, now: datetime) -> Dict[str, Set[str]]:
    reasons: Dict[str, Set[str]] = {}
    for meta in items[: max(policy.keep_last, 0)]:
        reasons.setdefault(meta.name, set()).add("last")

    if policy.keep_daily > 0:
        cutoff = now - timedelta(days=policy.keep_daily)
        days: Set[str] = set()
        for meta in items:
            key = meta.created.date().isoformat()
            if meta.created < cutoff or key in days:
                continue
            days.add(key)
            reasons.setdefault(meta.name, set()).add("daily")

    if policy.keep_weekly > 0:
        cutoff = now - timedelta(weeks=policy.keep_weekly)
        weeks: Set[tuple[int, int]] = set()
        for meta in items:
            year, week, _ = meta.created.isocalendar()
            if meta.created < cutoff or (year, week) in weeks:
                continue
            weeks.add((year, week))
            reasons.setdefault(meta.name, set()).add("weekly")
    return reasons


def _enforce_size_cap(items: List[_RunMeta], reasons: Dict[str, Set[str]], policy: RetentionPolicy) -> Set[str]:
    keep = set(reasons)
    if policy.max_total_gb <= 0:
        return keep
    cap = int(policy.max_total_gb * 1024 ** 3)
    total = sum(meta.size_bytes for meta in items if meta.name in keep)
    priority = {"weekly": 3, "daily": 2, "last": 1}
    ranked = sorted(
        (meta for meta in items if meta.name in keep),
        key=lambda meta: (max(priority[r] for r in reasons[meta.name]), meta.created),
    )
    for meta in ranked:
        if total <= cap:
            break
        keep.discard(meta.name)
        total -= meta.size_bytes
    return keep


def apply_retention(
    destination_root: Path,
    policy: RetentionPolicy,
    *,
    logger: BackupLogger,
    protect: Optional[Path] = None,
    now: Optional[datetime] = None,
) -> RetentionSummary:
    """Delete run directories the policy no longer keeps.

    *protect* names the run that just finished; it is never removed.
    """

    items = _load_runs(Path(destination_root))
    keep = _enforce_size_cap(items, _select_kept(items, policy, now or datetime.now()), policy)
    protected = Path(protect).name if protect is not None else None

    summary = RetentionSummary()
    for meta in items:
        if meta.name in keep or meta.name == protected:
            summary.kept.append(meta.name)
            continue
        shutil.rmtree(meta.path, ignore_errors=True)
        summary.removed.append(meta.name)
        summary.freed_bytes += meta.size_bytes
        logger.warning("run_removed", removed_run=meta.name, reason="retention", size=meta.size_bytes)
    logger.event(event="retention_applied", ok=True, removed=len(summary.removed), kept=len(summary.kept))
    return summary


__all__ = ["RetentionPolicy", "RetentionSummary", "apply_retention"]
