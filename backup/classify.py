"""Find log files inside a source folder."""
from __future__ import annotations

import os
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterable, Tuple

from .types import LogInventory


def normalize_globs(patterns: Iterable[str]) -> Tuple[str, ...]:
    """Lower-case, strip and de-duplicate glob patterns, keeping order.

    A bare extension such as ``log`` or ``.log`` becomes ``*.log``.
    """

    seen: list[str] = []
    for raw in patterns or ():
        text = str(raw).strip().lower()
        if not text:
            continue
        if not any(ch in text for ch in "*?["):
            text = "*" + (text if text.startswith(".") else f".{text}")
        if text not in seen:
            seen.append(text)
    return tuple(seen)


def matches_any(name: str, patterns: Tuple[str, ...]) -> bool:
    lowered = name.lower()
    return any(fnmatchcase(lowered, pattern) for pattern in patterns)


def _raise(exc: OSError) -> None:
    raise exc


def classify_logs(path: Path, extension_globs: Iterable[str]) -> LogInventory:
    """Return every file under *path* whose name matches one of the globs.

    Matching ignores case. Directory links are not descended into. Any
    enumeration error yields an empty inventory carrying the error text.
    """

    patterns = normalize_globs(extension_globs)
    if not patterns:
        return LogInventory()
    files: list[Path] = []
    total = 0
    try:
        for current, dirnames, filenames in os.walk(path, onerror=_raise, followlinks=False):
            dirnames.sort()
            for name in sorted(filenames):
                if not matches_any(name, patterns):
                    continue
                candidate = Path(current) / name
                if candidate.is_symlink():
                    continue
                total += candidate.stat().st_size
                files.append(candidate)
    except OSError as exc:
        return LogInventory(error=f"{type(exc).__name__}: {exc}")
    return LogInventory(count=len(files), total_size_bytes=total, files=files)


__all__ = ["classify_logs", "matches_any", "normalize_globs"]
