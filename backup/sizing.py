"""Directory size measurement and size labels."""
from __future__ import annotations

import os
from pathlib import Path
from typing import List, Tuple

_MIB = 1024 ** 2
_GIB = 1024 ** 3

UNKNOWN_SIZE = "Unknown size"


def measure_size(path: Path) -> Tuple[int, bool]:
    """Return ``(bytes, ok)`` for everything below *path*.

    Unreadable entries below the root are skipped. ``ok`` is ``False`` only
    when the root itself cannot be read. Symbolic links are counted by their
    own entry and never followed, so link cycles cannot recurse.
    """

    root = Path(path)
    try:
        if root.is_file():
            return root.stat().st_size, True
        with os.scandir(root) as entries:
            pending: List[os.DirEntry[str]] = list(entries)
    except OSError:
        return 0, False

    total = 0
    while pending:
        entry = pending.pop()
        try:
            if entry.is_dir(follow_symlinks=False):
                with os.scandir(entry.path) as children:
                    pending.extend(children)
            elif entry.is_file(follow_symlinks=False):
                total += entry.stat(follow_symlinks=False).st_size
        except OSError:
            continue
    return total, True


def format_size(value: int) -> str:
    """Render GB at or above 1 GiB, MB below, both with two decimals."""

    value = max(0, int(value))
    if value >= _GIB:
        return f"{value / _GIB:.2f} GB"
    return f"{value / _MIB:.2f} MB"


def size_label(value: int, ok: bool = True) -> str:
    return format_size(value) if ok else UNKNOWN_SIZE


__all__ = ["UNKNOWN_SIZE", "format_size", "measure_size", "size_label"]
