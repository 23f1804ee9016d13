"""Compress a staged tree into a single zip archive."""
from __future__ import annotations

import contextlib
import os
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from core.paths import safe_label

from .errors import ArchiveError

ARCHIVE_SUFFIX = ".zip"
_MAX_COMPRESSLEVEL = 9


@dataclass(slots=True)
class ArchiveOutcome:
    path: Path
    ok: bool
    size_bytes: int = 0
    file_count: int = 0
    error: Optional[str] = None


def archive_path_for(destination_dir: Path, archive_name: str) -> Path:
    return Path(destination_dir) / f"{safe_label(archive_name)}{ARCHIVE_SUFFIX}"


def _staged_files(root: Path) -> List[Path]:
    if not root.is_dir():
        return []
    return sorted(item for item in root.rglob("*") if item.is_file())


def _bundle_directory(root: Path, bundle_path: Path, *, compresslevel: int) -> int:
    count = 0
    with zipfile.ZipFile(
        bundle_path,
        "w",
        compression=zipfile.ZIP_DEFLATED,
        compresslevel=compresslevel,
        strict_timestamps=False,
    ) as archive:
        for item in sorted(root.rglob("*")):
            relative = item.relative_to(root).as_posix()
            if item.is_dir():
                if not any(item.iterdir()):
                    archive.writestr(relative + "/", b"")
                continue
            archive.write(item, relative)
            count += 1
    return count


def verify_archive(path: Path, *, expected_files: Optional[int] = None) -> int:
    """CRC-check every member of *path* and return its file count."""

    try:
        with zipfile.ZipFile(path, "r") as archive:
            broken = archive.testzip()
            if broken is not None:
                raise ArchiveError(f"corrupt member {broken} in {path.name}")
            count = sum(1 for info in archive.infolist() if not info.is_dir())
    except (OSError, zipfile.BadZipFile) as exc:
        raise ArchiveError(f"cannot read {path.name}: {exc}") from exc
    if expected_files is not None and count != expected_files:
        raise ArchiveError(f"{path.name} holds {count} files, expected {expected_files}")
    return count


def list_archive(path: Path) -> List[str]:
    with zipfile.ZipFile(path, "r") as archive:
        return [info.filename for info in archive.infolist() if not info.is_dir()]


def build_archive(
    staged_dir: Path,
    destination_dir: Path,
    archive_name: str,
    *,
    compresslevel: int = _MAX_COMPRESSLEVEL,
    verify: bool = False,
) -> ArchiveOutcome:
    """Write ``destination_dir/<archive_name>.zip`` from *staged_dir*.

    An existing archive of the same name is replaced. Failures are returned
    with ``ok=False`` instead of raised.
    """

    target = archive_path_for(destination_dir, archive_name)
    staged_dir = Path(staged_dir)
    files = _staged_files(staged_dir)
    if not files:
        return ArchiveOutcome(path=target, ok=False, error=f"nothing to archive in {staged_dir}")

    partial = target.with_name(target.name + ".partial")
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        count = _bundle_directory(staged_dir, partial, compresslevel=compresslevel)
        if verify:
            verify_archive(partial, expected_files=count)
        os.replace(partial, target)
        size = target.stat().st_size
    except (OSError, zipfile.BadZipFile, ArchiveError) as exc:
        with contextlib.suppress(OSError):
            partial.unlink(missing_ok=True)
        return ArchiveOutcome(path=target, ok=False, error=str(exc))
    return ArchiveOutcome(path=target, ok=True, size_bytes=size, file_count=count)


__all__ = ["ARCHIVE_SUFFIX", "ArchiveOutcome", "archive_path_for", "build_archive", "list_archive", "verify_archive"]
