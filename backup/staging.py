"""Copy a source tree into scratch space, skipping files held by others.

Lock detection is a snapshot. A file that passes the probe can still fail
while it is copied, and a file reported as locked may be free a moment
later. Both kinds of failure are recorded the same way: the file is
skipped and listed in ``locked_files``.
"""
from __future__ import annotations

import contextlib
import logging
import os
import shutil
import stat
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Iterable, Iterator, List, Optional, Set

from core.paths import to_long_path

from .errors import StagingError
from .types import LockedFileRecord

LOGGER = logging.getLogger("folderbackup.backup.staging")

_SCRATCH_PREFIX = "folderbackup-"
_OPEN_FLAGS = os.O_RDONLY | getattr(os, "O_BINARY", 0) | getattr(os, "O_NONBLOCK", 0)

if os.name == "nt":  # pragma: no cover - platform specific
    import msvcrt

    def _lock(handle: IO[bytes]) -> None:
        msvcrt.locking(handle.fileno(), msvcrt.LK_NBRLCK, 1)

    def _unlock(handle: IO[bytes]) -> None:
        handle.seek(0)
        msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)

else:
    import fcntl

    def _lock(handle: IO[bytes]) -> None:
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)

    def _unlock(handle: IO[bytes]) -> None:
        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


@contextlib.contextmanager
def open_exclusive(path: Path) -> Iterator[IO[bytes]]:
    """Open *path* for reading while holding a non-blocking exclusive lock.

    Makes a single attempt; neither the open nor the lock waits. Raises
    ``OSError`` when the file is held by another process, unreadable, gone
    or not a regular file.
    """

    fd = os.open(to_long_path(path), _OPEN_FLAGS)
    try:
        if not stat.S_ISREG(os.fstat(fd).st_mode):
            raise OSError(f"not a regular file: {path}")
        handle = os.fdopen(fd, "rb")
    except BaseException:
        os.close(fd)
        raise
    try:
        _lock(handle)
        try:
            yield handle
        finally:
            with contextlib.suppress(OSError):
                _unlock(handle)
    finally:
        handle.close()


@dataclass(slots=True)
class StagingArea:
    directory: Path
    locked_files: List[LockedFileRecord] = field(default_factory=list)
    skipped: List[Path] = field(default_factory=list)
    excluded: int = 0
    file_count: int = 0

    @property
    def staged(self) -> bool:
        return self.file_count > 0


def _is_regular(path: Path) -> bool:
    # follows symlinks: a link to a regular file is copied as that file
    return stat.S_ISREG(os.stat(to_long_path(path)).st_mode)


def _real(path: Path) -> str:
    return os.path.normcase(os.path.realpath(path))


def _copy_locked(source: Path, dest: Path) -> None:
    dest.parent.mkdir(parents=True, exist_ok=True)
    with open_exclusive(source) as src, open(to_long_path(dest), "wb") as dst:
        shutil.copyfileobj(src, dst, 1024 * 1024)
    shutil.copystat(to_long_path(source), to_long_path(dest))


def populate(
    area: StagingArea,
    source: Path,
    exclude_names: Iterable[str],
    exclude_dirs: Iterable[Path] = (),
) -> StagingArea:
    """Mirror *source* into ``area.directory``, updating counters in place.

    The scratch directory itself and every directory in *exclude_dirs* are
    never descended into, so a scratch or destination root that lives inside
    the source is left out of its own copy. Entries that are not regular
    files (pipes, sockets, devices) land in ``area.skipped``.
    """

    excluded = set(exclude_names or ())
    pruned: Set[str] = {_real(area.directory)} | {_real(Path(item)) for item in exclude_dirs}
    source = Path(source)

    def _walk_error(exc: OSError) -> None:
        LOGGER.warning("cannot list %s: %s", getattr(exc, "filename", source), exc)

    for current, dirnames, filenames in os.walk(source, onerror=_walk_error, followlinks=False):
        dirnames[:] = sorted(name for name in dirnames if _real(Path(current) / name) not in pruned)
        relative = Path(current).relative_to(source)
        target_dir = area.directory / relative
        target_dir.mkdir(parents=True, exist_ok=True)
        for name in sorted(filenames):
            if name in excluded:
                area.excluded += 1
                continue
            file_path = Path(current) / name
            try:
                if not _is_regular(file_path):
                    LOGGER.debug("skip special file %s", file_path)
                    area.skipped.append(file_path)
                    continue
                _copy_locked(file_path, target_dir / name)
            except OSError as exc:
                LOGGER.debug("skip %s: %s", file_path, exc)
                with contextlib.suppress(OSError):
                    (target_dir / name).unlink(missing_ok=True)
                area.locked_files.append(LockedFileRecord(path=file_path))
                continue
            area.file_count += 1
    return area


@contextlib.contextmanager
def stage_for_archive(
    source: Path,
    exclude_names: Iterable[str] = (),
    *,
    scratch_root: Optional[Path] = None,
    exclude_dirs: Iterable[Path] = (),
) -> Iterator[StagingArea]:
    """Yield a populated :class:`StagingArea`; the scratch tree is removed on exit.

    Files whose base name is in *exclude_names* are skipped wherever they
    sit in the tree.
    """

    try:
        if scratch_root is not None:
            Path(scratch_root).mkdir(parents=True, exist_ok=True)
        directory = Path(tempfile.mkdtemp(prefix=_SCRATCH_PREFIX, dir=scratch_root))
    except OSError as exc:
        raise StagingError(f"cannot create scratch directory: {exc}") from exc
    try:
        area = StagingArea(directory=directory)
        yield populate(area, source, exclude_names, exclude_dirs)
    finally:
        shutil.rmtree(directory, ignore_errors=True)


__all__ = ["StagingArea", "open_exclusive", "populate", "stage_for_archive"]
