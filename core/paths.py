from __future__ import annotations

import os
import re
from datetime import datetime
from pathlib import Path
from typing import Optional

__all__ = [
    "RUN_DIR_FORMAT",
    "create_run_dir",
    "expand_path",
    "get_default_settings_paths",
    "get_logs_dir",
    "resolve_working_dir",
    "safe_label",
    "to_long_path",
]

_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_IS_WINDOWS = os.name == "nt"
_WINDOWS_MAX_PATH = 260
_LONG_PATH_PREFIX = "\\\\?\\"
_UNC_PREFIX = "\\\\"
_LONG_UNC_PREFIX = "\\\\?\\UNC\\"

RUN_DIR_FORMAT = "%Y%m%d-%H%M%S"


def _needs_long_prefix(path: str) -> bool:
    return len(path) >= (_WINDOWS_MAX_PATH - 12)


def to_long_path(path: str | os.PathLike[str]) -> str:
    """Return a version of *path* that is safe for Windows long-path APIs."""

    text = str(path)
    if not _IS_WINDOWS:
        return text
    normalized = text.replace("/", "\\")
    if normalized.startswith(_LONG_PATH_PREFIX):
        return normalized
    if not _needs_long_prefix(normalized):
        return normalized
    if normalized.startswith(_UNC_PREFIX):
        trimmed = normalized.lstrip("\\")
        return f"{_LONG_UNC_PREFIX}{trimmed}"
    return f"{_LONG_PATH_PREFIX}{os.path.abspath(normalized)}"


def expand_path(value: str | os.PathLike[str]) -> Path:
    expanded = os.path.expandvars(os.path.expanduser(str(value)))
    return Path(expanded).resolve()


def resolve_working_dir() -> Path:
    """Resolve the directory holding settings.json and application logs."""

    env_home = os.environ.get("FOLDERBACKUP_HOME")
    candidate: Optional[Path] = None
    if env_home:
        try:
            candidate = expand_path(env_home)
        except (OSError, RuntimeError):
            candidate = None
    if candidate is None:
        candidate = Path.home() / ".folderbackup"
    candidate.mkdir(parents=True, exist_ok=True)
    return candidate


_SAFE_LABEL_PATTERN = re.compile(r"[^A-Za-z0-9_.-]+")


def safe_label(label: str) -> str:
    """Return a filesystem-safe name used for archive filenames."""

    cleaned = _SAFE_LABEL_PATTERN.sub("_", str(label).strip()).strip("._")
    return cleaned or "folder"


def get_logs_dir(working_dir: Path) -> Path:
    return working_dir / "logs"


def create_run_dir(destination_root: Path, *, now: Optional[datetime] = None) -> Path:
    """Create a fresh timestamped directory under *destination_root*."""

    stamp = (now or datetime.now()).strftime(RUN_DIR_FORMAT)
    candidate = Path(destination_root) / stamp
    suffix = 1
    while True:
        try:
            candidate.mkdir(parents=True, exist_ok=False)
            return candidate
        except FileExistsError:
            suffix += 1
            candidate = Path(destination_root) / f"{stamp}-{suffix}"


def get_default_settings_paths(working_dir: Path) -> list[Path]:
    """Return the search order for settings.json files."""

    return [working_dir / "settings.json", _PROJECT_ROOT / "settings.json"]
