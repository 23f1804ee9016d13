from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Dict

from .paths import get_default_settings_paths, get_logs_dir
from .settings_schema import SETTINGS_VALIDATOR

__all__ = [
    "DEFAULT_SETTINGS",
    "SETTINGS_VERSION",
    "load_settings",
    "merge_defaults",
    "save_settings",
    "update_settings",
]

LOGGER = logging.getLogger("folderbackup.settings")

SETTINGS_VERSION = 1


DEFAULT_SETTINGS: Dict[str, Any] = {
    "version": SETTINGS_VERSION,
    "destination_root": None,
    "manifest_path": None,
    "log_extensions": ["*.log", "*.txt"],
    "default_log_action": "include",
    "prompt_for_log_action": False,
    "scratch_root": None,
    "archive": {
        "compresslevel": 9,
        "verify": True,
    },
    "retention": {
        "enable": False,
        "keep_last": 10,
        "keep_daily": 14,
        "keep_weekly": 8,
        "max_total_gb": 0,
    },
}


def merge_defaults(data: Dict[str, Any]) -> Dict[str, Any]:
    def _merge(default: Dict[str, Any], payload: Dict[str, Any]) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        for key, value in default.items():
            if isinstance(value, dict):
                current = payload.get(key)
                result[key] = _merge(value, current if isinstance(current, dict) else {})
            elif isinstance(value, list):
                current = payload.get(key)
                result[key] = list(current) if isinstance(current, list) else list(value)
            else:
                result[key] = payload.get(key, value)
        for key, value in payload.items():
            if key not in result:
                result[key] = value
        return result

    return _merge(DEFAULT_SETTINGS, data or {})


def _apply_migrations(settings: Dict[str, Any]) -> Dict[str, Any]:
    try:
        version_int = int(settings.get("version"))
    except (TypeError, ValueError):
        version_int = 0
    if version_int < SETTINGS_VERSION:
        settings["version"] = SETTINGS_VERSION
    return settings


def _log_unknown_keys(settings: Dict[str, Any], working_dir: Path) -> None:
    unknown = list(SETTINGS_VALIDATOR.unknown_keys(settings))
    if not unknown:
        return
    LOGGER.warning("unknown settings keys: %s", ", ".join(unknown))
    target = get_logs_dir(working_dir) / "settings_unknown.json"
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "w", encoding="utf-8") as handle:
            json.dump({"ts": time.time(), "unknown": unknown}, handle, ensure_ascii=False, indent=2)
    except OSError:
        return


def load_settings(working_dir: Path) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    for candidate in get_default_settings_paths(working_dir):
        try:
            with open(candidate, "r", encoding="utf-8") as handle:
                loaded = json.load(handle)
        except FileNotFoundError:
            continue
        except (json.JSONDecodeError, OSError) as exc:
            LOGGER.warning("ignoring unreadable settings %s: %s", candidate, exc)
            continue
        if isinstance(loaded, dict):
            data = loaded
            break
    merged = _apply_migrations(merge_defaults(data))
    merged.setdefault("working_dir", str(working_dir))
    _log_unknown_keys(merged, working_dir)
    return merged


def save_settings(settings: Dict[str, Any], working_dir: Path) -> Path:
    merged = _apply_migrations(merge_defaults(dict(settings)))
    merged.setdefault("working_dir", str(working_dir))
    path = working_dir / "settings.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as handle:
        json.dump(merged, handle, ensure_ascii=False, indent=2)
    return path


def update_settings(working_dir: Path, **values: Any) -> Dict[str, Any]:
    current = load_settings(working_dir)
    current.update(values)
    save_settings(current, working_dir)
    return current
