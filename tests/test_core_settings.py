"""Tests for core.settings helpers."""

from __future__ import annotations

import json
from pathlib import Path

from core.settings import SETTINGS_VERSION, load_settings, merge_defaults, save_settings, update_settings


def test_merge_defaults_fills_nested_blocks() -> None:
    merged = merge_defaults({"archive": {"compresslevel": 5}})

    assert merged["log_extensions"] == ["*.log", "*.txt"]
    assert merged["default_log_action"] == "include"
    assert merged["archive"] == {"compresslevel": 5, "verify": True}
    assert merged["retention"]["enable"] is False
    assert merged["version"] == SETTINGS_VERSION


def test_load_settings_skips_corrupt_file(tmp_path: Path) -> None:
    (tmp_path / "settings.json").write_text("{not json", encoding="utf-8")

    loaded = load_settings(tmp_path)

    assert loaded["destination_root"] is None
    assert loaded["working_dir"] == str(tmp_path)


def test_update_settings_round_trips_preferences(tmp_path: Path) -> None:
    update_settings(tmp_path, destination_root="/backups", default_log_action="exclude")

    stored = json.loads((tmp_path / "settings.json").read_text(encoding="utf-8"))
    assert stored["destination_root"] == "/backups"
    assert stored["default_log_action"] == "exclude"
    assert stored["archive"]["verify"] is True
    assert load_settings(tmp_path)["default_log_action"] == "exclude"


def test_unknown_keys_are_recorded(tmp_path: Path) -> None:
    save_settings({"colour": "blue", "archive": {"format": "7z"}}, tmp_path)

    load_settings(tmp_path)

    report = json.loads((tmp_path / "logs" / "settings_unknown.json").read_text(encoding="utf-8"))
    assert report["unknown"] == ["archive.format", "colour"]
