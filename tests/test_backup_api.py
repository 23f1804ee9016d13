import json

import pytest

from backup.api import BackupService, build_config, retention_policy
from backup.archive import list_archive
from backup.errors import ConfigurationError, DestinationError, ManifestError
from backup.logs import read_events
from backup.types import BackupStatus, LogAction
from core.settings import merge_defaults


def _setup(tmp_path):
    source = tmp_path / "src" / "app"
    (source / "logs").mkdir(parents=True)
    (source / "main.cfg").write_text("cfg", encoding="utf-8")
    (source / "logs" / "today.log").write_text("log", encoding="utf-8")
    manifest = tmp_path / "manifest.csv"
    manifest.write_text(
        "name,app,LogAction\n"
        f"app,{source},exclude\n"
        f"missing,{tmp_path / 'src' / 'missing'},\n",
        encoding="utf-8",
    )
    return manifest


def test_build_config_from_settings(tmp_path):
    settings = merge_defaults({"destination_root": str(tmp_path / "dest")})

    config = build_config(settings, log_extensions="LOG; .trace", default_log_action="Delete")

    assert config.destination_root == (tmp_path / "dest").resolve()
    assert config.log_extensions == ("*.log", "*.trace")
    assert config.default_log_action is LogAction.DELETE
    assert config.compresslevel == 9
    assert config.verify_archives is True
    assert config.scratch_root is None


def test_build_config_rejects_bad_values(tmp_path):
    with pytest.raises(ConfigurationError):
        build_config(merge_defaults({}))
    with pytest.raises(ConfigurationError):
        build_config(merge_defaults({"destination_root": str(tmp_path), "default_log_action": "shred"}))


def test_retention_policy_disabled_by_default():
    assert retention_policy(merge_defaults({})) is None
    policy = retention_policy(merge_defaults({"retention": {"enable": True, "keep_last": 3}}))
    assert policy.keep_last == 3


def test_service_run_writes_run_directory(tmp_path):
    manifest = _setup(tmp_path)
    config = build_config(merge_defaults({"destination_root": str(tmp_path / "dest")}))

    outcome = BackupService(config).run(manifest)

    assert outcome.run_dir.parent == config.destination_root
    assert outcome.report.total == 2
    assert [r.status for r in outcome.report.results] == [BackupStatus.SUCCESS, BackupStatus.FAILED]
    assert list_archive(outcome.run_dir / "app.zip") == ["main.cfg"]
    assert outcome.report_path.read_text(encoding="utf-8").startswith("folder,source_path,size")
    assert json.loads(outcome.summary_path.read_text(encoding="utf-8"))["failed"] == 1

    events = [entry["event"] for entry in read_events(outcome.log_path)]
    assert {entry["run"] for entry in read_events(outcome.log_path)} == {outcome.run_dir.name}
    assert outcome.warnings == 0
    assert "batch_start" in events
    assert events.count("task_complete") == 2
    assert events[-1] == "batch_complete"


def test_service_missing_manifest_creates_nothing(tmp_path):
    config = build_config(merge_defaults({"destination_root": str(tmp_path / "dest")}))

    with pytest.raises(ManifestError):
        BackupService(config).run(tmp_path / "nope.csv")

    assert not (tmp_path / "dest").exists()


def test_service_uncreatable_destination(tmp_path):
    manifest = _setup(tmp_path)
    blocker = tmp_path / "blocker"
    blocker.write_text("file", encoding="utf-8")
    config = build_config(merge_defaults({"destination_root": str(blocker / "dest")}))

    with pytest.raises(DestinationError):
        BackupService(config).run(manifest)
