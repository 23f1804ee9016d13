from datetime import datetime, timedelta

from backup.retention import RetentionPolicy, apply_retention
from core.paths import RUN_DIR_FORMAT


class StubLogger:
    def __init__(self) -> None:
        self.events = []

    def warning(self, event: str, **extra):  # pragma: no cover - simple recorder
        self.events.append(("warning", event, extra))

    def event(self, *, event: str, ok: bool, **extra):  # pragma: no cover - simple recorder
        self.events.append(("event", event, ok, extra))


def _make_runs(root, now, sizes):
    names = []
    for index, size in enumerate(sizes):
        name = (now - timedelta(days=index)).strftime(RUN_DIR_FORMAT)
        run_dir = root / name
        run_dir.mkdir(parents=True)
        (run_dir / "app.zip").write_bytes(b"x" * size)
        names.append(name)
    return names


def test_apply_retention_removes_old_runs(tmp_path):
    root = tmp_path / "dest"
    now = datetime(2024, 6, 10, 12, 0, 0)
    sizes = [10, 20, 30, 40]
    names = _make_runs(root, now, sizes)
    (root / "not-a-run").mkdir()
    logger = StubLogger()

    policy = RetentionPolicy(keep_last=2, keep_daily=0, keep_weekly=0, max_total_gb=0)
    summary = apply_retention(root, policy, logger=logger, now=now)

    assert set(summary.removed) == set(names[2:])
    assert set(summary.kept) == set(names[:2])
    assert summary.freed_bytes == sum(sizes[2:])
    for name in summary.removed:
        assert not (root / name).exists()
    assert (root / "not-a-run").exists()
    assert [e[1] for e in logger.events if e[0] == "warning"] == ["run_removed", "run_removed"]


def test_protected_run_is_never_removed(tmp_path):
    root = tmp_path / "dest"
    now = datetime(2024, 6, 10, 12, 0, 0)
    names = _make_runs(root, now, [1, 2, 3])

    policy = RetentionPolicy(keep_last=0, keep_daily=0, keep_weekly=0)
    summary = apply_retention(root, policy, logger=StubLogger(), protect=root / names[2], now=now)

    assert summary.kept == [names[2]]
    assert (root / names[2]).exists()
