import os

import pytest

from backup.classify import classify_logs, normalize_globs
from backup.sizing import UNKNOWN_SIZE, format_size, measure_size, size_label


def test_measure_size_sums_nested_files(tmp_path):
    (tmp_path / "a").mkdir()
    (tmp_path / "a" / "one.bin").write_bytes(b"x" * 100)
    (tmp_path / "two.bin").write_bytes(b"y" * 23)

    assert measure_size(tmp_path) == (123, True)


def test_measure_size_unreadable_root(tmp_path):
    assert measure_size(tmp_path / "missing") == (0, False)


@pytest.mark.parametrize(
    "value, expected",
    [
        (0, "0.00 MB"),
        (5 * 1024 ** 2, "5.00 MB"),
        (1024 ** 3 - 1024 ** 2, "1023.00 MB"),
        (1024 ** 3, "1.00 GB"),
        (int(2.5 * 1024 ** 3), "2.50 GB"),
    ],
)
def test_format_size_threshold(value, expected):
    assert format_size(value) == expected


def test_size_label_unknown():
    assert size_label(42, ok=False) == UNKNOWN_SIZE


def test_normalize_globs_accepts_bare_extensions():
    assert normalize_globs(["LOG", ".txt", "*.Log", " ", "*.log"]) == ("*.log", "*.txt")


def test_classify_logs_is_case_insensitive_and_ordered(tmp_path):
    (tmp_path / "b").mkdir()
    (tmp_path / "b" / "Trace.LOG").write_bytes(b"12345")
    (tmp_path / "a.log").write_bytes(b"123")
    (tmp_path / "notes.md").write_bytes(b"ignored")

    inventory = classify_logs(tmp_path, ["*.log"])

    assert inventory.count == 2
    assert inventory.total_size_bytes == 8
    assert inventory.files == [tmp_path / "a.log", tmp_path / "b" / "Trace.LOG"]
    assert inventory.error is None


def test_classify_logs_missing_root_degrades(tmp_path):
    inventory = classify_logs(tmp_path / "missing", ["*.log"])

    assert inventory.count == 0
    assert inventory.files == []
    assert inventory.error


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
def test_symlink_cycles_do_not_recurse(tmp_path):
    (tmp_path / "inner").mkdir()
    (tmp_path / "inner" / "real.log").write_bytes(b"abc")
    try:
        os.symlink(tmp_path, tmp_path / "inner" / "loop", target_is_directory=True)
    except OSError:
        pytest.skip("cannot create symlink")

    inventory = classify_logs(tmp_path, ["*.log"])
    size, ok = measure_size(tmp_path)

    assert inventory.count == 1
    assert ok
    assert size >= 3
