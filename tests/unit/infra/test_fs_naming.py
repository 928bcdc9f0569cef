from __future__ import annotations

"""
Unit tests for the filesystem helpers: path normalization, extension
matching, collision-safe naming and directory listing.
"""

import os
import time
from pathlib import Path

import pytest

from scribewatch.infra.fs import (
    has_extension,
    list_matching_files,
    normalize_path,
    safe_mkdir,
    unique_path,
)


def test_normalize_path_blank_stays_blank() -> None:
    assert normalize_path(None) == ""
    assert normalize_path("   ") == ""


def test_normalize_path_expands_user() -> None:
    result = normalize_path("~/inbox")
    assert os.path.isabs(result)
    assert "~" not in result


@pytest.mark.parametrize("name, expected", [
    ("memo.M4A", True),
    ("memo.mp3", True),
    ("memo.txt", False),
    ("memo", False),
    (".mp3", False),
])
def test_has_extension_is_case_insensitive(name, expected) -> None:
    assert has_extension(name, [".m4a", ".mp3"]) is expected


def test_unique_path_probes_suffixes(tmp_path: Path) -> None:
    assert Path(unique_path(str(tmp_path), "memo", ".txt")).name == "memo.txt"

    (tmp_path / "memo.txt").touch()
    (tmp_path / "memo_1.txt").touch()
    assert Path(unique_path(str(tmp_path), "memo", ".txt")).name == "memo_2.txt"


def test_list_matching_files_filters_and_orders_by_mtime(tmp_path: Path) -> None:
    newer = tmp_path / "b.mp3"
    older = tmp_path / "a.wav"
    for p in (newer, older):
        p.write_bytes(b"x")
    (tmp_path / "notes.txt").write_text("x")
    (tmp_path / "sub.mp3").mkdir()

    now = time.time()
    os.utime(older, (now - 100, now - 100))
    os.utime(newer, (now, now))

    result = list_matching_files(str(tmp_path), [".mp3", ".wav"])
    assert [Path(p).name for p in result] == ["a.wav", "b.mp3"]


def test_list_matching_files_missing_dir_raises(tmp_path: Path) -> None:
    with pytest.raises(OSError):
        list_matching_files(str(tmp_path / "gone"), [".mp3"])


def test_safe_mkdir_reports_errors(tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("x")

    assert safe_mkdir(str(tmp_path / "a" / "b")) == (True, None)
    ok, err = safe_mkdir(str(blocker / "child"))
    assert ok is False
    assert err
