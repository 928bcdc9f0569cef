from __future__ import annotations

"""
Unit tests for the File Readiness Checker.

A fake clock and a fake stop event make the backoff schedule observable
without sleeping.
"""

import builtins
import os
import stat
import sys
import threading
from pathlib import Path
from typing import List
from unittest.mock import MagicMock, patch

import pytest

from scribewatch.core.pipeline.readiness import ReadinessChecker, can_open_exclusively
from scribewatch.domain.work_models import ReadinessResult


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def make_stop_event(clock: FakeClock, waits: List[float], on_wait=None) -> MagicMock:
    """Stop event whose wait() advances the fake clock instead of sleeping."""
    event = MagicMock()

    def _wait(timeout=None):
        waits.append(timeout)
        clock.now += timeout
        if on_wait:
            on_wait(len(waits))
        return False

    event.wait.side_effect = _wait
    return event


@pytest.fixture
def audio(tmp_path: Path) -> Path:
    p = tmp_path / "call.wav"
    p.write_bytes(b"RIFF" + b"\x00" * 64)
    return p


# -----------------------------------------------------------------------------
# Single Probe
# -----------------------------------------------------------------------------

def test_first_probe_only_records_size(audio: Path) -> None:
    checker = ReadinessChecker(lock_probe=lambda p: True)
    assert checker.is_ready(str(audio)) is False
    assert checker.is_ready(str(audio)) is True


def test_empty_file_is_never_ready(tmp_path: Path) -> None:
    empty = tmp_path / "empty.mp3"
    empty.touch()
    checker = ReadinessChecker(lock_probe=lambda p: True)
    checker.is_ready(str(empty))
    assert checker.is_ready(str(empty)) is False


def test_locked_file_is_not_ready(audio: Path) -> None:
    checker = ReadinessChecker(lock_probe=lambda p: False)
    checker.is_ready(str(audio))
    assert checker.is_ready(str(audio)) is False


def test_missing_file_probe_is_false(tmp_path: Path) -> None:
    checker = ReadinessChecker(lock_probe=lambda p: True)
    assert checker.is_ready(str(tmp_path / "nope.mp3")) is False


# -----------------------------------------------------------------------------
# Wait Policy
# -----------------------------------------------------------------------------

def test_stable_unlocked_file_is_ready_after_initial_delay(audio: Path) -> None:
    clock = FakeClock()
    waits: List[float] = []
    checker = ReadinessChecker(lock_probe=lambda p: True, clock=clock)

    result = checker.wait_until_ready(str(audio), make_stop_event(clock, waits))

    assert result is ReadinessResult.READY
    assert waits == [15]


def test_backoff_schedule_until_timeout(audio: Path) -> None:
    clock = FakeClock()
    waits: List[float] = []
    checker = ReadinessChecker(lock_probe=lambda p: False, clock=clock)

    result = checker.wait_until_ready(str(audio), make_stop_event(clock, waits))

    assert result is ReadinessResult.TIMED_OUT
    assert waits[:6] == [15, 2, 4, 8, 16, 30]
    assert sum(waits) == pytest.approx(300)
    assert max(waits) == 30


def test_growing_file_waits_for_stable_size(audio: Path) -> None:
    clock = FakeClock()
    waits: List[float] = []

    def _append(n: int) -> None:
        if n <= 2:
            with open(audio, "ab") as f:
                f.write(b"\x01" * 32)

    checker = ReadinessChecker(lock_probe=lambda p: True, clock=clock)
    result = checker.wait_until_ready(str(audio), make_stop_event(clock, waits, _append))

    assert result is ReadinessResult.READY
    assert waits == [15, 2, 4]


def test_file_removed_during_wait_is_missing(audio: Path) -> None:
    clock = FakeClock()
    waits: List[float] = []
    checker = ReadinessChecker(lock_probe=lambda p: True, clock=clock)

    result = checker.wait_until_ready(
        str(audio), make_stop_event(clock, waits, lambda n: audio.unlink())
    )
    assert result is ReadinessResult.MISSING


def test_shutdown_cancels_wait(audio: Path) -> None:
    stop = threading.Event()
    stop.set()
    checker = ReadinessChecker(initial_delay=5.0, lock_probe=lambda p: True)
    assert checker.wait_until_ready(str(audio), stop) is ReadinessResult.CANCELLED


# -----------------------------------------------------------------------------
# Lock Probe
# -----------------------------------------------------------------------------

@pytest.mark.skipif(sys.platform.startswith("win"), reason="flock is POSIX only")
def test_can_open_exclusively_detects_flock(audio: Path) -> None:
    import fcntl

    assert can_open_exclusively(str(audio)) is True
    with open(audio, "rb") as holder:
        fcntl.flock(holder.fileno(), fcntl.LOCK_EX)
        try:
            assert can_open_exclusively(str(audio)) is False
        finally:
            fcntl.flock(holder.fileno(), fcntl.LOCK_UN)
    assert can_open_exclusively(str(audio)) is True


def test_can_open_exclusively_missing_file(tmp_path: Path) -> None:
    assert can_open_exclusively(str(tmp_path / "missing.ogg")) is False


@pytest.mark.skipif(sys.platform.startswith("win"), reason="flock is POSIX only")
def test_read_only_file_can_be_locked(audio: Path) -> None:
    """Files the service may read but not write still pass the exclusive lock check."""
    real_open = builtins.open

    def _read_only_open(file, mode="r", *args, **kwargs):
        if any(flag in mode for flag in "wa+x"):
            raise PermissionError(13, "Permission denied", str(file))
        return real_open(file, mode, *args, **kwargs)

    os.chmod(audio, stat.S_IRUSR | stat.S_IRGRP | stat.S_IROTH)
    try:
        with patch("scribewatch.core.pipeline.readiness.open", side_effect=_read_only_open, create=True):
            assert can_open_exclusively(str(audio)) is True
    finally:
        os.chmod(audio, stat.S_IRUSR | stat.S_IWUSR)


@pytest.mark.skipif(sys.platform.startswith("win"), reason="flock is POSIX only")
def test_read_only_file_becomes_ready(audio: Path) -> None:
    os.chmod(audio, stat.S_IRUSR | stat.S_IRGRP | stat.S_IROTH)
    try:
        stop = threading.Event()
        checker = ReadinessChecker(initial_delay=0.0, max_wait=1.0)
        assert checker.wait_until_ready(str(audio), stop) is ReadinessResult.READY
    finally:
        os.chmod(audio, stat.S_IRUSR | stat.S_IWUSR)
