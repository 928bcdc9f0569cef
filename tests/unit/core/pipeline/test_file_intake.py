from __future__ import annotations

"""
Unit tests for the File Intake readiness gate.
"""

import threading
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from scribewatch.core.pipeline.archiver import FileArchiver
from scribewatch.core.pipeline.intake import FileIntake
from scribewatch.core.pipeline.work_queue import WorkQueue
from scribewatch.domain.constants import DEFAULT_AUDIO_EXTENSIONS
from scribewatch.domain.work_models import ReadinessResult


@pytest.fixture
def archiver(service_dirs) -> FileArchiver:
    return FileArchiver(
        str(service_dirs["output"]), str(service_dirs["completed"]), str(service_dirs["failed"])
    )


def _intake(archiver, result=ReadinessResult.READY, checker=None):
    if checker is None:
        checker = MagicMock()
        checker.max_wait = 300
        checker.wait_until_ready.return_value = result
    queue = WorkQueue()
    intake = FileIntake(queue, checker, archiver, DEFAULT_AUDIO_EXTENSIONS, threading.Event())
    return intake, queue, checker


def test_ready_file_is_enqueued(archiver, audio_file: Path) -> None:
    intake, queue, _ = _intake(archiver)

    assert intake.submit(str(audio_file)) is True
    intake.close(timeout=2.0)

    assert queue.snapshot() == [str(audio_file)]
    assert intake.pending() == 0


def test_unsupported_extension_is_ignored(archiver, service_dirs) -> None:
    intake, queue, checker = _intake(archiver)
    doc = service_dirs["watch"] / "readme.txt"
    doc.write_text("x")

    assert intake.submit(str(doc)) is False
    checker.wait_until_ready.assert_not_called()


def test_timed_out_file_moves_to_failed(archiver, audio_file: Path, service_dirs) -> None:
    intake, queue, _ = _intake(archiver, ReadinessResult.TIMED_OUT)

    intake.submit(str(audio_file))
    intake.close(timeout=2.0)

    assert len(queue) == 0
    assert (service_dirs["failed"] / "memo.m4a").exists()
    assert not audio_file.exists()


def test_missing_file_is_dropped(archiver, audio_file: Path) -> None:
    intake, queue, _ = _intake(archiver, ReadinessResult.MISSING)

    intake.submit(str(audio_file))
    intake.close(timeout=2.0)

    assert len(queue) == 0
    assert audio_file.exists()


def test_pending_file_is_not_submitted_twice(archiver, audio_file: Path) -> None:
    gate = threading.Event()
    checker = MagicMock()
    checker.max_wait = 300

    def _wait(path, stop_event):
        gate.wait(5)
        return ReadinessResult.READY

    checker.wait_until_ready.side_effect = _wait
    intake, queue, _ = _intake(archiver, checker=checker)

    assert intake.submit(str(audio_file)) is True
    assert intake.submit(str(audio_file)) is False
    assert intake.pending() == 1

    gate.set()
    intake.close(timeout=2.0)
    assert checker.wait_until_ready.call_count == 1
    assert len(queue) == 1


def test_queued_file_is_not_resubmitted(archiver, audio_file: Path) -> None:
    intake, queue, checker = _intake(archiver)
    queue.enqueue(str(audio_file))

    assert intake.submit(str(audio_file)) is False
    checker.wait_until_ready.assert_not_called()


def test_closed_intake_rejects_files(archiver, audio_file: Path) -> None:
    intake, _, checker = _intake(archiver)
    intake.close()

    assert intake.submit(str(audio_file)) is False
    checker.wait_until_ready.assert_not_called()
