from __future__ import annotations

"""
Global Pytest Configuration and Fixtures.

This module sets up the testing environment, including:
1. Path manipulation to ensure the 'src' directory is importable.
2. Isolation of the user data directory from the real home folder.
3. Shared fixtures for directory roles, service configuration and a fake
   transcription subprocess.
"""

import os
import sys
import time
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from unittest.mock import patch

import pytest

# -----------------------------------------------------------------------------
# Path Configuration
# -----------------------------------------------------------------------------
_SRC_PATH = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src"))
if _SRC_PATH not in sys.path:
    sys.path.insert(0, _SRC_PATH)

from scribewatch.domain.config import ServiceConfig  # noqa: E402


# -----------------------------------------------------------------------------
# Fakes
# -----------------------------------------------------------------------------
class FakeProcess:
    """
    Stand-in for subprocess.Popen returning scripted output.

    Records the argument vector so tests can inspect the command line.
    """

    def __init__(self, cmd: List[str], stdout: str = "", stderr: str = "", returncode: int = 0) -> None:
        self.args = cmd
        self.pid = 4242
        self.returncode: Optional[int] = None
        self._result = (stdout, stderr, returncode)

    def communicate(self, timeout: Optional[float] = None) -> Tuple[str, str]:
        stdout, stderr, code = self._result
        self.returncode = code
        return stdout, stderr

    def poll(self) -> Optional[int]:
        return self.returncode

    def terminate(self) -> None:
        self.returncode = -15

    def kill(self) -> None:
        self.returncode = -9

    def wait(self, timeout: Optional[float] = None) -> Optional[int]:
        return self.returncode


def scripted_popen(results: List[Tuple[str, str, int]], calls: Optional[List[List[str]]] = None):
    """
    Build a Popen replacement that plays 'results' (stdout, stderr, code) in order.

    Args:
        results: One tuple per expected invocation.
        calls: Optional list collecting every argument vector.
    """
    remaining = list(results)

    def _factory(cmd, **kwargs):
        if calls is not None:
            calls.append(list(cmd))
        stdout, stderr, code = remaining.pop(0)
        return FakeProcess(cmd, stdout=stdout, stderr=stderr, returncode=code)

    return _factory


# -----------------------------------------------------------------------------
# Shared Fixtures
# -----------------------------------------------------------------------------
@pytest.fixture(autouse=True)
def isolated_user_data_dir(tmp_path: Path):
    """Keep default configuration paths inside the test's temporary directory."""
    data_dir = tmp_path / "user_data"
    data_dir.mkdir()
    with patch("scribewatch.domain.config.get_user_data_dir", return_value=str(data_dir)):
        yield data_dir


@pytest.fixture
def service_dirs(tmp_path: Path) -> Dict[str, Path]:
    """
    Create the directory roles used by the service.

    Returns:
        Dict[str, Path]: watch/output/completed/failed/logs directories.
    """
    dirs = {
        "watch": tmp_path / "watch",
        "output": tmp_path / "transcripts",
        "completed": tmp_path / "completed",
        "failed": tmp_path / "failed",
        "logs": tmp_path / "logs",
    }
    for d in dirs.values():
        d.mkdir()
    return dirs


@pytest.fixture
def service_config(service_dirs: Dict[str, Path]) -> ServiceConfig:
    """A fast-timing configuration bound to the temporary directories."""
    return ServiceConfig(
        watch_path=str(service_dirs["watch"]),
        output_path=str(service_dirs["output"]),
        completed_path=str(service_dirs["completed"]),
        failed_path=str(service_dirs["failed"]),
        log_path=str(service_dirs["logs"]),
        language="en",
        model="base",
        check_interval=1,
        timeout_seconds=30,
        max_retries=2,
        sweep_interval=5,
        health_interval=60,
        readiness_initial_delay=0.0,
        readiness_max_wait=1.0,
        duplicate_window=60.0,
        shutdown_grace=2.0,
    )


@pytest.fixture
def audio_file(service_dirs: Dict[str, Path]) -> Path:
    """A small non-empty 'memo.m4a' dropped in the watch directory."""
    path = service_dirs["watch"] / "memo.m4a"
    path.write_bytes(b"\x00\x00\x00\x18ftypM4A fake audio payload")
    return path


@pytest.fixture
def fake_process():
    """Expose the FakeProcess class to test modules."""
    return FakeProcess


@pytest.fixture
def popen_factory():
    """Expose the scripted Popen builder to test modules."""
    return scripted_popen


def _wait_until(predicate, timeout: float = 5.0, interval: float = 0.02) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return bool(predicate())


@pytest.fixture
def wait_until():
    """Poll a predicate until it holds or the timeout expires."""
    return _wait_until
