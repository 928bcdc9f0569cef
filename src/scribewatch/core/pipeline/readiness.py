from __future__ import annotations

"""
File Readiness Checker.

Decides when a freshly detected file has been completely written. A file is
ready when it exists, is non-empty, its size did not change since the
previous probe and it can be locked exclusively (the writer released it).
"""

import logging
import os
import threading
import time
from typing import Callable, Dict, Optional

from scribewatch.domain import constants as const
from scribewatch.domain.work_models import ReadinessResult

logger = logging.getLogger(__name__)

try:
    import fcntl
except ImportError:  # Windows
    fcntl = None  # type: ignore[assignment]

try:
    import msvcrt
except ImportError:  # POSIX
    msvcrt = None  # type: ignore[assignment]


# -----------------------------------------------------------------------------
# LOCK PROBE
# -----------------------------------------------------------------------------

def can_open_exclusively(path: str) -> bool:
    """
    Try to take and immediately release an exclusive lock on 'path'.

    POSIX takes a non-blocking flock on a read-only descriptor (honoured by
    cooperative writers), so files the service may read but not write still
    qualify. On Windows opening the file for update fails while another
    process holds it, and msvcrt.locking covers byte-range locks.

    Args:
        path: File to probe.

    Returns:
        bool: True if the lock was obtained.
    """
    try:
        with open(path, "rb" if fcntl is not None else "r+b") as fh:
            if fcntl is not None:
                fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
            elif msvcrt is not None:
                msvcrt.locking(fh.fileno(), msvcrt.LK_NBLCK, 1)
                fh.seek(0)
                msvcrt.locking(fh.fileno(), msvcrt.LK_UNLCK, 1)
        return True
    except OSError:
        return False


# -----------------------------------------------------------------------------
# READINESS CHECKER
# -----------------------------------------------------------------------------

class ReadinessChecker:
    """
    Probes files until they are safe to hand over to the transcriber.

    The wait policy is: an initial fixed delay, then probes separated by an
    exponential backoff (start, doubling, capped) until the total budget is
    spent. All sleeps go through the stop event so shutdown interrupts them.
    """

    def __init__(
            self,
            initial_delay: float = const.READINESS_INITIAL_DELAY,
            poll_start: float = const.READINESS_POLL_START,
            poll_cap: float = const.READINESS_POLL_CAP,
            max_wait: float = const.READINESS_MAX_WAIT,
            lock_probe: Optional[Callable[[str], bool]] = None,
            clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.initial_delay = initial_delay
        self.poll_start = poll_start
        self.poll_cap = poll_cap
        self.max_wait = max_wait
        self._lock_probe = lock_probe or can_open_exclusively
        self._clock = clock
        self._sizes: Dict[str, int] = {}
        self._sizes_lock = threading.Lock()

    def is_ready(self, path: str) -> bool:
        """
        Run a single readiness probe.

        The size must match the one seen by the previous probe of the same
        path, so the very first probe of a file only records its size unless
        it was primed by wait_until_ready.

        Args:
            path: File to probe.

        Returns:
            bool: True if the file can be processed now.
        """
        try:
            size = os.path.getsize(path)
        except OSError:
            return False

        with self._sizes_lock:
            previous = self._sizes.get(path)
            self._sizes[path] = size

        if size <= 0 or previous != size:
            return False
        return self._lock_probe(path)

    def wait_until_ready(self, path: str, stop_event: threading.Event) -> ReadinessResult:
        """
        Block until 'path' is ready, disappears, times out or shutdown starts.

        Args:
            path: File to wait for.
            stop_event: Service shutdown signal.

        Returns:
            ReadinessResult: Terminal state of the wait.
        """
        try:
            self._prime(path)
            started = self._clock()
            deadline = started + self.max_wait

            if stop_event.wait(self.initial_delay):
                return ReadinessResult.CANCELLED

            delay = self.poll_start
            while True:
                if not os.path.exists(path):
                    return ReadinessResult.MISSING
                if self.is_ready(path):
                    logger.debug(f"File ready after {self._clock() - started:.1f}s: {path}")
                    return ReadinessResult.READY

                remaining = deadline - self._clock()
                if remaining <= 0:
                    return ReadinessResult.TIMED_OUT
                if stop_event.wait(min(delay, remaining)):
                    return ReadinessResult.CANCELLED
                delay = min(delay * 2, self.poll_cap)
        finally:
            with self._sizes_lock:
                self._sizes.pop(path, None)

    def _prime(self, path: str) -> None:
        """Record the size seen at detection time."""
        try:
            size = os.path.getsize(path)
        except OSError:
            return
        with self._sizes_lock:
            self._sizes[path] = size
