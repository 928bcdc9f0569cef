from __future__ import annotations

"""
File Intake.

Entry point for every detected file, whether it came from a watcher event,
a periodic sweep or the startup backlog scan. Each new path gets its own
readiness wait on a daemon thread; ready files are enqueued, files that
never become ready go straight to the failed directory.
"""

import logging
import os
import threading
from typing import Dict, Iterable

from scribewatch.core.pipeline.archiver import FileArchiver
from scribewatch.core.pipeline.readiness import ReadinessChecker
from scribewatch.core.pipeline.work_queue import WorkQueue
from scribewatch.domain.work_models import ReadinessResult
from scribewatch.infra.fs import has_extension

logger = logging.getLogger(__name__)


class FileIntake:
    """Readiness gate between file detection and the work queue."""

    def __init__(
            self,
            queue: WorkQueue,
            checker: ReadinessChecker,
            archiver: FileArchiver,
            extensions: Iterable[str],
            stop_event: threading.Event,
    ) -> None:
        self.queue = queue
        self.checker = checker
        self.archiver = archiver
        self.extensions = tuple(extensions)
        self._stop_event = stop_event
        self._lock = threading.Lock()
        self._pending: Dict[str, threading.Thread] = {}
        self._accepting = True

    def submit(self, path: str) -> bool:
        """
        Start the readiness wait for a detected file.

        Args:
            path: Path reported by a detector.

        Returns:
            bool: True if a readiness wait was started for this call.
        """
        path = os.path.abspath(path)
        if not has_extension(path, self.extensions):
            return False

        with self._lock:
            if not self._accepting or self._stop_event.is_set():
                return False
            if path in self._pending or self.queue.contains(path):
                return False
            worker = threading.Thread(
                target=self._await_ready,
                args=(path,),
                name=f"Readiness-{os.path.basename(path)}",
                daemon=True,
            )
            self._pending[path] = worker

        logger.info(f"Detected new file: {path}")
        worker.start()
        return True

    def pending(self) -> int:
        """Number of files still inside their readiness wait."""
        with self._lock:
            return len(self._pending)

    def close(self, timeout: float = 5.0) -> None:
        """Stop accepting files and join outstanding readiness threads."""
        with self._lock:
            self._accepting = False
            workers = list(self._pending.values())
        for worker in workers:
            worker.join(timeout)

    def _await_ready(self, path: str) -> None:
        """Readiness thread body."""
        try:
            result = self.checker.wait_until_ready(path, self._stop_event)
            if result is ReadinessResult.READY:
                self.queue.enqueue(path)
            elif result is ReadinessResult.TIMED_OUT:
                logger.error(
                    f"File never became ready within {self.checker.max_wait:.0f}s "
                    f"(locked, empty or still growing): {path}"
                )
                try:
                    self.archiver.move_to_failed(path)
                except OSError as e:
                    logger.error(f"Could not move unready file to failed: {path}: {e}")
            elif result is ReadinessResult.MISSING:
                logger.warning(f"File disappeared before it became ready: {path}")
        except Exception as e:
            logger.error(f"Readiness check crashed for {path}: {e}", exc_info=True)
        finally:
            with self._lock:
                self._pending.pop(path, None)
