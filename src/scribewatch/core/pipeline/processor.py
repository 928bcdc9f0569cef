from __future__ import annotations

"""
Queue Processor.

Sole consumer of the work queue. A single worker thread dequeues one path
at a time and runs it synchronously through the TranscriptionRunner, so at
most one transcription is ever in flight. Critical failures pause the
whole processor before the next item is taken.
"""

import logging
import threading
from typing import Dict, Optional

from scribewatch.core.pipeline.runner import TranscriptionRunner
from scribewatch.core.pipeline.work_queue import WorkQueue
from scribewatch.domain import constants as const
from scribewatch.domain.work_models import (
    FailureCategory,
    ProcessorState,
    TranscriptionOutcome,
)

logger = logging.getLogger(__name__)


class QueueProcessor:
    """
    Single-flight consumer with states IDLE -> PROCESSING -> IDLE, and STOPPED.

    Items still queued when stop() is called are abandoned in memory; their
    files stay in the watch directory and are found again on the next start.
    """

    def __init__(self, queue: WorkQueue, runner: TranscriptionRunner, poll_interval: float = 5.0) -> None:
        self.queue = queue
        self.runner = runner
        self.poll_interval = poll_interval

        self._state = ProcessorState.STOPPED
        self._state_lock = threading.Lock()
        self._flight_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lifecycle_lock = threading.RLock()
        self._stop_requested = False
        self._stats: Dict[str, int] = {"processed": 0, "succeeded": 0, "failed": 0}

    # -------------------------------------------------------------------------
    # LIFECYCLE
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ProcessorState:
        with self._state_lock:
            return self._state

    @property
    def stats(self) -> Dict[str, int]:
        with self._state_lock:
            return dict(self._stats)

    def start(self) -> None:
        """Spawn the worker thread. No-op when already running."""
        with self._lifecycle_lock:
            if self.is_alive():
                return
            self._stop_requested = False
            self._stop_event.clear()
            self.runner.reset()
            self._set_state(ProcessorState.IDLE)
            self._thread = threading.Thread(target=self._run_loop, name="QueueProcessor", daemon=True)
            self._thread.start()
        logger.info("Queue processor started.")

    def restart(self) -> None:
        """Health monitor hook: replace a dead worker thread. No-op after stop()."""
        with self._lifecycle_lock:
            if self._stop_requested:
                logger.debug("Restart ignored: queue processor was stopped on request.")
                return
            self.start()

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def stop(self, timeout: float = 10.0) -> None:
        """
        Stop the worker within a bounded time.

        Waits up to 'timeout' seconds for the current item, then cancels the
        runner and terminates its subprocess.

        Args:
            timeout: Grace period for an in-flight transcription.
        """
        with self._lifecycle_lock:
            self._stop_requested = True
            self._stop_event.set()
            thread = self._thread
        if thread is not None:
            thread.join(timeout)
            if thread.is_alive():
                logger.warning("In-flight transcription exceeded the shutdown grace period; killing it.")
                self.runner.cancel()
                self.runner.terminate_active()
                thread.join(const.KILL_GRACE_SECONDS * 2)
        self._set_state(ProcessorState.STOPPED)
        abandoned = len(self.queue)
        if abandoned:
            logger.warning(f"{abandoned} queued item(s) abandoned; they remain in the watch directory.")
        logger.info("Queue processor stopped.")

    # -------------------------------------------------------------------------
    # PROCESSING
    # -------------------------------------------------------------------------

    def process_next(self) -> Optional[TranscriptionOutcome]:
        """
        Dequeue and process a single item.

        Returns:
            Optional[TranscriptionOutcome]: The outcome, or None if the queue
                                            was empty.
        """
        path = self.queue.dequeue()
        if path is None:
            return None

        with self._flight_lock:
            self._set_state(ProcessorState.PROCESSING)
            try:
                outcome = self.runner.run(path)
            except Exception as e:
                logger.error(f"Unexpected error while processing {path}: {e}", exc_info=True)
                outcome = TranscriptionOutcome(
                    ok=False, source_path=path, category=FailureCategory.UNKNOWN_TRANSIENT, error=str(e)
                )
            finally:
                self.queue.task_done(path)
                if self.state is not ProcessorState.STOPPED:
                    self._set_state(ProcessorState.IDLE)

        self._record(outcome)
        return outcome

    def _run_loop(self) -> None:
        """Worker thread body."""
        while not self._stop_event.is_set():
            outcome = self.process_next()
            if outcome is None:
                self._stop_event.wait(self.poll_interval)
                continue
            if outcome.pause_seconds > 0:
                logger.error(
                    f"Critical condition ({outcome.category.value if outcome.category else 'unknown'}); "
                    f"pausing the processor for {outcome.pause_seconds:.0f}s."
                )
                self._stop_event.wait(outcome.pause_seconds)

    def _record(self, outcome: TranscriptionOutcome) -> None:
        if outcome.category is FailureCategory.CANCELLED:
            return
        with self._state_lock:
            self._stats["processed"] += 1
            if outcome.ok:
                self._stats["succeeded"] += 1
            else:
                self._stats["failed"] += 1
        if outcome.category is FailureCategory.MISSING_FILE:
            logger.error(f"Skipped missing file (already moved?): {outcome.source_path}")

    def _set_state(self, state: ProcessorState) -> None:
        with self._state_lock:
            self._state = state
