from __future__ import annotations

"""
Thread-Safe Work Queue.

Unbounded FIFO of audio paths shared by the producers (watcher events,
periodic sweep, startup scan) and the single queue processor. Every
operation runs under one mutex. Re-enqueueing a path that is queued, in
flight, or was enqueued within the duplicate window is a no-op.
"""

import logging
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, List, Optional, Set

logger = logging.getLogger(__name__)


class WorkQueue:
    """
    FIFO of WorkItems (absolute file paths) with duplicate suppression.

    dequeue() returns None when the queue is empty. A dequeued path stays
    'in flight' until task_done() is called for it.
    """

    def __init__(
            self,
            duplicate_window: float = 120.0,
            clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.duplicate_window = duplicate_window
        self._clock = clock
        self._lock = threading.Lock()
        self._items: Deque[str] = deque()
        self._queued: Set[str] = set()
        self._in_flight: Set[str] = set()
        self._last_enqueued: Dict[str, float] = {}

    def enqueue(self, path: str) -> bool:
        """
        Append a path to the tail of the queue.

        Args:
            path: Absolute path of the audio file.

        Returns:
            bool: True if the path was added, False if it was suppressed.
        """
        with self._lock:
            now = self._clock()
            if path in self._queued or path in self._in_flight:
                logger.debug(f"Duplicate enqueue suppressed (pending): {path}")
                return False

            last = self._last_enqueued.get(path)
            if last is not None and now - last < self.duplicate_window:
                logger.debug(f"Duplicate enqueue suppressed (window): {path}")
                return False

            self._items.append(path)
            self._queued.add(path)
            self._last_enqueued[path] = now
            self._prune(now)
            size = len(self._items)

        logger.info(f"Queued for transcription ({size} pending): {path}")
        return True

    def dequeue(self) -> Optional[str]:
        """
        Remove and return the head of the queue.

        Returns:
            Optional[str]: The oldest path, or None when the queue is empty.
        """
        with self._lock:
            if not self._items:
                return None
            path = self._items.popleft()
            self._queued.discard(path)
            self._in_flight.add(path)
            return path

    def task_done(self, path: str) -> None:
        """Mark a dequeued path as finished, whatever the outcome."""
        with self._lock:
            self._in_flight.discard(path)

    def contains(self, path: str) -> bool:
        """True if the path is queued or currently in flight."""
        with self._lock:
            return path in self._queued or path in self._in_flight

    def snapshot(self) -> List[str]:
        """Copy of the queued paths in FIFO order."""
        with self._lock:
            return list(self._items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def _prune(self, now: float) -> None:
        """Forget enqueue timestamps older than the duplicate window. Caller holds the lock."""
        expired = [p for p, ts in self._last_enqueued.items()
                   if now - ts >= self.duplicate_window and p not in self._queued]
        for p in expired:
            del self._last_enqueued[p]
