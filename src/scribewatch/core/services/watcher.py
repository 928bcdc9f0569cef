from __future__ import annotations

"""
Filesystem Watcher Service.

Observes the watch directory (non-recursive) with watchdog and reports
every supported audio file that is created or moved into it. A parallel
sweep thread lists the directory periodically to catch anything the event
stream missed. Both paths feed the same detection callback, which must be
idempotent.
"""

import logging
import os
import threading
from typing import Any, Callable, Iterable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from scribewatch.domain.config import ConfigurationError
from scribewatch.infra.fs import has_extension, list_matching_files

logger = logging.getLogger(__name__)


class _AudioEventHandler(FileSystemEventHandler):
    """Forwards file creations and moves-into to the watcher."""

    def __init__(self, watcher: "DirectoryWatcher") -> None:
        super().__init__()
        self._watcher = watcher

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._watcher._emit(os.fsdecode(event.src_path))

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._watcher._emit(os.fsdecode(event.dest_path))


class DirectoryWatcher:
    """
    Event-driven plus periodic-sweep detector for one directory.

    is_alive() is the liveness flag checked by the health monitor: the
    watcher is raising events and both the observer and the sweep thread
    are running.
    """

    def __init__(
            self,
            directory: str,
            extensions: Iterable[str],
            on_detected: Callable[[str], Any],
            sweep_interval: float = 15.0,
    ) -> None:
        self.directory = os.path.abspath(directory)
        self.extensions = tuple(extensions)
        self.sweep_interval = sweep_interval
        self._on_detected = on_detected

        self._lock = threading.Lock()
        self._observer: Optional[Any] = None
        self._sweep_thread: Optional[threading.Thread] = None
        self._sweep_stop = threading.Event()
        self._raising_events = False
        self._stop_requested = False
        self._lifecycle_lock = threading.RLock()

    # -------------------------------------------------------------------------
    # LIFECYCLE
    # -------------------------------------------------------------------------

    @property
    def raising_events(self) -> bool:
        return self._raising_events

    def start(self) -> None:
        """
        Begin observing the directory and start the sweep thread.

        Raises:
            ConfigurationError: If the directory does not exist.
        """
        if not os.path.isdir(self.directory):
            raise ConfigurationError(f"Watch directory does not exist: {self.directory}")

        with self._lifecycle_lock, self._lock:
            self._stop_requested = False
            observer = Observer()
            observer.schedule(_AudioEventHandler(self), self.directory, recursive=False)
            observer.daemon = True
            observer.start()
            self._observer = observer

            self._sweep_stop = threading.Event()
            self._sweep_thread = threading.Thread(
                target=self._sweep_loop,
                args=(self._sweep_stop,),
                name="DirectorySweep",
                daemon=True,
            )
            self._sweep_thread.start()
            self._raising_events = True

        logger.info(f"Watching {self.directory} (sweep every {self.sweep_interval:.0f}s)")

    def restart(self) -> None:
        """Health monitor hook: tear down whatever is left and start fresh. No-op after stop()."""
        with self._lifecycle_lock:
            if self._stop_requested:
                logger.debug("Restart ignored: directory watcher was stopped on request.")
                return
            self._teardown(timeout=2.0)
            self.start()

    def is_alive(self) -> bool:
        with self._lock:
            observer, sweep = self._observer, self._sweep_thread
        return (
            self.raising_events
            and observer is not None and observer.is_alive()
            and sweep is not None and sweep.is_alive()
        )

    def stop_events(self) -> None:
        """Stop forwarding detections; threads keep running until stop()."""
        self._raising_events = False

    def stop(self, timeout: float = 5.0) -> None:
        """Stop emitting and release the observer and sweep thread."""
        with self._lifecycle_lock:
            self._stop_requested = True
            self.stop_events()
        self._teardown(timeout)
        logger.info("Directory watcher stopped.")

    def kill(self) -> None:
        """Drop the underlying threads as if the OS handle had been lost."""
        self._teardown(timeout=2.0)

    # -------------------------------------------------------------------------
    # DETECTION
    # -------------------------------------------------------------------------

    def sweep_once(self) -> int:
        """
        List the directory and report every supported file.

        Returns:
            int: Number of files reported.

        Raises:
            OSError: If the directory cannot be listed.
        """
        files = list_matching_files(self.directory, self.extensions)
        for path in files:
            self._emit(path)
        return len(files)

    def _sweep_loop(self, stop: threading.Event) -> None:
        """Sweep thread body. Exits on listing failure so the monitor notices."""
        while not stop.wait(self.sweep_interval):
            try:
                self.sweep_once()
            except OSError as e:
                logger.error(f"Directory sweep failed, watcher degraded: {e}")
                return

    def _emit(self, path: str) -> None:
        if not self._raising_events:
            return
        if not has_extension(path, self.extensions):
            return
        try:
            self._on_detected(os.path.abspath(path))
        except Exception as e:
            logger.error(f"Detection handler failed for {path}: {e}", exc_info=True)

    def _teardown(self, timeout: float) -> None:
        with self._lock:
            observer, sweep = self._observer, self._sweep_thread
            self._observer = None
            self._sweep_thread = None
            self._sweep_stop.set()

        if observer is not None:
            try:
                observer.stop()
                observer.join(timeout)
            except RuntimeError as e:
                logger.debug(f"Observer teardown: {e}")
        if sweep is not None and sweep is not threading.current_thread():
            sweep.join(timeout)
