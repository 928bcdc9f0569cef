from __future__ import annotations

"""
Service Controller.

Wires the pipeline together and owns its lifecycle. Startup runs in a
strict order and any failing step aborts it; shutdown stops the health
monitor and intake first, gives the in-flight transcription a bounded grace
period, then releases every worker and flushes the logs.
"""

import atexit
import logging
import os
import signal
import threading
from typing import Any, Optional

from scribewatch.core.pipeline.archiver import FileArchiver
from scribewatch.core.pipeline.intake import FileIntake
from scribewatch.core.pipeline.processor import QueueProcessor
from scribewatch.core.pipeline.readiness import ReadinessChecker
from scribewatch.core.pipeline.runner import TranscriptionRunner
from scribewatch.core.pipeline.work_queue import WorkQueue
from scribewatch.core.services.health import HealthMonitor
from scribewatch.core.services.watcher import DirectoryWatcher
from scribewatch.domain.config import ConfigurationError, ServiceConfig
from scribewatch.infra.fs import list_matching_files, safe_mkdir
from scribewatch.infra.logging import shutdown_logging

logger = logging.getLogger(__name__)


class ServiceController:
    """
    Orchestrates startup order, the backlog scan and graceful shutdown.

    Collaborators may be injected (tests); otherwise they are built from the
    configuration during start().
    """

    def __init__(
            self,
            config: ServiceConfig,
            runner: Optional[TranscriptionRunner] = None,
            checker: Optional[ReadinessChecker] = None,
    ) -> None:
        self.config = config
        self.shutdown_event = threading.Event()

        self.archiver = FileArchiver(config.output_path, config.completed_path, config.failed_path)
        self.runner = runner or TranscriptionRunner(config, self.archiver)
        self.checker = checker or ReadinessChecker(
            initial_delay=config.readiness_initial_delay,
            max_wait=config.readiness_max_wait,
        )

        self.queue: Optional[WorkQueue] = None
        self.intake: Optional[FileIntake] = None
        self.watcher: Optional[DirectoryWatcher] = None
        self.processor: Optional[QueueProcessor] = None
        self.monitor: Optional[HealthMonitor] = None

        self._started = False
        self._stopped = False
        self._lifecycle_lock = threading.Lock()

    # -------------------------------------------------------------------------
    # STARTUP
    # -------------------------------------------------------------------------

    def start(self, install_signal_handlers: bool = True) -> None:
        """
        Bring the service up.

        Raises:
            ConfigurationError: Missing watch directory or unusable output
                                directories.
        """
        cfg = self.config
        logger.info("Starting transcription service...")

        # 1. Watch directory must already exist
        if not os.path.isdir(cfg.watch_path):
            raise ConfigurationError(f"Watch directory does not exist: {cfg.watch_path}")

        # 2. Downstream directories are created on demand
        for role, path in (
                ("output", cfg.output_path),
                ("completed", cfg.completed_path),
                ("failed", cfg.failed_path),
                ("log", cfg.log_path),
        ):
            ok, err = safe_mkdir(path)
            if not ok:
                raise ConfigurationError(f"Cannot create {role} directory '{path}': {err}")

        # 3. Queue and intake
        self.queue = WorkQueue(duplicate_window=cfg.duplicate_window)
        self.intake = FileIntake(
            self.queue, self.checker, self.archiver, cfg.extensions, self.shutdown_event
        )

        # 4. Backlog of files deposited while the service was down
        backlog = self.scan_backlog()
        logger.info(f"Startup scan found {backlog} pre-existing file(s).")

        # 5-7. Workers
        self.watcher = DirectoryWatcher(
            cfg.watch_path, cfg.extensions, self.intake.submit, sweep_interval=cfg.sweep_interval
        )
        self.watcher.start()

        self.processor = QueueProcessor(self.queue, self.runner, poll_interval=cfg.check_interval)
        self.processor.start()

        self.monitor = HealthMonitor(
            {"watcher": self.watcher, "processor": self.processor},
            interval=cfg.health_interval,
        )
        self.monitor.start()

        # 8. Shutdown hooks
        if install_signal_handlers:
            self._install_signal_handlers()
        atexit.register(self.shutdown)

        self._started = True
        logger.info(
            f"Service running. watch={cfg.watch_path} output={cfg.output_path} "
            f"model={cfg.model} language={cfg.language}"
        )

    def scan_backlog(self) -> int:
        """Submit every supported file already present in the watch directory."""
        if self.intake is None:
            return 0
        files = list_matching_files(self.config.watch_path, self.config.extensions)
        for path in files:
            self.intake.submit(path)
        return len(files)

    # -------------------------------------------------------------------------
    # RUN & SHUTDOWN
    # -------------------------------------------------------------------------

    def run_forever(self) -> None:
        """Block the calling thread until shutdown is requested."""
        while not self.shutdown_event.wait(1.0):
            pass
        self.shutdown()

    def request_shutdown(self) -> None:
        self.shutdown_event.set()

    def shutdown(self) -> None:
        """Stop every worker in reverse dependency order. Idempotent."""
        with self._lifecycle_lock:
            if self._stopped or not self._started:
                return
            self._stopped = True

        logger.info("Shutting down transcription service...")
        self.shutdown_event.set()

        # The monitor goes first so it cannot revive workers being stopped
        if self.monitor is not None:
            self.monitor.stop()
        if self.watcher is not None:
            self.watcher.stop_events()
        if self.intake is not None:
            self.intake.close(timeout=2.0)
        if self.processor is not None:
            self.processor.stop(timeout=self.config.shutdown_grace)
        if self.watcher is not None:
            self.watcher.stop()

        if self.processor is not None:
            stats = self.processor.stats
            logger.info(
                f"Service stopped. processed={stats['processed']} "
                f"succeeded={stats['succeeded']} failed={stats['failed']}"
            )
        shutdown_logging()

    def _install_signal_handlers(self) -> None:
        """SIGINT/SIGTERM request shutdown. Only possible from the main thread."""
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not in main thread; signal handlers not installed.")
            return

        def _handler(signum: int, _frame: Any) -> None:
            logger.info(f"Received signal {signum}; shutting down.")
            self.request_shutdown()

        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)
