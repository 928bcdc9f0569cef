from __future__ import annotations

"""
Health Monitor Service.

Periodically verifies that the supervised workers (directory watcher and
queue processor) are alive and restarts the dead ones with a bounded,
linearly growing backoff. When every attempt fails the component is
reported as degraded and retried at the next check; the service itself
keeps running.
"""

import logging
import threading
from typing import Dict, Optional, Protocol, Set

from scribewatch.domain import constants as const

logger = logging.getLogger(__name__)


class SupervisedComponent(Protocol):
    """Minimal contract of a restartable worker."""

    def is_alive(self) -> bool: ...

    def restart(self) -> None: ...


class HealthMonitor:
    """Interval-driven liveness checker with bounded restart attempts."""

    def __init__(
            self,
            components: Dict[str, SupervisedComponent],
            interval: float = 60.0,
            max_attempts: int = const.HEALTH_MAX_RESTART_ATTEMPTS,
            backoff_step: float = const.HEALTH_BACKOFF_STEP,
    ) -> None:
        self.components = dict(components)
        self.interval = interval
        self.max_attempts = max_attempts
        self.backoff_step = backoff_step

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._degraded: Set[str] = set()
        self._lock = threading.Lock()

    # -------------------------------------------------------------------------
    # LIFECYCLE
    # -------------------------------------------------------------------------

    @property
    def degraded(self) -> Set[str]:
        with self._lock:
            return set(self._degraded)

    def start(self) -> None:
        if self.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name="HealthMonitor", daemon=True)
        self._thread.start()
        logger.info(f"Health monitor started (interval {self.interval:.0f}s).")

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
        logger.info("Health monitor stopped.")

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # CHECKS
    # -------------------------------------------------------------------------

    def check_once(self) -> Dict[str, bool]:
        """
        Inspect every component and restart the ones that are down.

        Returns:
            Dict[str, bool]: Liveness of each component after the check.
        """
        status: Dict[str, bool] = {}
        for name, component in self.components.items():
            if self._stop_event.is_set():
                break
            if self._is_alive(name, component):
                status[name] = True
                with self._lock:
                    self._degraded.discard(name)
                continue
            logger.warning(f"Component '{name}' is not running; attempting restart.")
            status[name] = self._restart_component(name, component)
        return status

    def _run_loop(self) -> None:
        while not self._stop_event.wait(self.interval):
            try:
                self.check_once()
            except Exception as e:
                logger.error(f"Health check failed: {e}", exc_info=True)

    def _restart_component(self, name: str, component: SupervisedComponent) -> bool:
        """Up to max_attempts restarts, waiting attempt * backoff_step between them."""
        for attempt in range(1, self.max_attempts + 1):
            try:
                component.restart()
            except Exception as e:
                logger.error(f"Restart attempt {attempt}/{self.max_attempts} of '{name}' failed: {e}")

            if self._is_alive(name, component):
                logger.info(f"Component '{name}' restarted (attempt {attempt}).")
                with self._lock:
                    self._degraded.discard(name)
                return True

            if attempt < self.max_attempts and self._stop_event.wait(attempt * self.backoff_step):
                return False

        logger.critical(
            f"Component '{name}' could not be restarted after {self.max_attempts} attempts. "
            f"Service is degraded; manual intervention required."
        )
        with self._lock:
            self._degraded.add(name)
        return False

    @staticmethod
    def _is_alive(name: str, component: SupervisedComponent) -> bool:
        try:
            return bool(component.is_alive())
        except Exception as e:
            logger.error(f"Liveness check of '{name}' raised: {e}")
            return False
