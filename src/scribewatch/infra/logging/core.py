from __future__ import annotations

"""
Service Logging Lifecycle.

The root logger receives a single QueueHandler; a QueueListener thread
drains the queue into the console and daily-file sinks. Worker threads
(watcher, processor, health monitor) therefore never block on disk I/O.
Configuration is idempotent and reversible through shutdown_logging().
"""

import atexit
import logging
import os
import queue
import sys
from datetime import date
from logging.handlers import QueueHandler, QueueListener
from typing import List, Optional

from scribewatch.infra.logging.config import _LEVEL_MAP, LoggingConfig
from scribewatch.infra.logging.handlers import (
    ServiceFormatter,
    _create_daily_file_handler,
    _is_our_handler,
    _tag_handler,
)

_CONFIGURED_FLAG_ATTR: str = "_scribewatch_configured"
_QUEUE_LISTENER_ATTR: str = "_scribewatch_queue_listener"


# -----------------------------------------------------------------------------
# PUBLIC API
# -----------------------------------------------------------------------------

def get_log_file_path(log_dir: str, prefix: str = "scribewatch", day: Optional[date] = None) -> str:
    """
    Path of the daily log file for 'day' (today by default).

    Args:
        log_dir: Directory holding the daily log files.
        prefix: File name prefix.
        day: Calendar day to resolve.

    Returns:
        str: Absolute '<log_dir>/<prefix>_<YYYY-MM-DD>.log' path.
    """
    stamp = (day or date.today()).isoformat()
    return os.path.join(os.path.abspath(log_dir), f"{prefix}_{stamp}.log")


def configure_logging(cfg: LoggingConfig, *, force: bool = False) -> logging.Logger:
    """
    Route every record of the process through the service sinks.

    A second call is a no-op unless 'force' is set, in which case the
    previous listener is drained and replaced (used once the log directory
    is known).

    Args:
        cfg: Levels, formats and sinks to install.
        force: Replace an existing configuration.

    Returns:
        logging.Logger: The root logger.
    """
    root = logging.getLogger()
    if getattr(root, _CONFIGURED_FLAG_ATTR, False) and not force:
        return root

    try:
        level = _parse_level(cfg.level)
        _detach(root)
        root.setLevel(level)

        sinks = _build_sinks(cfg, level)
        if sinks:
            _attach_queue(root, sinks)
        return root
    except Exception:
        return _emergency_console(root)


def get_logger(name: str) -> logging.Logger:
    """Named logger; records propagate to the root queue handler."""
    return logging.getLogger(name)


def shutdown_logging() -> None:
    """
    Drain the log queue, flush every sink and detach our handlers.

    Last step of the service shutdown sequence. Safe to call repeatedly.
    """
    root = logging.getLogger()
    _detach(root)
    setattr(root, _CONFIGURED_FLAG_ATTR, False)


# -----------------------------------------------------------------------------
# PRIVATE HELPERS
# -----------------------------------------------------------------------------

def _parse_level(level: str) -> int:
    key = str(level or "").strip().upper()
    return _LEVEL_MAP.get(key, logging.INFO)


def _build_sinks(cfg: LoggingConfig, level: int) -> List[logging.Handler]:
    """Console and daily-file handlers served by the listener thread."""
    sinks: List[logging.Handler] = []

    if cfg.console:
        console = logging.StreamHandler(sys.stderr)
        console.setLevel(level)
        console.setFormatter(ServiceFormatter(cfg.console_fmt, datefmt=cfg.datefmt))
        _tag_handler(console)
        sinks.append(console)

    if cfg.log_dir:
        daily = _create_daily_file_handler(
            cfg.log_dir,
            cfg.file_prefix,
            level,
            ServiceFormatter(cfg.file_fmt, datefmt=cfg.datefmt),
        )
        if daily is not None:
            sinks.append(daily)

    return sinks


def _attach_queue(root: logging.Logger, sinks: List[logging.Handler]) -> None:
    """Start the listener over 'sinks' and hook its queue onto the root."""
    records: queue.Queue[logging.LogRecord] = queue.Queue(-1)

    listener = QueueListener(records, *sinks, respect_handler_level=True)
    listener.start()
    atexit.register(_safe_stop_listener, listener)

    front = QueueHandler(records)
    _tag_handler(front)
    root.addHandler(front)

    setattr(root, _QUEUE_LISTENER_ATTR, listener)
    setattr(root, _CONFIGURED_FLAG_ATTR, True)


def _detach(root: logging.Logger) -> None:
    """Remove our root handlers, then stop the listener and close its sinks."""
    for handler in [h for h in root.handlers if _is_our_handler(h)]:
        root.removeHandler(handler)
        handler.close()

    listener: Optional[QueueListener] = getattr(root, _QUEUE_LISTENER_ATTR, None)
    if listener is None:
        return
    _safe_stop_listener(listener)
    for sink in listener.handlers:
        sink.flush()
        sink.close()
    setattr(root, _QUEUE_LISTENER_ATTR, None)


def _safe_stop_listener(listener: Optional[QueueListener]) -> None:
    """Stop a listener once; later calls (atexit, test resets) are ignored."""
    if listener is not None and getattr(listener, "_thread", None) is not None:
        listener.stop()


def _emergency_console(root: logging.Logger) -> logging.Logger:
    """Plain stderr logging used when the queue infrastructure cannot be built."""
    _detach(root)
    root.setLevel(logging.INFO)

    fallback = logging.StreamHandler(sys.stderr)
    fallback.setFormatter(logging.Formatter("CRITICAL FALLBACK | %(levelname)s | %(message)s"))
    _tag_handler(fallback)
    root.addHandler(fallback)

    root.warning("Logging infrastructure failed. Switched to emergency console.")
    return root
