from __future__ import annotations

from .config import LoggingConfig
from .core import (
    _CONFIGURED_FLAG_ATTR,
    _QUEUE_LISTENER_ATTR,
    configure_logging,
    get_log_file_path,
    get_logger,
    shutdown_logging,
)
from .handlers import _HANDLER_TAG_ATTR, DailyFileHandler, ServiceFormatter

__all__ = [
    "LoggingConfig",
    "DailyFileHandler",
    "ServiceFormatter",
    "configure_logging",
    "get_logger",
    "get_log_file_path",
    "shutdown_logging",
]
