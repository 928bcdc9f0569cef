from __future__ import annotations

"""
Logging Settings.

Level vocabulary of the service log and the frozen settings object
consumed by configure_logging().
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

# Accepted level names (config files and CLI) -> logging constants
_LEVEL_MAP: Dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Level names as they appear in the daily service log
_DISPLAY_LEVELS: Dict[int, str] = {
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO",
    logging.WARNING: "WARN",
    logging.ERROR: "ERROR",
    logging.CRITICAL: "ERROR",
}


@dataclass(frozen=True)
class LoggingConfig:
    """
    Sinks and formats of the service log.

    Attributes:
        level: Minimum severity written to any sink.
        console: Mirror records to stderr.
        log_dir: Directory of the daily files; None disables file output.
        file_prefix: Daily files are named <prefix>_<YYYY-MM-DD>.log.
        console_fmt: Line layout on stderr.
        file_fmt: Line layout in the daily files.
        datefmt: Timestamp layout of both sinks.
    """
    level: str = "INFO"
    console: bool = True
    log_dir: Optional[str] = None
    file_prefix: str = "scribewatch"

    console_fmt: str = "[%(asctime)s] [%(levelname)s] %(message)s"
    file_fmt: str = "[%(asctime)s] [%(levelname)s] %(message)s"
    datefmt: str = "%Y-%m-%d %H:%M:%S"
