from __future__ import annotations

"""
Service Log Handlers.

Provides the daily append-only file handler, the service line formatter
and internal tagging mechanisms so the application can distinguish its
own logging infrastructure from external or library-injected handlers.
"""

import logging
import os
import sys
from datetime import date, datetime
from typing import Optional

from scribewatch.infra.logging.config import _DISPLAY_LEVELS

# Marks handlers installed by this package so teardown never touches foreign ones
_HANDLER_TAG_ATTR: str = "_scribewatch_handler"


# ==============================================================================
# HANDLERS & FORMATTERS
# ==============================================================================

class ServiceFormatter(logging.Formatter):
    """
    Formatter rendering severities with the service vocabulary.

    WARNING is written as WARN and CRITICAL as ERROR, producing lines such as
    '[2024-01-31 08:15:02] [WARN] message'.
    """

    def format(self, record: logging.LogRecord) -> str:
        original = record.levelname
        record.levelname = _DISPLAY_LEVELS.get(record.levelno, original)
        try:
            return super().format(record)
        finally:
            record.levelname = original


class DailyFileHandler(logging.FileHandler):
    """
    Append-only file handler writing one file per calendar day.

    The target is '<log_dir>/<prefix>_<YYYY-MM-DD>.log'. The day is taken
    from the record creation time, and the stream is reopened on the first
    record of a new day. Previous files are never renamed or truncated.
    """

    def __init__(self, log_dir: str, prefix: str = "scribewatch", encoding: str = "utf-8") -> None:
        self.log_dir = os.path.abspath(log_dir)
        self.prefix = prefix
        self._current_day = date.today()
        super().__init__(self.path_for(self._current_day), mode="a", encoding=encoding, delay=True)

    def path_for(self, day: date) -> str:
        """Absolute path of the log file for a given day."""
        return os.path.join(self.log_dir, f"{self.prefix}_{day.isoformat()}.log")

    def emit(self, record: logging.LogRecord) -> None:
        day = datetime.fromtimestamp(record.created).date()
        if day != self._current_day:
            if self.stream:
                self.stream.close()
                self.stream = None  # type: ignore[assignment]
            self._current_day = day
            self.baseFilename = self.path_for(day)
        super().emit(record)


# ==============================================================================
# HANDLER OWNERSHIP
# ==============================================================================

def _tag_handler(handler: logging.Handler) -> None:
    """Flag a handler as owned by the service logging setup."""
    setattr(handler, _HANDLER_TAG_ATTR, True)


def _is_our_handler(handler: logging.Handler) -> bool:
    """True for handlers tagged by this package."""
    return bool(getattr(handler, _HANDLER_TAG_ATTR, False))


def _create_daily_file_handler(
        log_dir: str,
        prefix: str,
        level_int: int,
        formatter: logging.Formatter,
) -> Optional[DailyFileHandler]:
    """
    Build the daily file sink, creating the log directory if needed.

    Returns:
        Optional[DailyFileHandler]: The tagged handler, or None when the
                                    directory cannot be created (the service
                                    then keeps console logging only).
    """
    try:
        os.makedirs(log_dir, exist_ok=True)
        daily = DailyFileHandler(log_dir, prefix=prefix)
        daily.setLevel(level_int)
        daily.setFormatter(formatter)
        _tag_handler(daily)
        return daily
    except OSError as e:
        sys.stderr.write(f"WARNING: Log persistence failure at '{log_dir}': {e}\n")
        return None
