from __future__ import annotations

"""
Configuration Domain Management.

Holds the default service settings, the JSON persistence of operator
overrides and the immutable ServiceConfig consumed by every worker once
the raw dictionary has passed validation.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from scribewatch.domain import constants as const
from scribewatch.infra.fs import get_user_data_dir

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.json"


class ConfigurationError(ValueError):
    """Raised when the service configuration cannot be used to start the service."""


# -----------------------------------------------------------------------------
# Configuration Models
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class ServiceConfig:
    """
    Validated, immutable service configuration.

    Attributes:
        watch_path: Input directory observed for new audio files.
        output_path: Directory receiving transcript text files.
        completed_path: Archive for successfully transcribed audio.
        failed_path: Archive for audio that could not be transcribed.
        log_path: Directory holding the daily log files.
        language: Two/three-letter language code or 'auto'.
        model: Model identifier handed to the transcription tool.
        check_interval: Idle polling interval of the queue processor.
        timeout_seconds: Wall-clock limit of one transcription attempt.
        max_retries: Retries granted to transient failures.
        extensions: Accepted dotted audio extensions (lower case).
        transcriber_command: Executable of the transcription tool.
        sweep_interval: Period of the full-directory sweep.
        health_interval: Period of the health monitor checks.
        readiness_initial_delay: Wait before the first readiness probe.
        readiness_max_wait: Total readiness budget before giving up.
        duplicate_window: Seconds during which a re-enqueue is suppressed.
        shutdown_grace: Bounded wait for in-flight work at shutdown.
        log_level: Minimum logging severity.
    """
    watch_path: str
    output_path: str
    completed_path: str
    failed_path: str
    log_path: str
    language: str = "en"
    model: str = "base"
    check_interval: int = 5
    timeout_seconds: int = 600
    max_retries: int = 2
    extensions: Tuple[str, ...] = field(default_factory=lambda: tuple(const.DEFAULT_AUDIO_EXTENSIONS))
    transcriber_command: str = "whisper"
    sweep_interval: int = 15
    health_interval: int = 60
    readiness_initial_delay: float = const.READINESS_INITIAL_DELAY
    readiness_max_wait: float = const.READINESS_MAX_WAIT
    duplicate_window: float = 120.0
    shutdown_grace: float = 10.0
    log_level: str = "INFO"

    def as_dict(self) -> Dict[str, Any]:
        """Plain dictionary view, used for dumps and persistence."""
        data = dict(self.__dict__)
        data["extensions"] = list(self.extensions)
        return data


def get_default_config() -> Dict[str, Any]:
    """
    Generate the default runtime configuration.

    Directory roles default to siblings under the user data directory so a
    bare start works out of the box once the watch folder exists.

    Returns:
        Dict[str, Any]: Default configuration values.
    """
    base = get_user_data_dir()
    return {
        # IO Paths
        "watch_path": os.path.join(base, "inbox"),
        "output_path": os.path.join(base, "transcripts"),
        "completed_path": os.path.join(base, "completed"),
        "failed_path": os.path.join(base, "failed"),
        "log_path": os.path.join(base, "logs"),

        # Transcription
        "language": "en",
        "model": "base",
        "transcriber_command": "whisper",
        "timeout_seconds": 600,
        "max_retries": 2,
        "extensions": list(const.DEFAULT_AUDIO_EXTENSIONS),

        # Scheduling
        "check_interval": 5,
        "sweep_interval": 15,
        "health_interval": 60,
        "readiness_initial_delay": const.READINESS_INITIAL_DELAY,
        "readiness_max_wait": const.READINESS_MAX_WAIT,
        "duplicate_window": 120.0,
        "shutdown_grace": 10.0,

        # Diagnostics
        "log_level": "INFO",
    }


# -----------------------------------------------------------------------------
# Persistence Logic
# -----------------------------------------------------------------------------

def get_config_file_path() -> str:
    """Absolute path of the persistent JSON configuration."""
    return os.path.join(get_user_data_dir(), CONFIG_FILE_NAME)


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load the configuration from disk merged over the defaults.

    A missing file yields the defaults. A file that exists but cannot be
    parsed is a configuration error: the service must not start on a
    half-understood configuration.

    Args:
        path: Optional explicit JSON file. Defaults to the user data dir.

    Returns:
        Dict[str, Any]: Merged raw configuration (not yet validated).

    Raises:
        ConfigurationError: If the file is unreadable or not a JSON object.
    """
    config = get_default_config()
    target = path or get_config_file_path()

    if not os.path.exists(target):
        if path:
            raise ConfigurationError(f"Configuration file not found: {target}")
        logger.debug("Config file not found. Using defaults.")
        return config

    try:
        with open(target, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Cannot read configuration file '{target}': {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file '{target}' must contain a JSON object.")

    data.pop("version", None)
    config.update(data)
    return config


def save_config(config: Dict[str, Any], path: Optional[str] = None) -> None:
    """
    Persist a configuration dictionary to disk.

    Args:
        config: The configuration dictionary to save.
        path: Optional explicit JSON file. Defaults to the user data dir.
    """
    target = path or get_config_file_path()
    payload = dict(config)
    payload["version"] = const.CURRENT_CONFIG_VERSION
    try:
        os.makedirs(os.path.dirname(os.path.abspath(target)), exist_ok=True)
        with open(target, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=4)
        logger.debug(f"Configuration saved to {target}")
    except OSError as e:
        logger.error(f"Failed to save configuration: {e}")
