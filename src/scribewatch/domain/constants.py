from __future__ import annotations

"""
Domain Constants and Static Data Structures.

Provides centralized access to service-wide constants: the default audio
extension set, timing policies of the pipeline stages and the whisper
model catalogue.
"""

import re
from typing import List

CURRENT_CONFIG_VERSION = "1.0.0"

DEFAULT_AUDIO_EXTENSIONS: List[str] = [
    ".m4a", ".mp3", ".wav", ".flac", ".aac", ".ogg", ".wma", ".m4b", ".webm",
]

# ISO 639-1 / 639-2 style code, or automatic detection
LANGUAGE_PATTERN = re.compile(r"^(auto|[a-z]{2,3})$")
AUTO_LANGUAGE = "auto"

KNOWN_MODELS: List[str] = [
    "tiny", "tiny.en", "base", "base.en", "small", "small.en",
    "medium", "medium.en", "large", "large-v1", "large-v2", "large-v3", "turbo",
]

# -----------------------------------------------------------------------------
# READINESS POLICY (seconds)
# -----------------------------------------------------------------------------
READINESS_INITIAL_DELAY = 15.0
READINESS_POLL_START = 2.0
READINESS_POLL_CAP = 30.0
READINESS_MAX_WAIT = 300.0

# -----------------------------------------------------------------------------
# RETRY & RECOVERY POLICY (seconds)
# -----------------------------------------------------------------------------
RETRY_BACKOFF_BASE = 5
RETRY_BACKOFF_CAP = 60
CRITICAL_PAUSE_SECONDS = 300.0
KILL_GRACE_SECONDS = 5.0

HEALTH_MAX_RESTART_ATTEMPTS = 5
HEALTH_BACKOFF_STEP = 5.0

SWEEP_INTERVAL_MIN = 5
SWEEP_INTERVAL_MAX = 30
