from __future__ import annotations

"""
Work Item Domain Data Models.

Defines the Data Transfer Objects exchanged between the intake, the queue
processor and the transcription runner: failure categories, the record of
one subprocess attempt and the terminal outcome of a work item.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

# -----------------------------------------------------------------------------
# STATE ENUMERATIONS
# -----------------------------------------------------------------------------

class FailureCategory(Enum):
    """Classification of a failed transcription attempt."""
    CRITICAL_DISK = "CRITICAL_DISK"
    PERMISSION = "PERMISSION"
    UNSUPPORTED_INPUT = "UNSUPPORTED_INPUT"
    TRANSIENT_NETWORK = "TRANSIENT_NETWORK"
    CRITICAL_MEMORY = "CRITICAL_MEMORY"
    UNKNOWN_TRANSIENT = "UNKNOWN_TRANSIENT"
    TIMEOUT = "TIMEOUT"
    EMPTY_OUTPUT = "EMPTY_OUTPUT"
    MISSING_FILE = "MISSING_FILE"
    INVALID_REQUEST = "INVALID_REQUEST"
    CANCELLED = "CANCELLED"

    @property
    def is_retryable(self) -> bool:
        return self in _RETRYABLE

    @property
    def is_critical(self) -> bool:
        return self in (FailureCategory.CRITICAL_DISK, FailureCategory.CRITICAL_MEMORY)


_RETRYABLE = frozenset({
    FailureCategory.TRANSIENT_NETWORK,
    FailureCategory.UNKNOWN_TRANSIENT,
    FailureCategory.TIMEOUT,
    FailureCategory.EMPTY_OUTPUT,
})


class ReadinessResult(Enum):
    """Terminal state of a readiness wait."""
    READY = "READY"
    TIMED_OUT = "TIMED_OUT"
    MISSING = "MISSING"
    CANCELLED = "CANCELLED"


class ProcessorState(Enum):
    """Lifecycle states of the queue processor."""
    IDLE = "IDLE"
    PROCESSING = "PROCESSING"
    STOPPED = "STOPPED"

# -----------------------------------------------------------------------------
# ATTEMPT & OUTCOME MODELS
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class ProcessingAttempt:
    """
    Ephemeral record of one subprocess invocation.

    Attributes:
        number: One-based attempt counter for the work item.
        started_at: Wall-clock start (epoch seconds).
        duration: Elapsed seconds until exit, timeout or cancellation.
        exit_code: Process return code, None when it never exited cleanly.
        stdout: Captured standard output.
        stderr: Captured standard error.
        timed_out: True when the wall-clock limit killed the process.
        category: Failure classification, None on success.
    """
    number: int
    started_at: float
    duration: float
    exit_code: Optional[int]
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False
    category: Optional[FailureCategory] = None

    @property
    def succeeded(self) -> bool:
        return self.category is None


@dataclass(frozen=True)
class TranscriptionOutcome:
    """
    Terminal result of running one work item through the runner.

    Attributes:
        ok: True when a transcript was written and the audio archived.
        source_path: Original path of the audio file.
        category: Failure classification of the final attempt.
        attempts: Every subprocess attempt made for the item.
        transcript_path: Written transcript (success only).
        archived_path: New location of the audio file, if it was moved.
        error: Human readable reason of the failure.
        pause_seconds: Processor-wide pause requested by a critical failure.
    """
    ok: bool
    source_path: str
    category: Optional[FailureCategory] = None
    attempts: List[ProcessingAttempt] = field(default_factory=list)
    transcript_path: str = ""
    archived_path: str = ""
    error: str = ""
    pause_seconds: float = 0.0
