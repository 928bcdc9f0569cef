from __future__ import annotations

"""
Subprocess Failure Classifier.

Maps the stderr text of a failed transcription attempt onto a
FailureCategory. The rules depend on the wording of the external tool and
live only here, so they can change without touching the retry logic.
Rules are evaluated in priority order; the first match wins.
"""

import re
from typing import List, Optional, Pattern, Tuple

from scribewatch.domain.work_models import FailureCategory

# -----------------------------------------------------------------------------
# CLASSIFICATION RULES (priority order)
# -----------------------------------------------------------------------------

_RULES: List[Tuple[Pattern[str], FailureCategory]] = [
    (
        re.compile(r"no space left|disk (is )?full|not enough (disk )?space|ENOSPC|quota exceeded", re.I),
        FailureCategory.CRITICAL_DISK,
    ),
    (
        re.compile(r"permission denied|access (is )?denied|EACCES|operation not permitted", re.I),
        FailureCategory.PERMISSION,
    ),
    (
        re.compile(
            r"invalid data|unsupported|not supported|invalid (audio|file|format)|"
            r"could not decode|failed to load audio|corrupt|moov atom not found",
            re.I,
        ),
        FailureCategory.UNSUPPORTED_INPUT,
    ),
    (
        re.compile(r"network|connection|timed? ?out|unreachable|temporary failure in name resolution", re.I),
        FailureCategory.TRANSIENT_NETWORK,
    ),
    (
        re.compile(r"out of memory|cannot allocate memory|memoryerror|ENOMEM|CUDA out of memory", re.I),
        FailureCategory.CRITICAL_MEMORY,
    ),
    (
        re.compile(r"error|fail|exception|traceback", re.I),
        FailureCategory.UNKNOWN_TRANSIENT,
    ),
]


# -----------------------------------------------------------------------------
# PUBLIC API
# -----------------------------------------------------------------------------

def classify_failure(stderr: Optional[str]) -> FailureCategory:
    """
    Classify the stderr of a failed (non-zero exit) attempt.

    Args:
        stderr: Captured standard error text, possibly empty.

    Returns:
        FailureCategory: First matching category, UNKNOWN_TRANSIENT when no
                         rule matches.
    """
    text = stderr or ""
    for pattern, category in _RULES:
        if pattern.search(text):
            return category
    return FailureCategory.UNKNOWN_TRANSIENT


def compute_backoff(attempt_index: int, base: int = 5, cap: int = 60) -> int:
    """
    Delay before the next attempt: min(base * 2^attempt_index, cap).

    Args:
        attempt_index: Zero-based index of the attempt that just failed.
        base: Initial delay in seconds.
        cap: Upper bound in seconds.

    Returns:
        int: Seconds to wait.
    """
    return min(base * (2 ** max(attempt_index, 0)), cap)
