from __future__ import annotations

"""
Transcription Runner.

Drives the external speech-to-text command line tool for one audio file:
validates the request, runs the subprocess under a wall-clock timeout,
classifies failures, retries transient ones with exponential backoff and
finally files the transcript and the audio through the FileArchiver.
"""

import logging
import os
import subprocess
import tempfile
import threading
import time
from typing import List, Optional, Tuple

from scribewatch.core.pipeline.archiver import FileArchiver
from scribewatch.core.pipeline.classifier import classify_failure, compute_backoff
from scribewatch.domain import constants as const
from scribewatch.domain.config import ServiceConfig
from scribewatch.domain.work_models import (
    FailureCategory,
    ProcessingAttempt,
    TranscriptionOutcome,
)
from scribewatch.infra.fs import has_extension, is_writable_dir

logger = logging.getLogger(__name__)

_STDERR_LOG_LIMIT = 2000


class TranscriptionRunner:
    """
    Runs one work item to a terminal outcome.

    At most one subprocess is tracked at a time; the queue processor is the
    only caller of run(). cancel() and terminate_active() may be called from
    other threads during shutdown.
    """

    def __init__(self, config: ServiceConfig, archiver: FileArchiver) -> None:
        self.command = config.transcriber_command
        self.language = config.language
        self.model = config.model
        self.timeout = config.timeout_seconds
        self.max_retries = config.max_retries
        self.extensions = config.extensions
        self.output_dir = config.output_path
        self.archiver = archiver

        self._cancel_event = threading.Event()
        self._process: Optional[subprocess.Popen] = None
        self._process_lock = threading.Lock()

    # -------------------------------------------------------------------------
    # PUBLIC API
    # -------------------------------------------------------------------------

    def run(
            self,
            path: str,
            language: Optional[str] = None,
            model: Optional[str] = None,
    ) -> TranscriptionOutcome:
        """
        Transcribe 'path' and archive the result.

        Args:
            path: Absolute path of the audio file.
            language: Language code override ('auto' for detection).
            model: Model identifier override.

        Returns:
            TranscriptionOutcome: Terminal result. The audio has been moved
                                  unless the file was missing or the run was
                                  cancelled by shutdown.
        """
        language = (language or self.language).strip().lower()
        model = model or self.model

        if not os.path.isfile(path):
            msg = f"Source file no longer exists: {path}"
            logger.error(msg)
            return TranscriptionOutcome(
                ok=False, source_path=path, category=FailureCategory.MISSING_FILE, error=msg
            )

        rejection = self._validate(path, language)
        if rejection:
            category, msg = rejection
            return self._fail(path, category, msg, [])

        attempts: List[ProcessingAttempt] = []
        for index in range(self.max_retries + 1):
            attempt, transcript = self._attempt(path, language, model, index + 1)
            attempts.append(attempt)

            if attempt.succeeded:
                return self._complete(path, transcript, attempts)

            category = attempt.category
            if category is FailureCategory.CANCELLED:
                return self._cancelled(path, attempts)

            logger.warning(
                f"Attempt {attempt.number} failed for {os.path.basename(path)}: "
                f"category={category.value} exit={attempt.exit_code} "
                f"stderr={attempt.stderr.strip()[-_STDERR_LOG_LIMIT:]!r}"
            )

            if category.is_critical:
                return self._fail(
                    path, category, f"Critical failure ({category.value}).", attempts,
                    pause_seconds=const.CRITICAL_PAUSE_SECONDS,
                )
            if not category.is_retryable:
                return self._fail(path, category, f"Permanent failure ({category.value}).", attempts)

            if index < self.max_retries:
                delay = compute_backoff(index, const.RETRY_BACKOFF_BASE, const.RETRY_BACKOFF_CAP)
                logger.info(f"Retrying {os.path.basename(path)} in {delay}s "
                            f"(retry {index + 1}/{self.max_retries})")
                if not self._pause(delay):
                    return self._cancelled(path, attempts)

        last = attempts[-1].category or FailureCategory.UNKNOWN_TRANSIENT
        return self._fail(
            path, last, f"Retry budget exhausted after {len(attempts)} attempts.", attempts
        )

    def cancel(self) -> None:
        """Stop retrying and mark the in-flight attempt as cancelled."""
        self._cancel_event.set()

    def reset(self) -> None:
        """Clear a previous cancellation before the processor restarts."""
        self._cancel_event.clear()

    def terminate_active(self, grace: float = const.KILL_GRACE_SECONDS) -> bool:
        """
        Terminate the in-flight subprocess: SIGTERM, bounded wait, then SIGKILL.

        Args:
            grace: Seconds granted after SIGTERM.

        Returns:
            bool: True if a running process was stopped.
        """
        with self._process_lock:
            process = self._process
        if process is None or process.poll() is not None:
            return False

        logger.warning(f"Terminating transcription subprocess PID={process.pid}")
        process.terminate()
        try:
            process.wait(timeout=grace)
        except subprocess.TimeoutExpired:
            logger.warning(f"SIGTERM ignored, killing PID={process.pid}")
            process.kill()
            process.wait(timeout=grace)
        return True

    def build_command(self, path: str, language: str, model: str, output_dir: str) -> List[str]:
        """Argument vector of the external transcription tool."""
        cmd = [
            self.command, path,
            "--model", model,
            "--output_format", "txt",
            "--output_dir", output_dir,
        ]
        if language != const.AUTO_LANGUAGE:
            cmd.extend(["--language", language])
        return cmd

    # -------------------------------------------------------------------------
    # PRIVATE HELPERS: EXECUTION
    # -------------------------------------------------------------------------

    def _validate(self, path: str, language: str) -> Optional[Tuple[FailureCategory, str]]:
        """Pre-flight checks performed before any subprocess is spawned."""
        if not has_extension(path, self.extensions):
            return FailureCategory.UNSUPPORTED_INPUT, f"Unsupported file extension: {path}"
        if not is_writable_dir(self.output_dir):
            return FailureCategory.PERMISSION, f"Output directory is not writable: {self.output_dir}"
        if not const.LANGUAGE_PATTERN.match(language):
            return FailureCategory.INVALID_REQUEST, f"Invalid language code: '{language}'"
        return None

    @staticmethod
    def _terminate_and_collect(
            process: subprocess.Popen,
            grace: float = const.KILL_GRACE_SECONDS,
    ) -> Tuple[str, str]:
        """SIGTERM, drain output for up to 'grace' seconds, then SIGKILL."""
        process.terminate()
        try:
            return process.communicate(timeout=grace)
        except subprocess.TimeoutExpired:
            logger.warning(f"SIGTERM ignored, killing PID={process.pid}")
            process.kill()
            return process.communicate()

    def _attempt(
            self,
            path: str,
            language: str,
            model: str,
            number: int,
    ) -> Tuple[ProcessingAttempt, str]:
        """Run the tool once and classify the result."""
        started_at = time.time()
        t0 = time.monotonic()

        if self._cancel_event.is_set():
            return ProcessingAttempt(
                number=number, started_at=started_at, duration=0.0, exit_code=None,
                category=FailureCategory.CANCELLED,
            ), ""

        stem = os.path.splitext(os.path.basename(path))[0]
        with tempfile.TemporaryDirectory(prefix="scribewatch_") as staging:
            cmd = self.build_command(path, language, model, staging)
            logger.info(f"Transcribing {os.path.basename(path)} (attempt {number}, model={model}, "
                        f"language={language})")
            logger.debug(f"Command: {cmd}")

            try:
                process = subprocess.Popen(
                    cmd,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    text=True,
                    encoding="utf-8",
                    errors="replace",
                )
            except OSError as e:
                logger.error(f"Cannot launch '{self.command}': {e}")
                return ProcessingAttempt(
                    number=number, started_at=started_at, duration=time.monotonic() - t0,
                    exit_code=None, stderr=str(e), category=classify_failure(str(e)),
                ), ""

            with self._process_lock:
                self._process = process

            timed_out = False
            try:
                stdout, stderr = process.communicate(timeout=self.timeout)
            except subprocess.TimeoutExpired:
                timed_out = True
                logger.error(f"Transcription exceeded {self.timeout}s, terminating PID={process.pid}")
                stdout, stderr = self._terminate_and_collect(process)
            finally:
                with self._process_lock:
                    self._process = None

            stdout = stdout or ""
            stderr = stderr or ""
            exit_code = process.returncode
            transcript = ""

            if self._cancel_event.is_set() and exit_code != 0:
                category: Optional[FailureCategory] = FailureCategory.CANCELLED
            elif timed_out:
                category = FailureCategory.TIMEOUT
            elif exit_code != 0:
                category = classify_failure(stderr)
            else:
                transcript = self._read_transcript(staging, stem, stdout)
                category = None if transcript.strip() else FailureCategory.EMPTY_OUTPUT

        return ProcessingAttempt(
            number=number,
            started_at=started_at,
            duration=time.monotonic() - t0,
            exit_code=exit_code,
            stdout=stdout,
            stderr=stderr,
            timed_out=timed_out,
            category=category,
        ), transcript

    @staticmethod
    def _read_transcript(staging_dir: str, stem: str, stdout: str) -> str:
        """Prefer the text file written by the tool, fall back to stdout."""
        candidate = os.path.join(staging_dir, f"{stem}.txt")
        if os.path.isfile(candidate):
            with open(candidate, "r", encoding="utf-8", errors="replace") as f:
                content = f.read()
            if content.strip():
                return content
        return stdout.strip()

    def _pause(self, seconds: float) -> bool:
        """Sleep between retries. Returns False if cancelled meanwhile."""
        return not self._cancel_event.wait(seconds)

    # -------------------------------------------------------------------------
    # PRIVATE HELPERS: TERMINAL STATES
    # -------------------------------------------------------------------------

    def _complete(self, path: str, transcript: str, attempts: List[ProcessingAttempt]) -> TranscriptionOutcome:
        """Persist the transcript, then archive the audio as completed."""
        stem = os.path.splitext(os.path.basename(path))[0]
        try:
            transcript_path = self.archiver.save_transcript(transcript, stem)
        except OSError as e:
            category = classify_failure(str(e))
            pause = const.CRITICAL_PAUSE_SECONDS if category.is_critical else 0.0
            return self._fail(path, category, f"Cannot write transcript: {e}", attempts, pause)

        try:
            archived = self.archiver.move_to_completed(path)
        except OSError as e:
            logger.error(f"Transcript saved but audio could not be archived: {path}: {e}")
            archived = ""

        logger.info(f"Completed {os.path.basename(path)} after {len(attempts)} attempt(s)")
        return TranscriptionOutcome(
            ok=True,
            source_path=path,
            attempts=attempts,
            transcript_path=transcript_path,
            archived_path=archived,
        )

    def _fail(
            self,
            path: str,
            category: FailureCategory,
            error: str,
            attempts: List[ProcessingAttempt],
            pause_seconds: float = 0.0,
    ) -> TranscriptionOutcome:
        """Route the audio to the failed directory."""
        archived = ""
        try:
            archived = self.archiver.move_to_failed(path)
        except OSError as e:
            logger.error(f"Could not move {path} to the failed directory: {e}")

        logger.error(f"Transcription failed for {os.path.basename(path)}: {error} "
                     f"[{category.value}]")
        return TranscriptionOutcome(
            ok=False,
            source_path=path,
            category=category,
            attempts=attempts,
            archived_path=archived,
            error=error,
            pause_seconds=pause_seconds,
        )

    @staticmethod
    def _cancelled(path: str, attempts: List[ProcessingAttempt]) -> TranscriptionOutcome:
        """Shutdown interrupted the item; the file stays in the watch directory."""
        logger.warning(f"Transcription cancelled by shutdown, left in place: {path}")
        return TranscriptionOutcome(
            ok=False,
            source_path=path,
            category=FailureCategory.CANCELLED,
            attempts=attempts,
            error="Cancelled by shutdown.",
        )
