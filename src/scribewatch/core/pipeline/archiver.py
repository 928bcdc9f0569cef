from __future__ import annotations

"""
File Archiver.

Writes transcripts to the output directory and relocates source audio to
the completed or failed directory. Every destination name is collision
safe ('name.txt', 'name_1.txt', ...) so nothing is ever overwritten.
"""

import errno
import logging
import os
import shutil
import threading

from scribewatch.infra.fs import unique_path

logger = logging.getLogger(__name__)


class FileArchiver:
    """
    Persists pipeline results to the downstream directory roles.

    Moves are atomic renames when source and destination share a volume;
    across volumes the archiver falls back to copy-and-delete, which is not
    atomic.
    """

    def __init__(self, output_dir: str, completed_dir: str, failed_dir: str) -> None:
        self.output_dir = output_dir
        self.completed_dir = completed_dir
        self.failed_dir = failed_dir
        # Serializes name probing + write so two callers never pick the same name
        self._naming_lock = threading.Lock()

    # -------------------------------------------------------------------------
    # TRANSCRIPTS
    # -------------------------------------------------------------------------

    def save_transcript(self, content: str, base_name: str) -> str:
        """
        Write transcript text under a unique '<base_name>.txt' name.

        Args:
            content: Transcript text.
            base_name: Stem of the source audio file.

        Returns:
            str: Absolute path of the written file.
        """
        with self._naming_lock:
            os.makedirs(self.output_dir, exist_ok=True)
            target = unique_path(self.output_dir, base_name, ".txt")
            with open(target, "x", encoding="utf-8") as f:
                f.write(content)
        logger.info(f"Transcript written: {target}")
        return target

    # -------------------------------------------------------------------------
    # AUDIO ARCHIVING
    # -------------------------------------------------------------------------

    def move_to_completed(self, source_path: str) -> str:
        """Archive a successfully transcribed audio file."""
        return self._move(source_path, self.completed_dir)

    def move_to_failed(self, source_path: str) -> str:
        """Archive an audio file that could not be transcribed."""
        return self._move(source_path, self.failed_dir)

    def _move(self, source_path: str, dest_dir: str) -> str:
        """
        Relocate 'source_path' into 'dest_dir' keeping its name unless taken.

        Raises:
            OSError: If the source is missing or the move fails.
        """
        stem, ext = os.path.splitext(os.path.basename(source_path))
        with self._naming_lock:
            os.makedirs(dest_dir, exist_ok=True)
            target = unique_path(dest_dir, stem, ext)
            try:
                os.replace(source_path, target)
            except OSError as e:
                if e.errno != errno.EXDEV:
                    raise
                shutil.move(source_path, target)
        logger.debug(f"Moved {source_path} -> {target}")
        return target
