from __future__ import annotations

"""
Filesystem Helpers.

Provides cross-platform path resolution, directory preparation and the
collision-safe naming scheme shared by transcript writing and audio
archiving. Acts as an abstraction over the 'os' module to ensure uniform
behavior across Windows and Unix-like systems.
"""

import os
from typing import Iterable, List, Optional, Tuple

# -----------------------------------------------------------------------------
# GLOBAL CONSTANTS
# -----------------------------------------------------------------------------

APP_DIR_NAME = "ScribeWatch"
UNIX_APP_DIR_NAME = ".scribewatch"

# -----------------------------------------------------------------------------
# PATH RESOLUTION API
# -----------------------------------------------------------------------------

def get_user_data_dir() -> str:
    """
    Per-user directory holding the configuration file and default roles.

    Created on first use. Locations:
    - Windows: %LOCALAPPDATA%/ScribeWatch
    - Linux/Mac: ~/.scribewatch

    Returns:
        str: Absolute path of the data directory.
    """
    path: str = ""

    # Windows specific resolution
    if os.name == "nt":
        base = os.environ.get("LOCALAPPDATA") or os.environ.get("APPDATA")
        if base:
            path = os.path.join(base, APP_DIR_NAME)

    # Posix fallback (Linux/Mac)
    if not path:
        path = os.path.join(os.path.expanduser("~"), UNIX_APP_DIR_NAME)

    # Idempotent directory creation
    try:
        os.makedirs(path, exist_ok=True)
    except OSError:
        pass

    return os.path.abspath(path)


def normalize_path(path: Optional[str]) -> str:
    """
    Expand ~ and environment variables, then make the path absolute.

    Blank input stays blank so the validator can reject it.

    Args:
        path: Path as written in the config file or on the command line.

    Returns:
        str: Normalized absolute path, or "" for blank input.
    """
    p = (path or "").strip()
    if not p:
        return ""
    p = os.path.expandvars(os.path.expanduser(p))
    return os.path.abspath(p)


def has_extension(path: str, extensions: Iterable[str]) -> bool:
    """Case-insensitive check of a file name against a set of dotted extensions."""
    ext = os.path.splitext(path)[1].lower()
    return bool(ext) and ext in {e.lower() for e in extensions}

# -----------------------------------------------------------------------------
# COLLISION-SAFE NAMING API
# -----------------------------------------------------------------------------

def unique_path(directory: str, stem: str, ext: str) -> str:
    """
    Compute a destination path that does not overwrite an existing file.

    Probes 'stem.ext', then 'stem_1.ext', 'stem_2.ext', ... until a free
    name is found.

    Args:
        directory: Target directory.
        stem: Base file name without extension.
        ext: Extension including the leading dot (may be empty).

    Returns:
        str: Absolute path of the first free candidate.
    """
    candidate = os.path.join(directory, f"{stem}{ext}")
    counter = 1
    while os.path.exists(candidate):
        candidate = os.path.join(directory, f"{stem}_{counter}{ext}")
        counter += 1
    return os.path.abspath(candidate)

# -----------------------------------------------------------------------------
# FILESYSTEM VALIDATION API
# -----------------------------------------------------------------------------

def list_matching_files(directory: str, extensions: Iterable[str]) -> List[str]:
    """
    List regular files of a directory (non-recursive) matching the extensions.

    Results are sorted by modification time so older files come first.

    Args:
        directory: Directory to inspect.
        extensions: Accepted dotted extensions.

    Returns:
        List[str]: Absolute paths of matching files.

    Raises:
        OSError: If the directory cannot be listed.
    """
    exts = list(extensions)
    found: List[Tuple[float, str]] = []
    with os.scandir(directory) as it:
        for entry in it:
            if not entry.is_file():
                continue
            if not has_extension(entry.name, exts):
                continue
            try:
                mtime = entry.stat().st_mtime
            except OSError:
                continue
            found.append((mtime, os.path.abspath(entry.path)))
    return [p for _, p in sorted(found)]


def is_writable_dir(path: str) -> bool:
    """Return True if 'path' is an existing directory the process can write to."""
    return os.path.isdir(path) and os.access(path, os.W_OK | os.X_OK)


def safe_mkdir(path: str) -> Tuple[bool, Optional[str]]:
    """
    Create a directory tree, reporting failure instead of raising.

    Returns:
        Tuple[bool, Optional[str]]: (created or already present, OS error text).
    """
    try:
        os.makedirs(path, exist_ok=True)
        return True, None
    except OSError as e:
        return False, str(e)
