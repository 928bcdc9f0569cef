from __future__ import annotations

"""
CLI Argument Definition and Mapping.

Defines the command-line interface schema and translates the raw argparse
namespace into configuration overrides understood by the validator.
"""

import argparse
from typing import Any, Dict, List, Optional

# -----------------------------------------------------------------------------
# ARGUMENT DEFINITION
# -----------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    """
    Construct the argument parser for the scribewatch service.

    Returns:
        argparse.ArgumentParser: Configured parser instance.
    """
    p = argparse.ArgumentParser(
        prog="scribewatch",
        description="Watch a folder for audio files and transcribe them in the background.",
    )

    # --- Configuration Source ---
    p.add_argument(
        "-c", "--config",
        dest="config_file",
        default=None,
        help="JSON configuration file (default: ~/.scribewatch/config.json).",
    )
    p.add_argument(
        "--use-defaults",
        action="store_true",
        help="Ignore the persistent configuration file.",
    )

    # --- Directory Roles ---
    p.add_argument("-w", "--watch", dest="watch_path", default=None,
                   help="Directory observed for new audio files.")
    p.add_argument("-o", "--output", dest="output_path", default=None,
                   help="Directory receiving transcripts.")
    p.add_argument("--completed", dest="completed_path", default=None,
                   help="Archive directory for transcribed audio.")
    p.add_argument("--failed", dest="failed_path", default=None,
                   help="Archive directory for audio that failed.")
    p.add_argument("--logs", dest="log_path", default=None,
                   help="Directory for the daily log files.")

    # --- Transcription ---
    p.add_argument("-l", "--language", default=None,
                   help="Two/three-letter language code, or 'auto'.")
    p.add_argument("-m", "--model", default=None,
                   help="Model identifier passed to the transcription tool.")
    p.add_argument("--command", dest="transcriber_command", default=None,
                   help="Executable of the transcription tool (default: whisper).")
    p.add_argument("--timeout", dest="timeout_seconds", default=None,
                   help="Per-attempt timeout in seconds.")
    p.add_argument("--max-retries", dest="max_retries", default=None,
                   help="Retries granted to transient failures.")
    p.add_argument("--ext", dest="extensions", default=None,
                   help="Comma-separated list of accepted extensions.")

    # --- Scheduling ---
    p.add_argument("-i", "--interval", dest="check_interval", default=None,
                   help="Queue polling interval in seconds.")

    # --- Diagnostic Tools ---
    p.add_argument("--dump-config", action="store_true",
                   help="Print the validated configuration as JSON and exit.")
    p.add_argument("--check-config", action="store_true",
                   help="Validate the configuration and exit.")
    p.add_argument("--debug", action="store_true",
                   help="Elevate logging verbosity to DEBUG.")

    return p

# -----------------------------------------------------------------------------
# ARGUMENT MAPPING
# -----------------------------------------------------------------------------

def args_to_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """
    Translate the argparse Namespace into configuration overrides.

    Only options given on the command line appear in the result; numeric
    values stay strings and are coerced by the validator.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Dict[str, Any]: Configuration overrides subset.
    """
    overrides: Dict[str, Any] = {}

    for key in (
            "watch_path", "output_path", "completed_path", "failed_path", "log_path",
            "language", "model", "transcriber_command",
            "timeout_seconds", "max_retries", "check_interval",
    ):
        value = getattr(args, key, None)
        if value is not None:
            overrides[key] = value

    if args.extensions:
        overrides["extensions"] = _split_csv(args.extensions)
    if args.debug:
        overrides["log_level"] = "DEBUG"

    return overrides

# -----------------------------------------------------------------------------
# HELPERS
# -----------------------------------------------------------------------------

def _split_csv(value: Optional[str]) -> Optional[List[str]]:
    """
    Convert a comma-separated string into a list of sanitized strings.
    """
    if value is None:
        return None
    parts = [x.strip() for x in value.split(",")]
    return [x for x in parts if x]
