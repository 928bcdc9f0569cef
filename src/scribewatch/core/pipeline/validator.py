from __future__ import annotations

"""
Configuration Validation Service.

Acts as the gatekeeper of service startup, turning the raw configuration
dictionary (defaults + JSON file + CLI overrides) into an immutable
ServiceConfig. Harmless inconsistencies are coerced and reported as
warnings; anything that would make the service misbehave at runtime is a
ConfigurationError.
"""

import logging
from typing import Any, Dict, List, Tuple

from scribewatch.domain import constants as const
from scribewatch.domain.config import ConfigurationError, ServiceConfig, get_default_config
from scribewatch.infra.fs import normalize_path

logger = logging.getLogger(__name__)

_PATH_FIELDS = ["watch_path", "output_path", "completed_path", "failed_path", "log_path"]
_POSITIVE_INT_FIELDS = ["check_interval", "timeout_seconds", "sweep_interval", "health_interval"]
_NON_NEGATIVE_FLOAT_FIELDS = [
    "readiness_initial_delay", "readiness_max_wait", "duplicate_window", "shutdown_grace",
]


# -----------------------------------------------------------------------------
# PUBLIC API
# -----------------------------------------------------------------------------

def validate_config(config: Any) -> Tuple[ServiceConfig, List[str]]:
    """
    Validate and normalize the provided configuration dictionary.

    Args:
        config: Raw configuration data (usually a dictionary).

    Returns:
        Tuple[ServiceConfig, List[str]]: The validated configuration and a
                                         list of coercion warnings.

    Raises:
        ConfigurationError: On empty paths, malformed language codes,
                            non-positive intervals or an empty extension set.
    """
    warnings: List[str] = []

    # 1. Base Type Validation
    if not isinstance(config, dict):
        raise ConfigurationError(
            f"Invalid config type: expected dict, received {type(config).__name__}."
        )

    merged: Dict[str, Any] = get_default_config()
    merged.update(config)

    # 2. Directory roles
    paths: Dict[str, str] = {}
    for field in _PATH_FIELDS:
        value = merged.get(field)
        if value is not None and not isinstance(value, str):
            raise ConfigurationError(f"Invalid field '{field}': expected a path string.")
        normalized = normalize_path(value)
        if not normalized:
            raise ConfigurationError(f"Invalid field '{field}': path must not be empty.")
        paths[field] = normalized

    if paths["watch_path"] in (paths["completed_path"], paths["failed_path"], paths["output_path"]):
        raise ConfigurationError("The watch directory must differ from every output directory.")

    # 3. Transcription parameters
    language = _as_str(merged.get("language"), "language").lower()
    if not const.LANGUAGE_PATTERN.match(language):
        raise ConfigurationError(
            f"Invalid field 'language': '{language}' is not a two/three-letter code or 'auto'."
        )

    model = _as_str(merged.get("model"), "model")
    if model not in const.KNOWN_MODELS:
        warnings.append(f"Model '{model}' is not a known whisper model name; passing it through.")

    command = _as_str(merged.get("transcriber_command"), "transcriber_command")

    ints: Dict[str, int] = {}
    for field in _POSITIVE_INT_FIELDS:
        ints[field] = _as_int(merged.get(field), field, warnings)
        if ints[field] <= 0:
            raise ConfigurationError(f"Invalid field '{field}': must be a positive integer.")

    if not const.SWEEP_INTERVAL_MIN <= ints["sweep_interval"] <= const.SWEEP_INTERVAL_MAX:
        raise ConfigurationError(
            f"Invalid field 'sweep_interval': must be between "
            f"{const.SWEEP_INTERVAL_MIN} and {const.SWEEP_INTERVAL_MAX} seconds."
        )

    max_retries = _as_int(merged.get("max_retries"), "max_retries", warnings)
    if max_retries < 0:
        raise ConfigurationError("Invalid field 'max_retries': must not be negative.")

    floats: Dict[str, float] = {}
    for field in _NON_NEGATIVE_FLOAT_FIELDS:
        floats[field] = _as_float(merged.get(field), field, warnings)
        if floats[field] < 0:
            raise ConfigurationError(f"Invalid field '{field}': must not be negative.")

    extensions = _normalize_extensions(merged.get("extensions"), warnings)

    log_level = str(merged.get("log_level") or "INFO").strip().upper()

    for w in warnings:
        logger.debug(f"Config coercion: {w}")

    return ServiceConfig(
        language=language,
        model=model,
        transcriber_command=command,
        max_retries=max_retries,
        extensions=tuple(extensions),
        log_level=log_level,
        **paths,
        **ints,
        **floats,
    ), warnings


# -----------------------------------------------------------------------------
# PRIVATE HELPERS: TYPE COERCION
# -----------------------------------------------------------------------------

def _as_str(value: Any, field: str) -> str:
    """Require a non-blank string."""
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError(f"Invalid field '{field}': expected a non-empty string.")
    return value.strip()


def _as_int(value: Any, field: str, warnings: List[str]) -> int:
    """Coerce numeric strings into integers, rejecting booleans and fractions."""
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid field '{field}': expected int, received bool.")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            converted = int(value.strip())
        except ValueError:
            raise ConfigurationError(f"Invalid field '{field}': '{value}' is not an integer.")
        warnings.append(f"Field '{field}' converted from '{value}' to {converted}.")
        return converted
    raise ConfigurationError(
        f"Invalid field '{field}': expected int, received {type(value).__name__}."
    )


def _as_float(value: Any, field: str, warnings: List[str]) -> float:
    """Coerce ints and numeric strings into floats."""
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid field '{field}': expected number, received bool.")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            converted = float(value.strip())
        except ValueError:
            raise ConfigurationError(f"Invalid field '{field}': '{value}' is not a number.")
        warnings.append(f"Field '{field}' converted from '{value}' to {converted}.")
        return converted
    raise ConfigurationError(
        f"Invalid field '{field}': expected number, received {type(value).__name__}."
    )

# -----------------------------------------------------------------------------
# PRIVATE HELPERS: DOMAIN NORMALIZATION
# -----------------------------------------------------------------------------

def _normalize_extensions(value: Any, warnings: List[str]) -> List[str]:
    """Accept a list or CSV string, lower-case it and prefix every entry with a dot."""
    if isinstance(value, str):
        warnings.append("Field 'extensions' converted from CSV string to list.")
        value = value.split(",")
    if not isinstance(value, (list, tuple)):
        raise ConfigurationError("Invalid field 'extensions': expected a list of extensions.")

    out: List[str] = []
    for ext in value:
        if not isinstance(ext, str):
            warnings.append(f"Extension entry {ext!r} discarded: expected str.")
            continue
        e = ext.strip().lower()
        if not e:
            continue
        if not e.startswith("."):
            warnings.append(f"Extension '{ext}' corrected to '.{e}'.")
            e = "." + e
        if e not in out:
            out.append(e)

    if not out:
        raise ConfigurationError("Invalid field 'extensions': at least one extension is required.")
    return out
