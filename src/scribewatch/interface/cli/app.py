from __future__ import annotations

"""
Command Line Interface (CLI) Application Controller.

Orchestrates the service lifecycle from the terminal: configuration
resolution (defaults, persistent file, CLI overrides), validation,
logging bootstrap, and the blocking run of the ServiceController.
"""

import json
import sys
from typing import Any, Dict, List, Optional

from scribewatch.core.pipeline.validator import validate_config
from scribewatch.core.services.controller import ServiceController
from scribewatch.domain.config import ConfigurationError, get_default_config, load_config
from scribewatch.infra.logging import LoggingConfig, configure_logging, get_logger
from scribewatch.interface.cli import args as cli_args

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130

# -----------------------------------------------------------------------------
# ENTRYPOINT ORCHESTRATOR
# -----------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None) -> int:
    """
    Execute the main CLI application workflow.

    Args:
        argv: Optional list of command line arguments. Defaults to sys.argv.

    Returns:
        int: Process exit code (0 clean stop, 2 configuration error,
             130 interrupted, 1 unexpected failure).
    """
    # 1. Argument parsing phase
    parser = cli_args.build_parser()
    args = parser.parse_args(argv)

    # 2. Console logging until the log directory is known
    configure_logging(LoggingConfig(level="DEBUG" if args.debug else "INFO", console=True))

    # 3. Resolve and validate configuration (startup-fatal on error)
    try:
        base_conf = get_default_config() if args.use_defaults else load_config(args.config_file)
        raw_conf = _merge_config(base_conf, cli_args.args_to_overrides(args))
        config, warnings = validate_config(raw_conf)
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    for w in warnings:
        logger.warning(f"Configuration Constraint: {w}")

    if args.dump_config:
        print(json.dumps(config.as_dict(), ensure_ascii=False, indent=2))
        return EXIT_OK
    if args.check_config:
        print("Configuration OK.")
        return EXIT_OK

    # 4. Persistent daily log files
    configure_logging(
        LoggingConfig(level=config.log_level, console=True, log_dir=config.log_path),
        force=True,
    )

    # 5. Service execution phase
    controller = ServiceController(config)
    try:
        controller.start()
    except ConfigurationError as e:
        logger.error(f"Startup aborted: {e}")
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    try:
        controller.run_forever()
    except KeyboardInterrupt:
        logger.warning("Interrupted; shutting down.")
        controller.shutdown()
        return EXIT_INTERRUPTED

    return EXIT_OK

# -----------------------------------------------------------------------------
# CONFIGURATION MERGING
# -----------------------------------------------------------------------------

def _merge_config(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """
    Perform a shallow merge of override values into the base configuration.

    Only keys already known to the base configuration are merged, which
    keeps stray keys out of the schema.

    Args:
        base: The primary configuration dictionary.
        overrides: New values to inject.

    Returns:
        Dict[str, Any]: The merged configuration state.
    """
    out = dict(base)
    for k, v in overrides.items():
        if k in out and v is not None:
            out[k] = v
    return out

# -----------------------------------------------------------------------------
# CLI ENTRYPOINT
# -----------------------------------------------------------------------------

if __name__ == "__main__":
    sys.exit(main())
