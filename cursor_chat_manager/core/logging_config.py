"""
Logging setup for the command-line entry point.

Library modules only create module-level loggers; handlers and levels are
configured once here.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(debug: bool = False) -> None:
    """
    Configure the root logger.

    Parameters
    ----------
    debug : bool
        If True, log at DEBUG level; otherwise INFO. Affects log volume only.
    """
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Whether debug-level sample logging should run for this logger."""
    return logger.isEnabledFor(logging.DEBUG)
