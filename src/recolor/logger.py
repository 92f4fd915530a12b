"""Logging configuration for recolor with custom verbosity levels."""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

# Custom levels between the standard ones
CHANGES_LEVEL = 25  # Between INFO (20) and WARNING (30) - per-pass results
CHECKS_LEVEL = 15  # Between DEBUG (10) and INFO (20) - per-rule and per-token decisions

logging.addLevelName(CHANGES_LEVEL, "CHANGES")
logging.addLevelName(CHECKS_LEVEL, "CHECKS")

VERBOSITY_SILENT = 0  # Warnings and errors: failed sources, failed transforms
VERBOSITY_CHANGES = 1  # Overlays produced, sources skipped
VERBOSITY_CHECKS = 2  # Declarations kept, tokens mapped
VERBOSITY_DEBUG = 3  # Everything

_VERBOSITY_LEVELS = {
    VERBOSITY_SILENT: logging.WARNING,
    VERBOSITY_CHANGES: CHANGES_LEVEL,
    VERBOSITY_CHECKS: CHECKS_LEVEL,
    VERBOSITY_DEBUG: logging.DEBUG,
}


class RecolorLogger(logging.Logger):
    """Logger with semantic verbosity methods.

    - changes(): verbosity level 1 - what a pass produced
    - checks(): verbosity level 2 - what the walker and palette builder decided
    - debug(): verbosity level 3 - everything else
    """

    def changes(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log changes (verbosity level 1)."""
        if self.isEnabledFor(CHANGES_LEVEL):
            self._log(CHANGES_LEVEL, msg, args, **kwargs)

    def checks(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log checks (verbosity level 2)."""
        if self.isEnabledFor(CHECKS_LEVEL):
            self._log(CHECKS_LEVEL, msg, args, **kwargs)


def get_logger() -> RecolorLogger:
    """Get the recolor logger instance (singleton).

    Returns:
        The recolor logger singleton instance
    """
    logging.setLoggerClass(RecolorLogger)
    logger = logging.getLogger("recolor")
    assert isinstance(logger, RecolorLogger)
    return logger


def setup_logger(verbosity: int, stream: TextIO | None = None) -> None:
    """Configure the recolor logger with a verbosity level.

    Warnings are always shown: an unreachable stylesheet or a failing transform
    is reported even in silent mode, since it never aborts a pass.

    Args:
        verbosity: 0=silent (warnings and errors), 1=changes, 2=checks, 3=debug
        stream: Output stream; sys.stderr when omitted
    """
    logger = get_logger()
    logger.handlers.clear()
    logger.setLevel(_VERBOSITY_LEVELS.get(verbosity, logging.WARNING))

    handler = logging.StreamHandler(sys.stderr if stream is None else stream)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    # The CLI handler is the only output; don't double-print through root
    logger.propagate = False


def reset_logger() -> None:
    """Reset the logger to clean state between tests."""
    logger = get_logger()
    logger.handlers.clear()
    logger.setLevel(logging.WARNING)
    logger.propagate = True
