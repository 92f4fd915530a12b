"""Process-wide recolor state set by the CLI.

The configuration is owned outside the recolor pipeline and never mutated
during a pass, so every engine created in this process reads the same object.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config import RecolorConfig


class _Context:
    def __init__(self) -> None:
        self.config_path: Path | None = None
        self.config: RecolorConfig | None = None


_context = _Context()


def get_config_path() -> Path | None:
    """Get the config path given on the command line, if any."""
    return _context.config_path


def set_config_path(path: Path | None) -> None:
    """Set the config path and drop any config loaded from a previous path."""
    _context.config_path = path
    _context.config = None


def get_active_config() -> RecolorConfig | None:
    """Get the config already loaded for this process."""
    return _context.config


def set_active_config(config: RecolorConfig | None) -> None:
    """Remember the loaded config for later commands in this process."""
    _context.config = config
