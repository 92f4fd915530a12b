"""Recolor web page stylesheets through a color-only overlay."""

from .config import RecolorConfig, load_config
from .engine import RecolorEngine, recolor

__version__ = "0.1.0"

__all__ = ["RecolorConfig", "RecolorEngine", "load_config", "recolor"]
