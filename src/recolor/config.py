"""Recolor configuration.

A single YAML file (recolor_config.yaml) describes which pages are recolored
and how:

    url_include: "^https://example\\.com/"
    url_exclude: "/admin/"
    target_colors: ["#002b36", "#586e75", "#eee8d5", "#fdf6e3"]
    swap_rules:
      "#002b36": "#073642"
    swap_include: ".*"
    transform_function: "transforms/night.py:darken"

When ``transform_function`` is set it replaces the target-color palette and
the swap step entirely.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from . import context
from .colors import parse_color
from .exceptions import ColorParseError, ConfigError

DEFAULT_CONFIG_NAME = "recolor_config.yaml"


def _check_pattern(value: str | None) -> str | None:
    if value is None:
        return None
    try:
        re.compile(value)
    except re.error as e:
        raise ValueError(f"Invalid regular expression {value!r}: {e}") from e
    return value


def _check_color(value: str) -> str:
    try:
        parse_color(value)
    except ColorParseError as e:
        raise ValueError(str(e)) from e
    return value


class RecolorConfig(BaseModel):
    """Read-only settings for a recolor pass."""

    url_include: str = ".*"  # Pages to recolor (re.search against the page URL)
    url_exclude: str | None = None  # Pages never recolored
    target_colors: list[str] = Field(default_factory=list)  # Palette to move colors onto
    swap_rules: dict[str, str] = Field(default_factory=dict)  # color -> color, after palette
    swap_include: str = ".*"  # Pages where swap_rules apply
    swap_exclude: str | None = None
    transform_function: str | None = None  # "module.function" or "file.py:function"
    transform_timeout: float = Field(default=5.0, gt=0)  # Seconds per batch of colors
    fetch_timeout: float = Field(default=10.0, gt=0)  # Seconds per linked stylesheet

    model_config = {"frozen": True}

    @field_validator("url_include", "url_exclude", "swap_include", "swap_exclude")
    @classmethod
    def _validate_pattern(cls, value: str | None) -> str | None:
        return _check_pattern(value)

    @field_validator("target_colors")
    @classmethod
    def _validate_targets(cls, value: list[str]) -> list[str]:
        return [_check_color(color) for color in value]

    @field_validator("swap_rules")
    @classmethod
    def _validate_swaps(cls, value: dict[str, str]) -> dict[str, str]:
        for source, target in value.items():
            _check_color(source)
            _check_color(target)
        return value

    @field_validator("transform_function")
    @classmethod
    def _validate_transform(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            raise ValueError("transform_function must not be empty")
        return value

    def should_recolor(self, url: str) -> bool:
        """Check whether a page URL is gated in for recoloring."""
        return _gate(url, self.url_include, self.url_exclude)

    def should_swap(self, url: str) -> bool:
        """Check whether swap rules apply on a page URL."""
        return _gate(url, self.swap_include, self.swap_exclude)


def _gate(url: str, include: str, exclude: str | None) -> bool:
    if not re.search(include, url):
        return False
    return exclude is None or not re.search(exclude, url)


def load_config(config_path: Path | str) -> RecolorConfig:
    """Load recolor configuration from a YAML file.

    Args:
        config_path: Path to recolor_config.yaml

    Returns:
        Validated configuration

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ConfigError: If the file is empty, not a mapping, or fails validation
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        with config_path.open(encoding="utf-8") as f:
            data: Any = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML in {config_path}: {e}") from e

    if not data:
        raise ConfigError(f"Empty configuration file: {config_path}")
    if not isinstance(data, dict):
        raise ConfigError(f"Config must contain a mapping at the root level: {config_path}")

    try:
        return RecolorConfig.model_validate(data)
    except PydanticValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_path}: {e}") from e


def discover_config(config_path: Path | None = None) -> RecolorConfig | None:
    """Find and load the configuration for this process.

    Search order:
    1. Explicit config_path argument
    2. Global context (set via CLI --config)
    3. Current directory / recolor_config.yaml

    Returns:
        The loaded config, or None if no config file exists
    """
    if config_path is not None:
        return load_config(config_path)

    cached = context.get_active_config()
    if cached is not None:
        return cached

    ctx_path = context.get_config_path()
    candidate = ctx_path if ctx_path is not None else Path(DEFAULT_CONFIG_NAME)
    if ctx_path is None and not candidate.exists():
        return None

    config = load_config(candidate)
    context.set_active_config(config)
    return config
