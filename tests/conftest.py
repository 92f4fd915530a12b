"""Pytest configuration and fixtures for recolor tests."""

from __future__ import annotations

import textwrap
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from recolor import context
from recolor.logger import reset_logger

EXAMPLES_DIR = Path(__file__).parent.parent / "examples"


@pytest.fixture(autouse=True)
def clean_state() -> Iterator[None]:
    """Reset the logger and the global config context around every test."""
    reset_logger()
    context.set_config_path(None)
    yield
    reset_logger()
    context.set_config_path(None)


@pytest.fixture
def examples_dir() -> Path:
    """Directory holding the example page, stylesheet, config and transforms."""
    return EXAMPLES_DIR


@pytest.fixture
def write_transform(tmp_path: Path) -> Callable[..., str]:
    """Write a transform module to a temp file and return its handler string."""

    def _write(source: str, func: str = "transform", name: str = "transform") -> str:
        path = tmp_path / f"{name}.py"
        path.write_text(textwrap.dedent(source))
        return f"{path}:{func}"

    return _write
