"""Isolated execution of user-supplied color transforms.

A transform is any Python function taking an RGBA quadruple and returning
one. It is named by a handler string and loaded only inside a dedicated
worker interpreter, so nothing it does can reach objects in the host
process. Inside the worker the names ``page``, ``document`` and ``window`` are
additionally shadowed by an inert placeholder: reading, calling or mutating
them does nothing.

Limitation: other module-level values the transform closes over are visible
to it as usual. They belong to the worker's fresh copy of the transform's own
module, never to the host.
"""

from __future__ import annotations

import importlib
import importlib.util
import inspect
import multiprocessing
import sys
import types
from collections.abc import Callable, Sequence
from multiprocessing import TimeoutError as PoolTimeoutError
from multiprocessing.pool import Pool
from numbers import Real
from pathlib import Path
from typing import Any

from .colors import format_rgba
from .exceptions import SandboxError
from .logger import get_logger
from .models import RGBA

logger = get_logger()

SHADOWED_NAMES = ("page", "document", "window")
RGB_CHANNELS = 3
RGBA_CHANNELS = 4


class _Inert:
    """Stand-in for shadowed host objects.

    Every attribute, item and call yields the placeholder itself, writes are
    discarded, and it is falsy and empty.
    """

    __slots__ = ()

    def __getattr__(self, name: str) -> _Inert:
        return self

    def __setattr__(self, name: str, value: Any) -> None:
        pass

    def __delattr__(self, name: str) -> None:
        pass

    def __getitem__(self, key: Any) -> _Inert:
        return self

    def __setitem__(self, key: Any, value: Any) -> None:
        pass

    def __delitem__(self, key: Any) -> None:
        pass

    def __call__(self, *args: Any, **kwargs: Any) -> _Inert:
        return self

    def __bool__(self) -> bool:
        return False

    def __len__(self) -> int:
        return 0

    def __iter__(self) -> Any:
        return iter(())

    def __contains__(self, item: Any) -> bool:
        return False

    def __repr__(self) -> str:
        return "<inert>"


INERT = _Inert()


def load_transform(handler: str) -> Callable[..., Any]:
    """Load a transform function from a handler string.

    Supports two formats:
    - "module.path.function" - Import from an installed module
    - "file/path.py:function" - Load from a file

    Raises:
        SandboxError: If the handler cannot be loaded
    """
    if ":" in handler and handler.rsplit(":", 1)[0].endswith(".py"):
        file_path_str, func_name = handler.rsplit(":", 1)
        file_path = Path(file_path_str)

        if not file_path.exists():
            raise SandboxError(f"Transform file not found: {file_path}")

        spec = importlib.util.spec_from_file_location(
            f"recolor_transform_{file_path.stem}", file_path
        )
        if spec is None or spec.loader is None:
            raise SandboxError(f"Failed to load transform from file: {file_path}")

        module = importlib.util.module_from_spec(spec)
        sys.modules[spec.name] = module
        spec.loader.exec_module(module)

        if not hasattr(module, func_name):
            raise SandboxError(f"Transform function '{func_name}' not found in {file_path}")
        return getattr(module, func_name)  # type: ignore[no-any-return]

    if "." not in handler:
        raise SandboxError(
            f"Invalid transform handler '{handler}': "
            "expected 'module.function' or 'file.py:function'"
        )

    module_path, func_name = handler.rsplit(".", 1)
    try:
        module = importlib.import_module(module_path)
    except ImportError as e:
        raise SandboxError(f"Failed to import transform module '{module_path}': {e}") from e

    if not hasattr(module, func_name):
        raise SandboxError(
            f"Transform function '{func_name}' not found in module '{module_path}'"
        )
    return getattr(module, func_name)  # type: ignore[no-any-return]


def isolate(func: Callable[..., Any]) -> Callable[..., Any]:
    """Rebuild a function so the shadowed host names resolve to INERT.

    The rebuilt function runs against a private copy of its module globals,
    so ``global`` writes do not leak back into the module either. A bound
    method is rebound to a fresh, empty receiver.

    Raises:
        SandboxError: If the callable is not a plain Python function or method
    """
    bound = inspect.ismethod(func)
    target = func.__func__ if bound else func  # type: ignore[attr-defined]
    if not isinstance(target, types.FunctionType):
        raise SandboxError(f"Transform must be a Python function, got {type(func).__name__}")

    shadow_globals = dict(target.__globals__)
    for name in SHADOWED_NAMES:
        shadow_globals[name] = INERT

    isolated = types.FunctionType(
        target.__code__,
        shadow_globals,
        target.__name__,
        target.__defaults__,
        target.__closure__,
    )
    isolated.__kwdefaults__ = target.__kwdefaults__
    if bound:
        return types.MethodType(isolated, types.SimpleNamespace())
    return isolated


def coerce_rgba(value: Any) -> RGBA:
    """Validate a transform result; a missing alpha channel means opaque.

    Raises:
        ValueError: If the value is not 3 or 4 numbers
    """
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        raise ValueError(f"expected an RGBA sequence, got {value!r}")
    if len(value) not in (RGB_CHANNELS, RGBA_CHANNELS):
        raise ValueError(f"expected 3 or 4 channels, got {len(value)}")
    if not all(isinstance(c, Real) and not isinstance(c, bool) for c in value):
        raise ValueError(f"channels must be numbers, got {value!r}")
    channels = [float(c) for c in value]
    if len(channels) == RGB_CHANNELS:
        channels.append(1.0)
    return (channels[0], channels[1], channels[2], channels[3])


# Worker-process state, set once by _init_worker
_worker_transform: Callable[..., Any] | None = None
_worker_error: str | None = None


def _init_worker(handler: str) -> None:
    global _worker_transform, _worker_error  # noqa: PLW0603
    try:
        _worker_transform = isolate(load_transform(handler))
    except Exception as e:  # noqa: BLE001
        # Reported by _run_batch; the pool respawns workers whose initializer raises
        _worker_error = f"{type(e).__name__}: {e}"


def _run_batch(colors: list[RGBA]) -> list[tuple[RGBA | None, str | None]]:
    if _worker_transform is None:
        raise SandboxError(f"Transform could not be loaded: {_worker_error}")
    results: list[tuple[RGBA | None, str | None]] = []
    for rgba in colors:
        try:
            results.append((coerce_rgba(_worker_transform(rgba)), None))
        except Exception as e:  # noqa: BLE001
            results.append((None, f"{type(e).__name__}: {e}"))
    return results


class SandboxExecutor:
    """Runs one transform function in a separate worker interpreter.

    The worker is started on first use and reused for every batch until
    close(). Use as a context manager to guarantee shutdown.
    """

    def __init__(self, handler: str, timeout: float = 5.0) -> None:
        self.handler = handler
        self.timeout = timeout
        self._pool: Pool | None = None

    def __enter__(self) -> SandboxExecutor:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _ensure_pool(self) -> Pool:
        if self._pool is None:
            ctx = multiprocessing.get_context("spawn")
            self._pool = ctx.Pool(1, initializer=_init_worker, initargs=(self.handler,))
            logger.debug(f"Started transform worker for {self.handler}")
        return self._pool

    def map_colors(self, colors: Sequence[RGBA]) -> list[RGBA | None]:
        """Transform a batch of colors.

        Args:
            colors: Input colors

        Returns:
            One result per input; None where the transform raised or returned
            something that is not a color

        Raises:
            SandboxError: If the transform cannot be loaded, the batch times
                out, or the worker dies
        """
        if not colors:
            return []

        pending = self._ensure_pool().apply_async(_run_batch, ([tuple(c) for c in colors],))
        try:
            results = pending.get(timeout=self.timeout)
        except PoolTimeoutError as e:
            self.close()
            raise SandboxError(f"Transform {self.handler} timed out after {self.timeout}s") from e

        mapped: list[RGBA | None] = []
        for rgba, (result, error) in zip(colors, results):
            if error is not None:
                logger.warning(f"Transform failed for {format_rgba(rgba)}: {error}")
            mapped.append(result)
        return mapped

    def close(self) -> None:
        """Stop the worker process."""
        if self._pool is not None:
            self._pool.terminate()
            self._pool.join()
            self._pool = None
