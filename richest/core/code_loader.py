"""
Code Loader / Executor

Turns submitted source text into a callable entry point and runs it:
- writes the source to a uniquely named scratch module
- loads it with importlib in a worker thread and resolves the entry point
- runs the entry point under a time limit (plain functions in a worker thread)
- always deletes the scratch module afterwards
"""

from __future__ import annotations

import asyncio
import importlib.machinery
import importlib.util
import inspect
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import Any, Callable, Optional
from uuid import uuid4

from playwright.async_api import Page

from richest.config import settings
from richest.core.assertions import expect as default_expect
from richest.core.errors import ExecutionError, LoadError, ScratchFileError
from richest.models import DEFAULT_ENTRYPOINT

logger = logging.getLogger(__name__)

SCRATCH_SUFFIX = ".py"


@dataclass(frozen=True)
class TestContext:
    """Argument passed to a test entry point."""

    __test__ = False

    page: Page
    expect: Callable[..., Any] = default_expect
    # Resolves named pages for multi-page tests.
    open_page: Optional[Callable[[str], Any]] = field(default=None, repr=False)

    async def page_named(self, name: str) -> Page:
        if self.open_page is None:
            raise RuntimeError("Named pages are not available in this context")
        return await self.open_page(name)


@dataclass(frozen=True)
class ExecutionOutcome:
    passed: bool
    error: Optional[str] = None


class _ScratchModuleLoader(importlib.machinery.SourceFileLoader):
    """Source loader that never writes bytecode caches next to scratch files."""

    def set_data(self, path, data, *, _mode=0o666):  # type: ignore[override]
        return None


def _error_message(exc: BaseException) -> str:
    message = str(exc)
    return message if message else type(exc).__name__


def write_scratch_module(source: str, scratch_dir: Optional[Path] = None) -> Path:
    """
    Write ``source`` to a new scratch module and return its path.

    Raises:
        ScratchFileError: directory or file could not be created, or the
            generated name already exists.
    """
    directory = scratch_dir or settings.scratch_dir
    path = directory / f"{uuid4().hex}{SCRATCH_SUFFIX}"
    try:
        directory.mkdir(parents=True, exist_ok=True)
        # "x" refuses to overwrite an existing file.
        with path.open("x", encoding="utf-8") as fh:
            fh.write(source)
    except FileExistsError as e:
        raise ScratchFileError(f"Scratch file already exists: {path.name}") from e
    except OSError as e:
        raise ScratchFileError(f"Failed to write scratch file: {e}") from e
    return path


def remove_scratch_module(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        logger.warning("Scratch file already removed: %s", path)
    except OSError as e:
        logger.warning("Failed to delete scratch file %s: %s", path, e)


def load_module(path: Path) -> ModuleType:
    """Execute the scratch module at ``path`` and return it."""
    module_name = f"richest_scratch_{path.stem}"
    loader = _ScratchModuleLoader(module_name, str(path))
    spec = importlib.util.spec_from_file_location(module_name, path, loader=loader)
    if spec is None or spec.loader is None:
        raise LoadError(f"Cannot load test code from {path.name}")
    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except BaseException as e:
        # Module code may call sys.exit(); that is a broken test, not a shutdown.
        raise LoadError(f"Failed to load test code: {_error_message(e)}") from e
    return module


def resolve_entrypoint(module: ModuleType, name: str) -> Callable[..., Any]:
    if not hasattr(module, name):
        raise LoadError(f"Entry point '{name}' not found in test code")
    entry = getattr(module, name)
    if not callable(entry):
        raise LoadError(f"Entry point '{name}' is not callable")
    return entry


def _time_limit(timeout_seconds: Optional[float]) -> Optional[float]:
    timeout = (
        settings.EXECUTION_TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds
    )
    return timeout if timeout > 0 else None


def _is_cancelling() -> bool:
    task = asyncio.current_task()
    return task is not None and task.cancelling() > 0


async def import_module(
    path: Path, *, timeout_seconds: Optional[float] = None
) -> ModuleType:
    """Run ``load_module`` off the event loop, bounded by the execution limit."""
    timeout = _time_limit(timeout_seconds)
    scope: Optional[asyncio.Timeout] = None
    try:
        async with asyncio.timeout(timeout) as scope:
            return await asyncio.to_thread(load_module, path)
    except TimeoutError as e:
        if scope is not None and scope.expired():
            raise ExecutionError(f"Test timed out after {timeout:g}s") from e
        raise


async def invoke_entrypoint(
    entry: Callable[..., Any],
    context: TestContext,
    *,
    timeout_seconds: Optional[float] = None,
) -> None:
    """
    Call ``entry`` and await it if it returned an awaitable.

    Plain functions run in a worker thread so blocking code cannot stall
    other connections. On timeout the thread is abandoned, not stopped.
    """
    timeout = _time_limit(timeout_seconds)
    scope: Optional[asyncio.Timeout] = None
    try:
        async with asyncio.timeout(timeout) as scope:
            if inspect.iscoroutinefunction(entry):
                result = entry(context)
            else:
                result = await asyncio.to_thread(entry, context)
            if inspect.isawaitable(result):
                await result
    except TimeoutError as e:
        if scope is not None and scope.expired():
            raise ExecutionError(f"Test timed out after {timeout:g}s") from e
        raise ExecutionError(_error_message(e)) from e
    except asyncio.CancelledError as e:
        if _is_cancelling():
            raise
        raise ExecutionError(_error_message(e)) from e
    except BaseException as e:
        # SystemExit and KeyboardInterrupt raised by test code included.
        raise ExecutionError(_error_message(e)) from e


async def execute_test(
    code: str,
    entrypoint: Optional[str],
    context: TestContext,
    *,
    scratch_dir: Optional[Path] = None,
    timeout_seconds: Optional[float] = None,
) -> ExecutionOutcome:
    """
    Load ``code`` and run its entry point against ``context``.

    Load and execution failures are reported as a failed outcome. Only
    ScratchFileError propagates; the caller reports it as an error.
    """
    name = entrypoint or DEFAULT_ENTRYPOINT
    path = write_scratch_module(code, scratch_dir)
    logger.debug("Wrote scratch module %s", path)
    try:
        module = await import_module(path, timeout_seconds=timeout_seconds)
        entry = resolve_entrypoint(module, name)
        await invoke_entrypoint(entry, context, timeout_seconds=timeout_seconds)
    except (LoadError, ExecutionError) as e:
        logger.info("Test failed: %s", e)
        return ExecutionOutcome(passed=False, error=str(e))
    finally:
        remove_scratch_module(path)
    return ExecutionOutcome(passed=True)
