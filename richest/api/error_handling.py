"""
Centralized error handling for test requests.

Goal: every failure while handling one request becomes exactly one test
result on the socket, never a dropped connection or a crashed process.
"""

from __future__ import annotations

import logging
import traceback
from dataclasses import dataclass
from typing import Optional

from richest.config import settings
from richest.core.errors import (
    ExecutionError,
    LoadError,
    ProtocolError,
    RichestError,
    ScratchFileError,
    SessionError,
)
from richest.models import TestResultMessage, TestStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ResultError:
    status: TestStatus
    code: str
    message: str


def _maybe_debug(exc: BaseException) -> Optional[str]:
    if settings.APP_DEBUG:
        return str(exc)
    return None


def classify_error(exc: BaseException) -> ResultError:
    """
    Map an exception raised while handling a request to a result status.

    Authoring problems in the submitted code (missing entry point, raised
    exceptions, failed assertions) are test failures; everything that keeps
    the runner from executing the code at all is an error.
    """
    if isinstance(exc, ProtocolError):
        return ResultError(
            TestStatus.ERROR, "PROTOCOL_ERROR", f"Invalid test request: {exc}"
        )
    if isinstance(exc, SessionError):
        return ResultError(TestStatus.ERROR, "SESSION_ERROR", str(exc))
    if isinstance(exc, ScratchFileError):
        return ResultError(TestStatus.ERROR, "SCRATCH_FILE_ERROR", str(exc))
    if isinstance(exc, LoadError):
        return ResultError(TestStatus.FAILED, "LOAD_ERROR", str(exc))
    if isinstance(exc, ExecutionError):
        return ResultError(TestStatus.FAILED, "EXECUTION_ERROR", str(exc))
    if isinstance(exc, RichestError):
        return ResultError(TestStatus.ERROR, "RUNNER_ERROR", str(exc))

    message = "Internal error while running test."
    debug = _maybe_debug(exc)
    if debug:
        message = f"{message} {debug}"
    return ResultError(TestStatus.ERROR, "INTERNAL_ERROR", message)


def result_for_exception(test_id: Optional[str], exc: BaseException) -> TestResultMessage:
    """
    Convert an exception into the single result reported for a request.
    """
    error = classify_error(exc)
    if error.code == "INTERNAL_ERROR":
        # Log the full traceback to the server console for debugging
        logger.error(
            "Unexpected error handling test '%s': %s\n%s",
            test_id or "?",
            exc,
            "".join(traceback.format_exception(exc)),
        )
    else:
        logger.info("Test '%s' %s (%s): %s", test_id or "?", error.status.value, error.code, exc)

    return TestResultMessage(
        test_id=test_id or "",
        status=error.status,
        error=error.message,
    )
