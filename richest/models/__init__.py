"""
Data models for the Richest runner.

This package contains Pydantic models for:
- Test requests submitted by the dashboard
- Test results and statuses sent back by the runner
"""

from richest.models.test_request import (
    DEFAULT_ENTRYPOINT,
    TestRequest,
)

from richest.models.test_result import (
    TestStatus,
    TestResultMessage,
)

__all__ = [
    # test_request
    "DEFAULT_ENTRYPOINT",
    "TestRequest",
    # test_result
    "TestStatus",
    "TestResultMessage",
]
