"""
Client-side error types.

Every way a test run can go wrong on the client surfaces as one of these,
raised from ``TestCase.run``.
"""

from typing import Optional

from richest.models import TestStatus


class ClientError(Exception):
    """Base class for client errors."""


class NotConnectedError(ClientError):
    """No open socket to send the test through."""


class SendError(ClientError):
    """Test request could not be written to the socket."""


class ResultTimeoutError(ClientError):
    """No result arrived within the configured wait."""


class ResponseParseError(ClientError):
    """Server sent a message that could not be parsed."""


class TestFailedError(ClientError):
    """Server reported the test as failed or errored."""

    __test__ = False

    def __init__(self, message: str, status: TestStatus, test_id: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.test_id = test_id
