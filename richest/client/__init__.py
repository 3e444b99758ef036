"""
Client side of the runner protocol.

A ``TestSuite`` owns one ``ClientConnection``, one ``TestRegistry`` and one
``SequentialRunner``; ``TestCase`` objects register into the suite's registry.
"""

from richest.client.connection import ClientConnection, ConnectionState, TestSocket
from richest.client.errors import (
    ClientError,
    NotConnectedError,
    ResponseParseError,
    ResultTimeoutError,
    SendError,
    TestFailedError,
)
from richest.client.pending import PendingResults
from richest.client.registry import Registration, TestCase, TestRegistry
from richest.client.runner import RunOutcome, SequentialRunner
from richest.client.suite import TestSuite

__all__ = [
    "ClientConnection",
    "ConnectionState",
    "TestSocket",
    "ClientError",
    "NotConnectedError",
    "ResponseParseError",
    "ResultTimeoutError",
    "SendError",
    "TestFailedError",
    "PendingResults",
    "Registration",
    "TestCase",
    "TestRegistry",
    "RunOutcome",
    "SequentialRunner",
    "TestSuite",
]
