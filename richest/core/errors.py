"""
Runner error types.

Every failure that can happen while handling a test request maps to one of
these; the WebSocket handler converts them into a single test result.
"""


class RichestError(Exception):
    """Base class for runner errors."""


class ProtocolError(RichestError):
    """Inbound message could not be parsed into a test request."""


class SessionError(RichestError):
    """Browser or page for a connection could not be provided."""


class ScratchFileError(RichestError):
    """Scratch module for submitted code could not be written."""


class LoadError(RichestError):
    """Submitted code could not be loaded or has no usable entry point."""


class ExecutionError(RichestError):
    """Entry point ran and raised (including failed assertions)."""
