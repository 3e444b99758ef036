"""
Test Registry

Client-side record of the tests enrolled in one suite. Registration order is
the order in which ``SequentialRunner.run_all`` executes them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, Optional
from uuid import uuid4

from richest.client.errors import ClientError, NotConnectedError, TestFailedError
from richest.config import settings
from richest.models import TestRequest, TestStatus

if TYPE_CHECKING:
    from richest.client.connection import TestSocket

logger = logging.getLogger(__name__)

RunFn = Callable[[Optional["TestSocket"]], Awaitable[None]]


@dataclass(frozen=True)
class Registration:
    id: str
    run: RunFn


class TestRegistry:
    """Ordered registrations for one client session."""

    __test__ = False

    def __init__(self) -> None:
        self._registrations: list[Registration] = []

    def __len__(self) -> int:
        return len(self._registrations)

    def __iter__(self):
        return iter(self.snapshot())

    @property
    def ids(self) -> list[str]:
        return [r.id for r in self._registrations]

    def register(self, registration: Registration) -> None:
        self._registrations.append(registration)

    def unregister(self, test_id: str) -> None:
        self._registrations = [r for r in self._registrations if r.id != test_id]

    def snapshot(self) -> list[Registration]:
        return list(self._registrations)


class TestCase:
    """
    One test snippet as shown on the dashboard.

    Tracks its own status and last error, and runs itself over a socket.
    """

    __test__ = False

    def __init__(
        self,
        title: str,
        code: str,
        func: Optional[str] = None,
        *,
        test_id: Optional[str] = None,
        result_timeout: Optional[float] = None,
    ) -> None:
        self.id = test_id or uuid4().hex
        self.title = title
        self.code = code
        self.func = func
        self.status = TestStatus.NOT_STARTED
        self.error: Optional[str] = None
        self.result_timeout = (
            settings.CLIENT_RESULT_TIMEOUT_SECONDS
            if result_timeout is None
            else result_timeout
        )
        self._registry: Optional[TestRegistry] = None

    @property
    def request(self) -> TestRequest:
        return TestRequest(id=self.id, title=self.title, code=self.code, func=self.func)

    @property
    def is_running(self) -> bool:
        return self.status == TestStatus.RUNNING

    def mount(self, registry: TestRegistry) -> None:
        if self._registry is not None:
            raise ClientError(f"Test {self.id} is already mounted")
        registry.register(Registration(id=self.id, run=self.run))
        self._registry = registry

    def unmount(self) -> None:
        if self._registry is not None:
            self._registry.unregister(self.id)
            self._registry = None

    async def run(self, socket: Optional[TestSocket]) -> None:
        """
        Send this test over ``socket`` and wait for its result.

        Raises:
            NotConnectedError: no socket was supplied.
            TestFailedError: the server reported failed or error.
            ClientError: sending, parsing or waiting for the result failed.
        """
        if socket is None:
            self.error = "WebSocket not connected"
            raise NotConnectedError(self.error)

        self.error = None
        self.status = TestStatus.RUNNING

        try:
            result = await socket.submit(self.request, timeout=self.result_timeout)
        except ClientError as e:
            self.status = TestStatus.FAILED
            self.error = str(e)
            raise

        self.status = result.status
        if result.status in (TestStatus.FAILED, TestStatus.ERROR):
            self.error = result.error or result.status.value
            raise TestFailedError(self.error, result.status, test_id=self.id)
        logger.debug("Test %s passed", self.id)
