"""
Test Suite

Owns everything one dashboard session needs: the connection to the runner,
the registry of tests and the sequential runner. Tests receive the registry
from the suite; there is no shared global state.
"""

from __future__ import annotations

from typing import Optional

from richest.client.connection import ClientConnection, ConnectionState, Connector
from richest.client.registry import TestCase, TestRegistry
from richest.client.runner import RunOutcome, SequentialRunner


class TestSuite:
    __test__ = False

    def __init__(
        self,
        title: str,
        server: Optional[str],
        *,
        connector: Optional[Connector] = None,
        reconnect_delay: Optional[float] = None,
    ) -> None:
        self.title = title
        self.connection = ClientConnection(
            server, connector=connector, reconnect_delay=reconnect_delay
        )
        self.registry = TestRegistry()
        self.runner = SequentialRunner(self.registry, self.connection)
        self.tests: list[TestCase] = []

    async def __aenter__(self) -> "TestSuite":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    @property
    def connection_status(self) -> ConnectionState:
        return self.connection.state

    @property
    def error_summary(self) -> Optional[str]:
        return self.connection.error_summary

    @property
    def is_running(self) -> bool:
        return self.runner.is_running

    def add_test(
        self,
        title: str,
        code: str,
        func: Optional[str] = None,
        *,
        result_timeout: Optional[float] = None,
    ) -> TestCase:
        test = TestCase(title, code, func, result_timeout=result_timeout)
        test.mount(self.registry)
        self.tests.append(test)
        return test

    def remove_test(self, test: TestCase) -> None:
        test.unmount()
        if test in self.tests:
            self.tests.remove(test)

    async def run_test(self, test: TestCase) -> None:
        """Manual trigger for one test."""
        await test.run(self.connection.socket)

    def start(self) -> None:
        self.connection.connect()

    async def run_all(self) -> list[RunOutcome]:
        return await self.runner.run_all()

    def stop(self) -> None:
        self.runner.stop()

    async def aclose(self) -> None:
        for test in list(self.tests):
            test.unmount()
        await self.connection.aclose()
