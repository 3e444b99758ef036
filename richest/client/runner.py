"""
Sequential Runner

Runs every registered test in registration order, one at a time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from richest.client.connection import ClientConnection
from richest.client.errors import ClientError, TestFailedError
from richest.client.registry import TestRegistry
from richest.models import TestStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunOutcome:
    test_id: str
    status: TestStatus
    error: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.status == TestStatus.PASSED


class SequentialRunner:
    def __init__(self, registry: TestRegistry, connection: ClientConnection) -> None:
        self.registry = registry
        self.connection = connection
        self.is_running = False

    async def run_all(self) -> list[RunOutcome]:
        """
        Run every registered test, awaiting each result before the next send.

        A failing test does not stop the run; its outcome is recorded and the
        next test starts.
        """
        self.is_running = True
        outcomes: list[RunOutcome] = []
        try:
            for registration in self.registry.snapshot():
                try:
                    await registration.run(self.connection.socket)
                except TestFailedError as e:
                    outcomes.append(RunOutcome(registration.id, e.status, str(e)))
                except ClientError as e:
                    logger.error("Test execution failed: %s", e)
                    outcomes.append(
                        RunOutcome(registration.id, TestStatus.FAILED, str(e))
                    )
                else:
                    outcomes.append(RunOutcome(registration.id, TestStatus.PASSED))
        finally:
            self.is_running = False
        return outcomes

    def stop(self) -> None:
        # Display flag only; a test already sent keeps running.
        self.is_running = False
