"""
Pending result correlation.

Maps test ids to the futures awaiting their results. Each entry is settled
exactly once and removed as soon as it is settled.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from richest.client.errors import ClientError, ResultTimeoutError
from richest.models import TestResultMessage

logger = logging.getLogger(__name__)


class PendingResults:
    def __init__(self) -> None:
        self._futures: dict[str, asyncio.Future[TestResultMessage]] = {}

    def __len__(self) -> int:
        return len(self._futures)

    def __contains__(self, test_id: object) -> bool:
        return test_id in self._futures

    def add(self, test_id: str) -> asyncio.Future[TestResultMessage]:
        if test_id in self._futures:
            raise ClientError(f"Test {test_id} is already awaiting a result")
        future: asyncio.Future[TestResultMessage] = (
            asyncio.get_running_loop().create_future()
        )
        self._futures[test_id] = future
        return future

    def discard(self, test_id: str) -> None:
        future = self._futures.pop(test_id, None)
        if future is not None and not future.done():
            future.cancel()

    def resolve(self, result: TestResultMessage) -> bool:
        """Deliver ``result`` to its waiter; False when nobody waits for it."""
        future = self._futures.pop(result.test_id, None)
        if future is None:
            logger.debug("Ignoring result for unknown test %s", result.test_id)
            return False
        if not future.done():
            future.set_result(result)
        return True

    def reject(self, test_id: str, exc: BaseException) -> bool:
        future = self._futures.pop(test_id, None)
        if future is None:
            return False
        if not future.done():
            future.set_exception(exc)
        return True

    def fail_all(self, exc: BaseException) -> int:
        """Reject every waiter with ``exc``; returns how many were waiting."""
        futures = list(self._futures.values())
        self._futures.clear()
        for future in futures:
            if not future.done():
                future.set_exception(exc)
        return len(futures)

    async def wait(
        self,
        test_id: str,
        future: asyncio.Future[TestResultMessage],
        timeout: Optional[float] = None,
    ) -> TestResultMessage:
        try:
            if timeout:
                return await asyncio.wait_for(asyncio.shield(future), timeout=timeout)
            return await future
        except asyncio.CancelledError:
            if self._futures.get(test_id) is future:
                self.discard(test_id)
            raise
        except TimeoutError:
            if self._futures.get(test_id) is future:
                self.discard(test_id)
            raise ResultTimeoutError(
                f"No result for test {test_id} after {timeout:g}s"
            ) from None
