"""
Session Registry

Tracks one session per open WebSocket connection and provides:
- session creation/removal keyed by a generated connection id
- per-session execution lock so requests on one connection run one at a time
- tracking of in-flight request tasks for shutdown
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Optional
from uuid import uuid4

from richest.core.browser_session import BrowserLauncher, BrowserSession

logger = logging.getLogger(__name__)


@dataclass
class Session:
    connection_id: str
    browser: BrowserSession
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    # Held while a request executes against the shared default page.
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    pending_requests: int = 0
    tasks: set[asyncio.Task] = field(default_factory=set)

    @property
    def is_busy(self) -> bool:
        return self.pending_requests > 0


class SessionRegistry:
    def __init__(self, launcher: Optional[BrowserLauncher] = None) -> None:
        self._sessions: dict[str, Session] = {}
        self._background_tasks: set[asyncio.Task] = set()
        self.launcher = launcher

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._sessions

    def open(self) -> Session:
        connection_id = uuid4().hex
        session = Session(
            connection_id=connection_id,
            browser=BrowserSession(launcher=self.launcher),
        )
        self._sessions[connection_id] = session
        logger.debug("Session opened: %s", connection_id)
        return session

    def get(self, connection_id: str) -> Optional[Session]:
        return self._sessions.get(connection_id)

    def track_task(self, session: Session, task: asyncio.Task) -> None:
        session.tasks.add(task)
        self._background_tasks.add(task)

        def _done(t: asyncio.Task) -> None:
            session.tasks.discard(t)
            self._background_tasks.discard(t)
            # Always retrieve exceptions so asyncio doesn't emit
            # "Task exception was never retrieved" warnings.
            try:
                exc = t.exception()
            except asyncio.CancelledError:
                return
            if exc is not None:
                logger.error("Request task failed: %s", exc, exc_info=exc)

        task.add_done_callback(_done)

    async def close(self, connection_id: str) -> None:
        """
        Remove a session and close its browser.

        In-flight request tasks are left to fail on their own once the
        browser is gone.
        """
        session = self._sessions.pop(connection_id, None)
        if session is None:
            return
        if session.tasks:
            logger.info(
                "Closing session %s with %d request(s) in flight",
                connection_id,
                len(session.tasks),
            )
        await session.browser.close()
        logger.debug("Session closed: %s", connection_id)

    async def shutdown(self, *, timeout_seconds: float = 5.0) -> None:
        """
        Close every session and cancel outstanding request tasks.

        Used on application shutdown so uvicorn --reload doesn't hang.
        """
        sessions = list(self._sessions.values())
        bg = list(self._background_tasks)

        for task in bg:
            task.cancel()

        async def _close_all() -> None:
            await asyncio.gather(*bg, return_exceptions=True)
            await asyncio.gather(
                *(self.close(s.connection_id) for s in sessions),
                return_exceptions=True,
            )

        try:
            await asyncio.wait_for(_close_all(), timeout=timeout_seconds)
        except TimeoutError:
            logger.warning(
                "Session shutdown timed out after %.1fs; forcing continuation",
                timeout_seconds,
            )

        self._sessions.clear()
        self._background_tasks.clear()


registry = SessionRegistry()
