"""
WebSocket connection handling for ``/run``.

Each connection gets its own session. Every inbound message is handled in a
tracked task; tasks of one connection queue on the session lock so only one
test drives the shared page at a time.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from richest.api.error_handling import result_for_exception
from richest.config import settings
from richest.core.assertions import expect
from richest.core.code_loader import TestContext, execute_test
from richest.core.errors import ProtocolError
from richest.core.sessions import Session, SessionRegistry, registry
from richest.models import TestRequest, TestResultMessage

from .helpers import _decode_payload, _extract_test_id, parse_test_request

logger = logging.getLogger(__name__)

GREETING = {"message": "Hello from server!"}

router = APIRouter()


class RunConnection:
    """Dispatches test requests arriving on one WebSocket connection."""

    def __init__(
        self,
        websocket: WebSocket,
        session: Session,
        sessions: Optional[SessionRegistry] = None,
    ) -> None:
        self.websocket = websocket
        self.session = session
        self.sessions = sessions if sessions is not None else registry
        self._send_lock = asyncio.Lock()

    async def send_greeting(self) -> None:
        if settings.SEND_GREETING:
            await self._send(GREETING)

    def dispatch(self, message: dict[str, Any]) -> asyncio.Task:
        """Start handling one inbound message; returns the tracked task."""
        if self.session.pending_requests >= settings.MAX_PENDING_REQUESTS:
            try:
                test_id = _extract_test_id(_decode_payload(message))
            except ProtocolError:
                test_id = None
            logger.warning(
                "Rejecting request %s: %d requests already pending",
                test_id or "?",
                self.session.pending_requests,
            )
            result = TestResultMessage.errored(
                test_id or "", "Too many pending requests"
            )
            task = asyncio.create_task(self._send_result(result))
        else:
            self.session.pending_requests += 1
            task = asyncio.create_task(self._handle(message))
        self.sessions.track_task(self.session, task)
        return task

    async def _handle(self, message: dict[str, Any]) -> None:
        raw: Optional[str] = None
        test_id: Optional[str] = None
        try:
            raw = _decode_payload(message)
            logger.debug("Received payload (%d chars)", len(raw))
            request = parse_test_request(raw)
            test_id = request.id
            result = await self._execute(request)
        except Exception as e:
            result = result_for_exception(test_id or _extract_test_id(raw), e)
        finally:
            self.session.pending_requests -= 1
        await self._send_result(result)

    async def _execute(self, request: TestRequest) -> TestResultMessage:
        async with self.session.lock:
            browser = self.session.browser
            page = await browser.default_page()
            context = TestContext(page=page, expect=expect, open_page=browser.page)
            logger.info("Running test '%s' (%s)", request.title or request.id, request.id)
            outcome = await execute_test(request.code, request.entrypoint, context)

        if outcome.passed:
            return TestResultMessage.passed(request.id)
        return TestResultMessage.failed(request.id, outcome.error or "Test failed")

    async def _send_result(self, result: TestResultMessage) -> None:
        await self._send(result.to_payload())

    async def _send(self, payload: dict[str, Any]) -> None:
        async with self._send_lock:
            try:
                await self.websocket.send_json(payload)
            except Exception as e:
                # Connection already gone; the result has nowhere to go.
                logger.debug("Dropping message for closed connection: %s", e)


@router.websocket("/run")
async def run_socket(websocket: WebSocket) -> None:
    """
    WebSocket endpoint accepting test requests.

    Args:
        websocket: WebSocket connection
    """
    await websocket.accept()
    session = registry.open()
    connection = RunConnection(websocket, session)
    logger.info("📡 WebSocket connected: %s", session.connection_id)

    try:
        await connection.send_greeting()
        while True:
            message = await websocket.receive()
            if message.get("type") == "websocket.disconnect":
                break
            connection.dispatch(message)
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error("WebSocket error: %s", e)
    finally:
        logger.info("📡 WebSocket disconnected: %s", session.connection_id)
        await registry.close(session.connection_id)
