"""
Client Connection

Owns the WebSocket to the runner and keeps it alive:
- connect / reconnect with a single pending reconnect timer
- dispatch of inbound results to the pending-result map
- teardown that leaves no timer or socket behind
"""

from __future__ import annotations

import asyncio
import json
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

import websockets
from pydantic import ValidationError
from websockets.exceptions import ConnectionClosed, InvalidHandshake

from richest.client.errors import ResponseParseError, SendError
from richest.client.pending import PendingResults
from richest.config import settings
from richest.models import TestRequest, TestResultMessage

logger = logging.getLogger(__name__)

ERROR_SUMMARY_LENGTH = 50

Connector = Callable[[str], Awaitable[Any]]


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class TestSocket:
    """An open socket bound to the connection's pending-result map."""

    __test__ = False

    def __init__(self, websocket: Any, pending: PendingResults) -> None:
        self.websocket = websocket
        self._pending = pending

    async def submit(
        self, request: TestRequest, *, timeout: Optional[float] = None
    ) -> TestResultMessage:
        """Send ``request`` and wait for the result carrying its id."""
        # Registered before sending so a fast reply cannot be missed.
        future = self._pending.add(request.id)
        try:
            await self.websocket.send(request.to_wire())
        except Exception as e:
            self._pending.discard(request.id)
            raise SendError(f"Failed to send test: {e}") from e
        return await self._pending.wait(request.id, future, timeout)


class ClientConnection:
    def __init__(
        self,
        server: Optional[str],
        *,
        connector: Optional[Connector] = None,
        reconnect_delay: Optional[float] = None,
    ) -> None:
        self.server = server
        self.pending = PendingResults()
        self.state = ConnectionState.DISCONNECTED
        self.error: Optional[str] = None
        self._connector = connector or websockets.connect
        self._reconnect_delay = (
            settings.CLIENT_RECONNECT_DELAY_SECONDS
            if reconnect_delay is None
            else reconnect_delay
        )
        self._socket: Optional[TestSocket] = None
        self._socket_task: Optional[asyncio.Task] = None
        self._reconnect_handle: Optional[asyncio.TimerHandle] = None
        self._closed = False

    @property
    def socket(self) -> Optional[TestSocket]:
        return self._socket

    @property
    def connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_handle is not None

    @property
    def error_summary(self) -> Optional[str]:
        if self.error is None:
            return None
        if len(self.error) > ERROR_SUMMARY_LENGTH:
            return f"{self.error[:ERROR_SUMMARY_LENGTH]}..."
        return self.error

    def connect(self) -> None:
        """Open a new socket, replacing any existing one."""
        if self._closed:
            return
        if not self.server:
            self._socket = None
            self.state = ConnectionState.DISCONNECTED
            return

        previous = self._socket_task
        if previous is not None and not previous.done():
            previous.cancel()

        self.state = ConnectionState.CONNECTING
        self._socket_task = asyncio.get_running_loop().create_task(
            self._run_socket()
        )

    def schedule_reconnect(self) -> None:
        """Arm the reconnect timer, replacing any timer already pending."""
        self._cancel_reconnect()
        if self._closed:
            return
        loop = asyncio.get_running_loop()
        self._reconnect_handle = loop.call_later(self._reconnect_delay, self._reconnect)
        logger.debug("Reconnect scheduled in %.1fs", self._reconnect_delay)

    def _reconnect(self) -> None:
        self._reconnect_handle = None
        logger.info("Reconnecting to %s", self.server)
        self.connect()

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    async def aclose(self) -> None:
        """Tear down: cancel the reconnect timer and close the socket."""
        self._closed = True
        self._cancel_reconnect()
        task = self._socket_task
        self._socket_task = None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._socket = None
        self.state = ConnectionState.DISCONNECTED

    def _on_error(self, message: str) -> None:
        self.state = ConnectionState.ERROR
        self.error = message
        self._socket = None
        self.schedule_reconnect()

    def _on_close(self) -> None:
        self.state = ConnectionState.DISCONNECTED
        self._socket = None
        self.schedule_reconnect()

    async def _run_socket(self) -> None:
        server = self.server
        try:
            websocket = await self._connector(server)
        except (OSError, InvalidHandshake, TimeoutError) as e:
            logger.warning("Failed to connect to %s: %s", server, e)
            self._on_error("Failed to connect to server")
            return
        except Exception as e:
            logger.warning("Failed to create WebSocket connection to %s: %s", server, e)
            self._on_error(f"Failed to create WebSocket connection: {e}")
            return

        socket = TestSocket(websocket, self.pending)
        self._socket = socket
        self.state = ConnectionState.CONNECTED
        self.error = None
        logger.info("Connected to %s", server)

        lost: Optional[ConnectionClosed] = None
        try:
            async for raw in websocket:
                self._dispatch(raw)
        except ConnectionClosed as e:
            lost = e
        finally:
            if self._socket is socket:
                self._socket = None
            try:
                await websocket.close()
            except Exception as e:
                logger.debug("Error closing socket: %s", e)

        if lost is not None:
            logger.warning("Connection to %s lost: %s", server, lost)
            self._on_error("Connection to server lost")
        else:
            logger.info("Connection to %s closed", server)
            self._on_close()

    def _dispatch(self, raw: Any) -> None:
        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError("expected a JSON object")
        except (TypeError, ValueError) as e:
            failed = self.pending.fail_all(
                ResponseParseError(f"Failed to parse server response: {e}")
            )
            logger.warning("Unparseable server message (%d waiting tests failed)", failed)
            return

        if data.get("type") != "test_result":
            if "message" in data:
                logger.info("Server: %s", data["message"])
            return

        try:
            result = TestResultMessage.model_validate(data)
        except ValidationError as e:
            error = ResponseParseError(f"Failed to parse server response: {e}")
            test_id = data.get("testId")
            if isinstance(test_id, str) and test_id in self.pending:
                self.pending.reject(test_id, error)
                return
            # No waiter can be identified, so none can be left waiting.
            failed = self.pending.fail_all(error)
            logger.warning("Invalid test result (%d waiting tests failed)", failed)
            return

        if not result.status.is_terminal:
            logger.debug("Progress for test %s: %s", result.test_id, result.status.value)
            return
        self.pending.resolve(result)
