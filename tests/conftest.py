"""
Global pytest configuration and fixtures for Richest tests.

This module provides:
- Fake Playwright browser/page objects and a fake browser launcher
- Scratch directory isolation
- FastAPI test client fixtures
- Fake WebSocket server sockets for client tests
"""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from typing import Any, Callable, Generator, Optional

import pytest
from fastapi.testclient import TestClient


def is_e2e_test() -> bool:
    """Check if we're running E2E tests (vs unit tests)."""
    return os.getenv("E2E_TEST", "").lower() in ("1", "true", "yes")


# =============================================================================
# Fake Browser Objects
# =============================================================================


class FakePage:
    """Stands in for a Playwright page; records what tests do with it."""

    def __init__(self, name: str = "page") -> None:
        self.name = name
        self.events: list[str] = []
        self.visited: list[str] = []
        self.closed = False

    async def goto(self, url: str) -> None:
        self.visited.append(url)

    async def close(self) -> None:
        self.closed = True


class FakeBrowser:
    def __init__(self) -> None:
        self.pages: list[FakePage] = []
        self.closed = False

    async def new_page(self) -> FakePage:
        page = FakePage(name=f"page-{len(self.pages)}")
        self.pages.append(page)
        return page

    async def close(self) -> None:
        self.closed = True
        for page in self.pages:
            await page.close()


class FakeLauncher:
    """
    Browser launcher double.

    ``fail_times`` makes the first N launches raise; ``delay`` keeps each
    launch in flight for a while so concurrent callers overlap.
    """

    def __init__(self, fail_times: int = 0, delay: float = 0.0) -> None:
        self.fail_times = fail_times
        self.delay = delay
        self.calls = 0
        self.browsers: list[FakeBrowser] = []

    async def __call__(self) -> tuple[None, FakeBrowser]:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_times > 0:
            self.fail_times -= 1
            raise RuntimeError("Executable doesn't exist")
        browser = FakeBrowser()
        self.browsers.append(browser)
        return None, browser

    @property
    def last_browser(self) -> Optional[FakeBrowser]:
        return self.browsers[-1] if self.browsers else None


@pytest.fixture
def fake_launcher() -> FakeLauncher:
    return FakeLauncher()


# =============================================================================
# Scratch Directory / Settings
# =============================================================================


@pytest.fixture
def scratch_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the code loader at an isolated scratch directory."""
    from richest.config import settings

    path = tmp_path / "scratch"
    monkeypatch.setattr(settings, "SCRATCH_DIR", path)
    return path


# =============================================================================
# FastAPI Test Client Fixtures
# =============================================================================


@pytest.fixture
def client(
    fake_launcher: FakeLauncher,
    scratch_dir: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> Generator[TestClient, None, None]:
    """
    FastAPI test client whose sessions launch fake browsers.
    """
    from richest.core.sessions import registry
    from richest.main import app

    monkeypatch.setattr(registry, "launcher", fake_launcher)
    with TestClient(app) as test_client:
        yield test_client


def make_request(
    test_id: str, code: str, *, func: Optional[str] = None, title: str = ""
) -> dict[str, Any]:
    payload: dict[str, Any] = {"id": test_id, "title": title or test_id, "code": code}
    if func is not None:
        payload["func"] = func
    return payload


# =============================================================================
# Fake WebSocket Server (client tests)
# =============================================================================


class FakeServerSocket:
    """
    Client-side view of a runner connection.

    ``responder`` is called with every request the client sends and may push
    replies; tests can also push replies directly.
    """

    def __init__(
        self, responder: Optional[Callable[["FakeServerSocket", dict], None]] = None
    ) -> None:
        self.sent: list[dict[str, Any]] = []
        self.closed = False
        self.fail_send = False
        self._responder = responder
        self._inbox: asyncio.Queue = asyncio.Queue()

    async def send(self, data: str) -> None:
        if self.fail_send:
            raise ConnectionResetError("socket is closed")
        message = json.loads(data)
        self.sent.append(message)
        if self._responder is not None:
            self._responder(self, message)

    def push(self, payload: Any) -> None:
        self._inbox.put_nowait(payload if isinstance(payload, str) else json.dumps(payload))

    def push_result(self, test_id: str, status: str = "passed", error: Optional[str] = None) -> None:
        payload: dict[str, Any] = {"type": "test_result", "testId": test_id, "status": status}
        if error is not None:
            payload["error"] = error
        self.push(payload)

    def drop(self) -> None:
        """Server closes the connection."""
        self._inbox.put_nowait(None)

    def __aiter__(self) -> "FakeServerSocket":
        return self

    async def __anext__(self) -> str:
        item = await self._inbox.get()
        if item is None:
            raise StopAsyncIteration
        return item

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._inbox.put_nowait(None)


class FakeConnector:
    """Replacement for ``websockets.connect`` handing out FakeServerSockets."""

    def __init__(
        self,
        responder: Optional[Callable[[FakeServerSocket, dict], None]] = None,
        failures: Optional[list[BaseException]] = None,
    ) -> None:
        self.responder = responder
        self.failures = list(failures or [])
        self.urls: list[str] = []
        self.sockets: list[FakeServerSocket] = []

    async def __call__(self, url: str) -> FakeServerSocket:
        self.urls.append(url)
        if self.failures:
            raise self.failures.pop(0)
        socket = FakeServerSocket(self.responder)
        self.sockets.append(socket)
        return socket

    @property
    def last_socket(self) -> Optional[FakeServerSocket]:
        return self.sockets[-1] if self.sockets else None


def echo_passed(socket: FakeServerSocket, message: dict) -> None:
    socket.push_result(message["id"])


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll ``predicate`` until it holds or ``timeout`` elapses."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


# =============================================================================
# Test Markers
# =============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "e2e: marks tests as end-to-end tests requiring a real browser (deselect with '-m \"not e2e\"')",
    )
    config.addinivalue_line(
        "markers",
        "websocket: marks tests that test WebSocket functionality",
    )
    config.addinivalue_line(
        "markers",
        "browser: marks tests that use Playwright browser automation",
    )
    config.addinivalue_line(
        "markers",
        "slow: marks tests as slow (deselect with '-m \"not slow\"')",
    )


# =============================================================================
# Skip Conditions
# =============================================================================


def pytest_collection_modifyitems(config, items):
    """
    Automatically skip E2E tests unless E2E_TEST=1 is set.
    """
    skip_e2e = pytest.mark.skip(reason="E2E tests require E2E_TEST=1")

    for item in items:
        if "e2e" in item.keywords and not is_e2e_test():
            item.add_marker(skip_e2e)
