"""
E2E Test Fixtures - Real infrastructure configuration.

This module extends the global conftest.py with E2E-specific fixtures:
- Live runner server management (uvicorn subprocess)
- Headless Chromium via the real Playwright launcher
"""

from __future__ import annotations

import os
import signal
import subprocess
import sys
import time
from pathlib import Path
from typing import Generator

import httpx
import pytest

# =============================================================================
# Live Server Fixtures
# =============================================================================

E2E_SERVER_PORT = int(os.getenv("E2E_SERVER_PORT", "8765"))
E2E_SERVER_HOST = os.getenv("E2E_SERVER_HOST", "127.0.0.1")
E2E_BASE_URL = f"http://{E2E_SERVER_HOST}:{E2E_SERVER_PORT}"
E2E_WS_URL = f"ws://{E2E_SERVER_HOST}:{E2E_SERVER_PORT}/run"


@pytest.fixture(scope="session")
def live_ws_url() -> str:
    """WebSocket URL of the live runner."""
    return E2E_WS_URL


@pytest.fixture(scope="module")
def live_server(tmp_path_factory: pytest.TempPathFactory) -> Generator[str, None, None]:
    """
    Start a live runner for E2E tests.

    Launches uvicorn in a subprocess with a headless browser and an isolated
    scratch directory, and waits for it to answer on /health.

    Yields the base URL of the running server.
    """
    scratch: Path = tmp_path_factory.mktemp("e2e-scratch")
    env = os.environ.copy()
    env["BROWSER_HEADLESS"] = "true"
    env["SCRATCH_DIR"] = str(scratch)

    process = subprocess.Popen(
        [
            sys.executable, "-m", "uvicorn",
            "richest.main:app",
            "--host", E2E_SERVER_HOST,
            "--port", str(E2E_SERVER_PORT),
            "--log-level", "warning",
        ],
        env=env,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
    )

    max_wait = 30
    start_time = time.time()
    server_ready = False

    while time.time() - start_time < max_wait:
        try:
            response = httpx.get(f"{E2E_BASE_URL}/health", timeout=1)
            if response.status_code == 200:
                server_ready = True
                break
        except (httpx.ConnectError, httpx.TimeoutException):
            pass
        time.sleep(0.5)

    if not server_ready:
        process.kill()
        stdout, stderr = process.communicate()
        raise RuntimeError(
            f"Server failed to start within {max_wait}s.\n"
            f"stdout: {stdout.decode()}\n"
            f"stderr: {stderr.decode()}"
        )

    yield E2E_BASE_URL

    process.send_signal(signal.SIGTERM)
    try:
        process.wait(timeout=5)
    except subprocess.TimeoutExpired:
        process.kill()
