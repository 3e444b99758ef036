"""
E2E tests: a TestSuite driving a live runner with a real headless browser.

Run with: E2E_TEST=1 pytest tests/e2e
"""

from __future__ import annotations

import pytest

from richest.client import TestSuite
from richest.models import TestStatus
from tests.conftest import wait_until

pytestmark = [
    pytest.mark.e2e,
    pytest.mark.websocket,
    pytest.mark.browser,
    pytest.mark.asyncio,
]

PAGE_TITLE = """
async def default(ctx):
    await ctx.page.set_content("<title>Richest</title><h1 id='hero'>Hello</h1>")
    await ctx.expect(ctx.page).to_have_title("Richest")
    await ctx.expect(ctx.page.locator("#hero")).to_have_text("Hello")
"""

STATE_KEPT = """
async def default(ctx):
    await ctx.expect(ctx.page.locator("#hero")).to_have_text("Hello")
"""

WRONG_VALUE = """
async def default(ctx):
    await ctx.expect(await ctx.page.title()).to_be("Something else")
"""


@pytest.mark.slow
async def test_suite_against_live_runner(live_server: str, live_ws_url: str) -> None:
    """Tests share one page per connection and failures are reported per test."""
    async with TestSuite("E2E", live_ws_url) as suite:
        await wait_until(lambda: suite.connection.connected, timeout=10)
        first = suite.add_test("renders", PAGE_TITLE, result_timeout=60)
        second = suite.add_test("page is shared", STATE_KEPT, result_timeout=60)
        third = suite.add_test("wrong title", WRONG_VALUE, result_timeout=60)
        missing = suite.add_test("missing", PAGE_TITLE, func="nope", result_timeout=60)

        outcomes = await suite.run_all()

    assert [o.status for o in outcomes] == [
        TestStatus.PASSED,
        TestStatus.PASSED,
        TestStatus.FAILED,
        TestStatus.FAILED,
    ]
    assert first.error is None and second.error is None
    assert third.error == "Expected 'Richest' to be 'Something else'"
    assert missing.error == "Entry point 'nope' not found in test code"
