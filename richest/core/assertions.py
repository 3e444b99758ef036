"""
Assertion facility handed to test entry points.

``expect(page_or_locator)`` delegates to Playwright's web-first assertions.
Any other value gets plain value matchers, so snippets can write either::

    await expect(page).to_have_title("Example Domain")
    await expect(total).to_be(3)

Value matchers raise immediately on mismatch and return an awaitable, so
they work with or without ``await``.
"""

from __future__ import annotations

import re
from typing import Any, Optional

from playwright.async_api import APIResponse, Locator, Page
from playwright.async_api import expect as playwright_expect


class _Settled:
    """Awaitable that is already complete."""

    __slots__ = ()

    def __await__(self):
        return iter(())


_DONE = _Settled()


class ValueAssertions:
    """Matchers for plain Python values."""

    def __init__(self, actual: Any, message: Optional[str] = None) -> None:
        self.actual = actual
        self.message = message

    def _check(self, ok: bool, description: str) -> _Settled:
        if not ok:
            raise AssertionError(self.message or description)
        return _DONE

    def to_be(self, expected: Any) -> _Settled:
        same = self.actual is expected or (
            type(self.actual) is type(expected) and self.actual == expected
        )
        return self._check(same, f"Expected {self.actual!r} to be {expected!r}")

    def not_to_be(self, expected: Any) -> _Settled:
        same = self.actual is expected or (
            type(self.actual) is type(expected) and self.actual == expected
        )
        return self._check(not same, f"Expected {self.actual!r} not to be {expected!r}")

    def to_equal(self, expected: Any) -> _Settled:
        return self._check(
            self.actual == expected, f"Expected {self.actual!r} to equal {expected!r}"
        )

    def not_to_equal(self, expected: Any) -> _Settled:
        return self._check(
            self.actual != expected,
            f"Expected {self.actual!r} not to equal {expected!r}",
        )

    def to_be_truthy(self) -> _Settled:
        return self._check(bool(self.actual), f"Expected {self.actual!r} to be truthy")

    def to_be_falsy(self) -> _Settled:
        return self._check(not self.actual, f"Expected {self.actual!r} to be falsy")

    def to_be_none(self) -> _Settled:
        return self._check(self.actual is None, f"Expected {self.actual!r} to be None")

    def to_contain(self, item: Any) -> _Settled:
        try:
            ok = item in self.actual
        except TypeError:
            ok = False
        return self._check(ok, f"Expected {self.actual!r} to contain {item!r}")

    def not_to_contain(self, item: Any) -> _Settled:
        try:
            ok = item not in self.actual
        except TypeError:
            ok = True
        return self._check(ok, f"Expected {self.actual!r} not to contain {item!r}")

    def to_have_length(self, length: int) -> _Settled:
        try:
            actual_length = len(self.actual)
        except TypeError:
            actual_length = None
        return self._check(
            actual_length == length,
            f"Expected {self.actual!r} to have length {length} (got {actual_length})",
        )

    def to_be_greater_than(self, other: Any) -> _Settled:
        return self._check(
            self.actual > other, f"Expected {self.actual!r} to be greater than {other!r}"
        )

    def to_be_less_than(self, other: Any) -> _Settled:
        return self._check(
            self.actual < other, f"Expected {self.actual!r} to be less than {other!r}"
        )

    def to_match(self, pattern: str | re.Pattern[str]) -> _Settled:
        ok = isinstance(self.actual, str) and re.search(pattern, self.actual) is not None
        return self._check(ok, f"Expected {self.actual!r} to match {pattern!r}")

    def to_be_instance_of(self, cls: type) -> _Settled:
        return self._check(
            isinstance(self.actual, cls),
            f"Expected {self.actual!r} to be an instance of {cls.__name__}",
        )


def expect(actual: Any, message: Optional[str] = None) -> Any:
    """Return matchers for ``actual``."""
    if isinstance(actual, (Page, Locator, APIResponse)):
        return playwright_expect(actual, message)
    return ValueAssertions(actual, message)
