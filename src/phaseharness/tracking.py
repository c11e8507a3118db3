"""
Counting of test assertions evaluated during a phase.

Consumers call these helpers instead of bare ``assert`` so the harness can report
how many assertions actually ran. The count is independent of the probe
counters: probes measure defensive checks inside the component, the tracker
measures checks made by the test. Each helper counts before evaluating, so
failing assertions are counted too.
"""

import math
from typing import Any

from phaseharness import logger
from phaseharness.instrumentation.counters import AtomicCounter


class AssertionResultTracker:
    """Counted assertion helpers sharing one thread-safe counter."""

    def __init__(self):
        self._counter = AtomicCounter("assertions")

    @property
    def count(self) -> int:
        return self._counter.get()

    def reset(self) -> None:
        self._counter.set(0)

    def assert_true(self, message: str, condition: bool) -> None:
        self._counter.increment_and_get()
        if not condition:
            raise AssertionError(message)

    def assert_false(self, message: str, condition: bool) -> None:
        self._counter.increment_and_get()
        if condition:
            raise AssertionError(message)

    def assert_not_none(self, message: str, value: Any) -> None:
        self._counter.increment_and_get()
        if value is None:
            raise AssertionError(message)

    def assert_none(self, message: str, value: Any) -> None:
        self._counter.increment_and_get()
        if value is not None:
            raise AssertionError(f"{message} expected None but was <{value!r}>")

    def assert_equal(self, message: str, expected: Any, actual: Any) -> None:
        self._counter.increment_and_get()
        if expected != actual:
            raise AssertionError(f"{message} expected:<{expected!r}> but was:<{actual!r}>")

    def assert_almost_equal(self, message: str, expected: float, actual: float, tolerance: float) -> None:
        self._counter.increment_and_get()
        if math.isnan(expected) and math.isnan(actual):
            return
        if expected == actual:
            return
        if not abs(expected - actual) <= tolerance:
            raise AssertionError(
                f"{message} expected:<{expected}> but was:<{actual}> (tolerance {tolerance})"
            )

    def assert_same(self, message: str, expected: Any, actual: Any) -> None:
        self._counter.increment_and_get()
        if expected is not actual:
            raise AssertionError(f"{message} expected same:<{expected!r}> was not:<{actual!r}>")

    def assert_not_same(self, message: str, unexpected: Any, actual: Any) -> None:
        self._counter.increment_and_get()
        if unexpected is actual:
            raise AssertionError(f"{message} expected not same")

    def fail(self, message: str, *thrown: BaseException) -> None:
        self._counter.increment_and_get()
        for error in thrown:
            logger.opt(exception=error).error(f"{message}: {error}")
        raise AssertionError(message)
