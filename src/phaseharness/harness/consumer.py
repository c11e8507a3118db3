"""
Consumer interface for the phase harness.

A consumer describes one component under test: how to build it, how to build
data for it, and how to verify a single interaction. The harness drives the
same callbacks through every phase; the consumer never sees which phase or
thread it runs in except through the parameter map.

Example:
    >>> class UpperTest(ComponentTestCase):
    ...     def get_perf_test_result_message(self):
    ...         return self.create_performance_test_result_message("upper-cased", "words")
    ...     def get_thread_safety_result_message(self):
    ...         return self.create_thread_safety_test_result_message("upper-cased", "words")
    ...     def generate_test_data(self, params):
    ...         return "word"
    ...     def get_component_under_test(self):
    ...         return str.upper
    ...     def verify_functionality(self, params, component, data, counts_for_this_user):
    ...         self.assert_equal("upper-case", "WORD", component(data))
    ...         counts_for_this_user.increment_and_get()
"""

from abc import ABC, abstractmethod
from typing import Any, Generic, Mapping, Optional, TypeVar

from phaseharness.config.parameters import ParameterMap
from phaseharness.instrumentation.counters import AtomicCounter
from phaseharness.instrumentation.probe import AssertionProbe, default_probe
from phaseharness.models import Phase
from phaseharness.tracking import AssertionResultTracker

C = TypeVar("C")
D = TypeVar("D")

_BASIC_PERFORMANCE_TESTING_MESSAGE_TEMPLATE = "{verb} %s {noun} in %.2f seconds."
_BASIC_THREAD_SAFETY_TESTING_MESSAGE_TEMPLATE = "%d users {verb} %d {noun} in %.2f seconds."


class ComponentTestCase(ABC, Generic[C, D]):
    """
    Base class for components exercised by ``PhaseOrchestrator``.

    Subclasses implement the five abstract callbacks and may override ``reset``
    and ``parameter_overrides``. The counted assertion helpers and ``probe`` are
    bound to the running orchestrator's tracker and probe.
    """

    user_id: Optional[str] = None

    _tracker: Optional[AssertionResultTracker] = None
    _probe: Optional[AssertionProbe] = None

    # --- consumer callbacks ---

    @abstractmethod
    def get_perf_test_result_message(self) -> str:
        """Template formatted with ``(count, seconds)`` after a performance run."""

    @abstractmethod
    def get_thread_safety_result_message(self) -> str:
        """Template formatted with ``(users, count, seconds)`` after a thread-safety run."""

    @abstractmethod
    def generate_test_data(self, params: ParameterMap) -> D:
        """
        Build the data a verification needs.

        Called once per phase and once per simulated user, so it may read
        ``USER_ID`` or ``NUM_ITEMS`` from ``params`` to size or label the data.
        """

    @abstractmethod
    def get_component_under_test(self) -> C:
        """Return a component instance; called once per phase and per simulated user."""

    @abstractmethod
    def verify_functionality(
        self,
        params: ParameterMap,
        component: C,
        data: D,
        counts_for_this_user: AtomicCounter,
    ) -> None:
        """
        Exercise the component once.

        Must be safe to call concurrently on different component/data pairs.
        Increment ``counts_for_this_user`` by the amount of work done.
        """

    def reset(self) -> None:
        """Restore state between phases. Nothing to reset by default."""

    def parameter_overrides(self, phase: Phase) -> Mapping[str, Any]:
        """Values merged over the harness defaults for ``phase``."""
        return {}

    # --- harness bindings ---

    def bind(self, tracker: AssertionResultTracker, probe: Optional[AssertionProbe]) -> None:
        self._tracker = tracker
        self._probe = probe

    @property
    def tracker(self) -> AssertionResultTracker:
        if self._tracker is None:
            self._tracker = AssertionResultTracker()
        return self._tracker

    @property
    def test_name(self) -> str:
        return type(self).__name__

    def probe(self, condition: bool, name: Optional[str] = None) -> None:
        (self._probe or default_probe()).probe(condition, name)

    # --- result message helpers ---

    @staticmethod
    def create_performance_test_result_message(verb: str, noun: str) -> str:
        """``"<verb> %s <noun> in %.2f seconds."``"""
        return _BASIC_PERFORMANCE_TESTING_MESSAGE_TEMPLATE.format(verb=verb, noun=noun)

    @staticmethod
    def create_thread_safety_test_result_message(verb: str, noun: str) -> str:
        """``"%d users <verb> %d <noun> in %.2f seconds."``"""
        return _BASIC_THREAD_SAFETY_TESTING_MESSAGE_TEMPLATE.format(verb=verb, noun=noun)

    # --- counted assertions ---

    def assert_true(self, message: str, condition: bool) -> None:
        self.tracker.assert_true(message, condition)

    def assert_false(self, message: str, condition: bool) -> None:
        self.tracker.assert_false(message, condition)

    def assert_not_none(self, message: str, value: Any) -> None:
        self.tracker.assert_not_none(message, value)

    def assert_none(self, message: str, value: Any) -> None:
        self.tracker.assert_none(message, value)

    def assert_equal(self, message: str, expected: Any, actual: Any) -> None:
        self.tracker.assert_equal(message, expected, actual)

    def assert_almost_equal(self, message: str, expected: float, actual: float, tolerance: float) -> None:
        self.tracker.assert_almost_equal(message, expected, actual, tolerance)

    def assert_same(self, message: str, expected: Any, actual: Any) -> None:
        self.tracker.assert_same(message, expected, actual)

    def assert_not_same(self, message: str, unexpected: Any, actual: Any) -> None:
        self.tracker.assert_not_same(message, unexpected, actual)

    def fail(self, message: str, *thrown: BaseException) -> None:
        self.tracker.fail(message, *thrown)
