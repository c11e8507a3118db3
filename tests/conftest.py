"""
Pytest configuration for the phaseharness test suite.

Provides:
- Loguru capture into pytest's caplog and into a plain message list
- Consumer fixtures built on ``ComponentTestCase`` for driving the harness
- Deterministic settings and random sources so phase runs are reproducible
"""

import contextlib
import logging
import random
import sys
import threading
from pathlib import Path
from typing import Any, Callable, List, Mapping, Optional

# Add the src directory and the repository root to the Python path
repo_root = Path(__file__).parent.parent
sys.path.insert(0, str(repo_root / "src"))
sys.path.insert(0, str(repo_root))

import pytest
from loguru import logger

from phaseharness import configure_test_logging, reset_logging
from phaseharness.config import HarnessSettings
from phaseharness.harness import ComponentTestCase
from phaseharness.instrumentation import AssertionProbe, AsyncCounterDispatcher, CounterRegistry


# ============================================================================
# LOGURU INTEGRATION FIXTURES
# ============================================================================

@pytest.fixture(autouse=True, scope="function")
def capture_loguru_logs_globally(caplog):
    """Bridge Loguru records into pytest's caplog for every test."""

    class PropagateHandler(logging.Handler):
        def emit(self, record):
            logging.getLogger(record.name or "phaseharness").handle(record)

    caplog.set_level(logging.DEBUG)
    handler_id = logger.add(
        PropagateHandler(),
        format="{level: <8} | {name}:{function}:{line} - {message}",
        level="DEBUG",
        enqueue=False,
    )

    yield

    with contextlib.suppress(ValueError):
        logger.remove(handler_id)


@pytest.fixture
def log_messages() -> List[str]:
    """Plain list of every message logged while the test runs."""
    messages: List[str] = []
    sink_id = logger.add(lambda message: messages.append(message.record["message"]), level="TRACE")
    yield messages
    with contextlib.suppress(ValueError):
        logger.remove(sink_id)


@pytest.fixture
def harness_logging():
    """Install the test console sink, removing it afterwards."""
    sink_ids = configure_test_logging(console_level="DEBUG")
    yield sink_ids
    reset_logging()


# ============================================================================
# HARNESS FIXTURES
# ============================================================================

class FixedRandom(random.Random):
    """Random source whose single-bound ``randrange`` returns a fixed iteration count."""

    def __init__(self, count: int, users: int = 3, seed: int = 0):
        super().__init__(seed)
        self.count = count
        self.users = users

    def randrange(self, start, stop=None, step=1):
        if stop is None:
            return min(self.count, start - 1)
        return super().randrange(start, stop, step)

    def randint(self, a, b):
        return self.users


@pytest.fixture
def settings() -> HarnessSettings:
    return HarnessSettings(random_seed=1234, drain_timeout=5.0, internal_checks=True)


@pytest.fixture
def probe():
    probe = AssertionProbe(CounterRegistry(), AsyncCounterDispatcher(), checks_enabled=True)
    yield probe
    probe.close()


class CountingComponent:
    """Component whose every use fires one named probe."""

    def __init__(self, probe: Optional[Callable[..., None]] = None):
        self.probe = probe
        self.calls = 0
        self._lock = threading.Lock()

    def use(self, value: int) -> int:
        with self._lock:
            self.calls += 1
        if self.probe is not None:
            self.probe(value >= 0, "non-negative")
        return value * 2


class DoublingTest(ComponentTestCase[CountingComponent, int]):
    """
    Minimal consumer used throughout the suite.

    ``fail_on`` names a callback that raises, optionally only for one user id.
    """

    def __init__(
        self,
        fail_on: Optional[str] = None,
        fail_user: Optional[str] = None,
        overrides: Optional[Mapping[Any, Mapping[str, Any]]] = None,
        perf_message: Optional[str] = "doubled %s numbers in %.2f seconds.",
        ts_message: Optional[str] = "%d users doubled %d numbers in %.2f seconds.",
    ):
        self.fail_on = fail_on
        self.fail_user = fail_user
        self.overrides = overrides or {}
        self.perf_message = perf_message
        self.ts_message = ts_message
        self.components: List[CountingComponent] = []
        self.data_params: List[dict] = []
        self.verify_calls = 0
        self.resets = 0
        self._lock = threading.Lock()

    def _maybe_fail(self, callback: str, params: Optional[Mapping[str, Any]] = None) -> None:
        if self.fail_on != callback:
            return
        if self.fail_user is None or (params is not None and params.get("user.id") == self.fail_user):
            raise RuntimeError(f"{callback} exploded")

    def get_perf_test_result_message(self):
        return self.perf_message

    def get_thread_safety_result_message(self):
        return self.ts_message

    def parameter_overrides(self, phase):
        return self.overrides.get(phase, {})

    def generate_test_data(self, params):
        with self._lock:
            self.data_params.append(dict(params))
        self._maybe_fail("generate_test_data", params)
        return 21

    def get_component_under_test(self):
        self._maybe_fail("get_component_under_test")
        component = CountingComponent(self.probe)
        with self._lock:
            self.components.append(component)
        return component

    def verify_functionality(self, params, component, data, counts_for_this_user):
        with self._lock:
            self.verify_calls += 1
        self._maybe_fail("verify_functionality", params)
        self.assert_equal("doubling", 42, component.use(data))
        counts_for_this_user.increment_and_get()

    def reset(self):
        self.resets += 1
        self._maybe_fail("reset")


@pytest.fixture
def fixed_rng() -> Callable[..., FixedRandom]:
    return FixedRandom


@pytest.fixture
def doubling_test() -> DoublingTest:
    return DoublingTest()


@pytest.fixture
def make_doubling_test() -> Callable[..., DoublingTest]:
    return DoublingTest
