"""
Defensive-programming probes.

A probe is a cheap, disableable internal check that also leaves a trace in the
counter registry:

    >>> probe = AssertionProbe(CounterRegistry(), AsyncCounterDispatcher())
    >>> probe(len(queue) <= capacity)            # global + anonymous
    >>> probe(handle is not None, "open-handle")  # global + "open-handle"

Counting happens on the dispatcher's worker thread. The condition is evaluated
in the caller's thread and only raises when internal checks are enabled.
"""

import threading
from typing import Optional

from phaseharness import logger
from phaseharness.exceptions import InstrumentationFailure
from phaseharness.instrumentation.counters import CounterRegistry
from phaseharness.instrumentation.dispatcher import AsyncCounterDispatcher


class AssertionProbe:
    """Counts probe calls and evaluates their conditions."""

    def __init__(
        self,
        registry: Optional[CounterRegistry] = None,
        dispatcher: Optional[AsyncCounterDispatcher] = None,
        checks_enabled: bool = __debug__,
    ):
        self.registry = registry or CounterRegistry()
        self.dispatcher = dispatcher or AsyncCounterDispatcher()
        self.checks_enabled = checks_enabled

    def probe(self, condition: bool, name: Optional[str] = None) -> None:
        """
        Record a probe and evaluate ``condition``.

        Two increments are queued, global first, then the anonymous counter or
        the counter called ``name``. The call returns without waiting for them.

        Raises:
            InstrumentationFailure: If checks are enabled and ``condition`` is false
        """
        counter = self.registry.counter_for(name)
        self.dispatcher.submit(self.registry.global_counter.increment_and_get)
        self.dispatcher.submit(counter.increment_and_get)

        if self.checks_enabled and not condition:
            raise InstrumentationFailure(
                "internal check failed" if not name else f"internal check '{name}' failed",
                context={"counter": counter.name, "thread": threading.current_thread().name},
            )

    __call__ = probe

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait for queued increments; see ``AsyncCounterDispatcher.drain``."""
        return self.dispatcher.drain(timeout)

    def global_count(self) -> int:
        return self.registry.global_count

    def reset(self) -> None:
        self.registry.reset()

    def close(self) -> None:
        self.dispatcher.shutdown(wait=True)


_default_probe: Optional[AssertionProbe] = None
_default_lock = threading.Lock()


def default_probe() -> AssertionProbe:
    """
    Process-wide probe for code that cannot be handed one explicitly.

    Harness runs take their probe as a constructor argument; this instance is
    what they use when none is given.
    """
    global _default_probe
    with _default_lock:
        if _default_probe is None or _default_probe.dispatcher.closed:
            _default_probe = AssertionProbe()
            logger.debug("Created process-wide assertion probe")
        return _default_probe
