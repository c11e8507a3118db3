"""
Counters for defensive-programming instrumentation and harness aggregation.

``AtomicCounter`` is the single counter type used everywhere: the global,
anonymous and named probe counters, the per-user call counter handed to
``verify_functionality``, and the shared aggregate of a thread-safety run.

``CounterRegistry`` groups the three probe counter flavors. Named counters are
created lazily under the registry lock; ``reset`` zeroes every counter while
holding the same lock so readers never see a half-reset registry.
"""

import threading
from typing import Dict, Optional

from phaseharness import logger


class AtomicCounter:
    """Lock-guarded monotonically increasing integer."""

    __slots__ = ("name", "_value", "_lock")

    def __init__(self, name: str = "", initial: int = 0):
        self.name = name
        self._value = initial
        self._lock = threading.Lock()

    def increment_and_get(self) -> int:
        with self._lock:
            self._value += 1
            return self._value

    def add_and_get(self, delta: int) -> int:
        with self._lock:
            self._value += delta
            return self._value

    def get(self) -> int:
        with self._lock:
            return self._value

    def set(self, value: int) -> None:
        with self._lock:
            self._value = value

    def __int__(self) -> int:
        return self.get()

    def __repr__(self) -> str:
        return f"AtomicCounter(name={self.name!r}, value={self.get()})"


class CounterRegistry:
    """
    Global, anonymous and named probe counters.

    A registry is an ordinary object: the orchestrator receives one explicitly,
    so separate runs can use separate registries.
    """

    GLOBAL = "global"
    ANONYMOUS = "anonymous"

    def __init__(self):
        self.global_counter = AtomicCounter(self.GLOBAL)
        self.anonymous_counter = AtomicCounter(self.ANONYMOUS)
        self._counters: Dict[str, AtomicCounter] = {}
        self._registry_lock = threading.RLock()

    def counter_for(self, name: Optional[str] = None) -> AtomicCounter:
        """
        Resolve the counter a probe with ``name`` should increment.

        An empty or missing name selects the anonymous counter. An unseen name
        creates a zero-valued counter.
        """
        if not name:
            return self.anonymous_counter

        with self._registry_lock:
            counter = self._counters.get(name)
            if counter is None:
                counter = AtomicCounter(name)
                self._counters[name] = counter
                logger.trace(f"Created named probe counter '{name}'")
            return counter

    def increment(self, name: Optional[str] = None) -> int:
        """Synchronously increment the named (or anonymous) counter."""
        return self.counter_for(name).increment_and_get()

    @property
    def global_count(self) -> int:
        return self.global_counter.get()

    @property
    def anonymous_count(self) -> int:
        return self.anonymous_counter.get()

    def named_count(self, name: str) -> int:
        """Value of a named counter; zero when the name was never probed."""
        with self._registry_lock:
            counter = self._counters.get(name)
        return counter.get() if counter is not None else 0

    def has_counter(self, name: str) -> bool:
        with self._registry_lock:
            return name in self._counters

    def snapshot(self) -> Dict[str, int]:
        """Point-in-time copy of every counter, keyed by name."""
        with self._registry_lock:
            values = {name: counter.get() for name, counter in self._counters.items()}
            values[self.GLOBAL] = self.global_counter.get()
            values[self.ANONYMOUS] = self.anonymous_counter.get()
        return values

    def reset(self) -> None:
        """
        Zero the global, anonymous and all named counters.

        Increments still queued on a dispatcher are applied afterwards.
        """
        with self._registry_lock:
            self.global_counter.set(0)
            self.anonymous_counter.set(0)
            for counter in self._counters.values():
                counter.set(0)
            logger.debug(f"Reset probe counters ({len(self._counters)} named)")

    def __repr__(self) -> str:
        return f"CounterRegistry({self.snapshot()!r})"
