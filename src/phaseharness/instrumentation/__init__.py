"""Asynchronous defensive-programming counters."""

from phaseharness.instrumentation.counters import AtomicCounter, CounterRegistry
from phaseharness.instrumentation.dispatcher import AsyncCounterDispatcher
from phaseharness.instrumentation.probe import AssertionProbe, default_probe

__all__ = [
    "AtomicCounter",
    "CounterRegistry",
    "AsyncCounterDispatcher",
    "AssertionProbe",
    "default_probe",
]
