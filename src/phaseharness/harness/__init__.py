"""Phase driver, performance sub-protocol and concurrent user simulation."""

from phaseharness.models import HarnessReport, Phase, PhaseResult, SimulationResult, UserOutcome
from phaseharness.harness.consumer import ComponentTestCase
from phaseharness.harness.performance import (
    PERFORMANCE_DISABLED_MESSAGE,
    PerformanceOutcome,
    verify_performance,
)
from phaseharness.harness.simulator import (
    THREAD_SAFETY_DISABLED_MESSAGE,
    ConcurrentUserSimulator,
    SimulatedUser,
)
from phaseharness.harness.orchestrator import PhaseOrchestrator

__all__ = [
    "ComponentTestCase",
    "ConcurrentUserSimulator",
    "SimulatedUser",
    "PhaseOrchestrator",
    "PerformanceOutcome",
    "verify_performance",
    "PERFORMANCE_DISABLED_MESSAGE",
    "THREAD_SAFETY_DISABLED_MESSAGE",
    "HarnessReport",
    "Phase",
    "PhaseResult",
    "SimulationResult",
    "UserOutcome",
]
