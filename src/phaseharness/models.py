"""Data models shared by the orchestrator, the simulator and their callers."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class Phase(Enum):
    """
    Harness phases in execution order.

    ``DONE`` is the terminal state of the driver and never runs a verification.
    """
    FUNCTIONAL = "functional"
    PERFORMANCE = "performance"
    THREAD_SAFETY = "thread safety"
    DONE = "done"

    @property
    def label(self) -> str:
        return self.value

    @classmethod
    def sequence(cls) -> List["Phase"]:
        """Phases that run verifications, in order."""
        return [cls.FUNCTIONAL, cls.PERFORMANCE, cls.THREAD_SAFETY]


@dataclass
class PhaseResult:
    """Outcome of one phase."""
    phase: Phase
    message: Optional[str] = None
    assertion_count: int = 0
    probe_delta: int = 0
    item_count: int = 0
    elapsed: float = 0.0
    error: Optional[BaseException] = None
    parameters: Dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class UserOutcome:
    """Outcome of one simulated user during the thread-safety phase."""
    index: int
    user_id: str
    message: Optional[str] = None
    count: int = 0
    error: Optional[BaseException] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class SimulationResult:
    """Aggregated result of a thread-safety run."""
    message: str
    users: int
    aggregate: int
    elapsed: float
    outcomes: List[UserOutcome] = field(default_factory=list)

    @property
    def failed_users(self) -> List[UserOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.succeeded]

    @property
    def succeeded_users(self) -> List[UserOutcome]:
        return [outcome for outcome in self.outcomes if outcome.succeeded]

    @property
    def timed_out_users(self) -> List[UserOutcome]:
        """Users abandoned at the deadline; their tasks may still be running."""
        return [outcome for outcome in self.outcomes if isinstance(outcome.error, TimeoutError)]


@dataclass
class HarnessReport:
    """All phase results of one ``PhaseOrchestrator.run``."""
    test_name: str
    results: List[PhaseResult] = field(default_factory=list)
    simulation: Optional[SimulationResult] = None

    def result_for(self, phase: Phase) -> Optional[PhaseResult]:
        for result in self.results:
            if result.phase is phase:
                return result
        return None

    @property
    def failed_phases(self) -> List[PhaseResult]:
        return [result for result in self.results if not result.succeeded]

    @property
    def succeeded(self) -> bool:
        return not self.failed_phases
