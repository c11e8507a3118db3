"""
Concurrent user simulation for the thread-safety phase.

Each simulated user is one task on a shared thread pool. A task derives its own
performance parameters, builds its own data and component, and runs a full
performance sub-run against that private pair. Per-user counts flow into one
shared ``AtomicCounter``; the final message is formatted with
``(users, aggregate, elapsed_seconds)``.

A user that raises (or outlives ``user_timeout``) is logged and recorded as a
failed ``UserOutcome``. It never aborts its siblings or the aggregation.
"""

import random
import time
from concurrent.futures import Executor, Future, TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from phaseharness import logger
from phaseharness.config.parameters import (
    DISABLE_THREAD_SAFETY_TEST,
    ParameterDerivation,
    ParameterMap,
    is_disabled,
    validate_result_message,
    validate_user_count,
)
from phaseharness.harness._shared import call_consumer, format_result_message
from phaseharness.harness.performance import verify_performance
from phaseharness.instrumentation.counters import AtomicCounter
from phaseharness.models import Phase, SimulationResult, UserOutcome

THREAD_SAFETY_DISABLED_MESSAGE = "thread safety testing has been disabled."


@dataclass
class SimulatedUser:
    """One unit of concurrent work; lives only as long as its task."""
    index: int
    users: int

    @property
    def user_id(self) -> str:
        return f"user-{self.index}"


class ConcurrentUserSimulator:
    """Fans simulated users out onto ``executor`` and aggregates their counts."""

    def __init__(
        self,
        test_case: Any,
        derivation: ParameterDerivation,
        executor: Executor,
        shared_counter: AtomicCounter,
        rng: Optional[random.Random] = None,
        user_timeout: Optional[float] = None,
    ):
        self.test_case = test_case
        self.derivation = derivation
        self.executor = executor
        self.shared_counter = shared_counter
        self.rng = rng or derivation.rng
        self.user_timeout = user_timeout

    def verify_thread_safety(self, params: ParameterMap) -> SimulationResult:
        """
        Run the thread-safety protocol for a validated phase map.

        Raises:
            ContractViolation: If the user count or result template is unusable
        """
        if is_disabled(params, DISABLE_THREAD_SAFETY_TEST):
            logger.info(THREAD_SAFETY_DISABLED_MESSAGE)
            return SimulationResult(
                message=THREAD_SAFETY_DISABLED_MESSAGE, users=0, aggregate=0, elapsed=0.0
            )

        users = validate_user_count(params)
        template = validate_result_message(params, Phase.THREAD_SAFETY)
        return self.simulate(users, template)

    def simulate(self, users: int, template: str) -> SimulationResult:
        start = time.perf_counter()
        submitted: List[Tuple[SimulatedUser, Future]] = []
        for index in range(users):
            user = SimulatedUser(index=index, users=users)
            submitted.append((user, self.executor.submit(self._run_user, user)))
        logger.debug(f"Submitted {users} simulated user(s)")

        outcomes = [self._await(user, future, start) for user, future in submitted]

        elapsed = time.perf_counter() - start
        aggregate = self.shared_counter.get()
        message = format_result_message(template, users, aggregate, elapsed)
        failed = sum(1 for outcome in outcomes if not outcome.succeeded)
        if failed:
            logger.warning(f"{failed} of {users} simulated user(s) failed")
        logger.info(message)

        return SimulationResult(
            message=message,
            users=users,
            aggregate=aggregate,
            elapsed=elapsed,
            outcomes=outcomes,
        )

    def _run_user(self, user: SimulatedUser) -> UserOutcome:
        params = self.derivation.user_parameters(user.index, user.users)
        data = call_consumer(self.test_case.generate_test_data, params, user_id=user.user_id)
        component = call_consumer(self.test_case.get_component_under_test, user_id=user.user_id)
        outcome = verify_performance(
            self.test_case,
            params,
            component,
            data,
            rng=self.rng,
            shared_counter=self.shared_counter,
        )
        return UserOutcome(
            index=user.index,
            user_id=user.user_id,
            message=outcome.message,
            count=outcome.count,
        )

    def _await(self, user: SimulatedUser, future: Future, start: float) -> UserOutcome:
        timeout = None
        if self.user_timeout is not None:
            timeout = max(0.0, start + self.user_timeout - time.perf_counter())

        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            future.cancel()
            error = TimeoutError(f"{user.user_id} did not finish within {self.user_timeout}s")
            logger.error(str(error))
            return UserOutcome(index=user.index, user_id=user.user_id, error=error)
        except Exception as e:
            logger.opt(exception=e).error(f"Simulated user '{user.user_id}' failed: {e}")
            return UserOutcome(index=user.index, user_id=user.user_id, error=e)
