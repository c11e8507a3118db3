"""
Single-threaded performance sub-protocol.

Used directly by the performance phase and once per simulated user by the
thread-safety phase. A run picks a random iteration count below
``number.items``, calls ``verify_functionality`` that many times against one
component/data pair, and formats the result template with
``(count, elapsed_seconds)``.
"""

import random
import time
from dataclasses import dataclass
from typing import Any, Optional

from phaseharness import logger
from phaseharness.config.parameters import (
    COUNT_FOR_THIS_USER,
    DISABLE_PERFORMANCE_TEST,
    USER_ID,
    ParameterMap,
    is_disabled,
    is_thread_safety_run,
    validate_item_count,
    validate_result_message,
)
from phaseharness.harness._shared import call_consumer, format_result_message
from phaseharness.instrumentation.counters import AtomicCounter
from phaseharness.models import Phase

PERFORMANCE_DISABLED_MESSAGE = "performance testing has been disabled."


@dataclass
class PerformanceOutcome:
    """Result of one performance run."""
    message: str
    count: int = 0
    iterations: int = 0
    elapsed: float = 0.0
    disabled: bool = False


def verify_performance(
    test_case: Any,
    params: ParameterMap,
    component: Any,
    data: Any,
    rng: Optional[random.Random] = None,
    shared_counter: Optional[AtomicCounter] = None,
) -> PerformanceOutcome:
    """
    Check a component for bottlenecks.

    When ``params`` belongs to a thread-safety run, the per-user count is also
    added to ``shared_counter``.

    Raises:
        ContractViolation: If the result template or item count is unusable
        ConsumerFailure: If ``verify_functionality`` raises
    """
    if is_disabled(params, DISABLE_PERFORMANCE_TEST):
        logger.info(PERFORMANCE_DISABLED_MESSAGE)
        return PerformanceOutcome(message=PERFORMANCE_DISABLED_MESSAGE, disabled=True)

    template = validate_result_message(params, Phase.PERFORMANCE)
    items = validate_item_count(params)
    rng = rng or random.Random()
    user_id = params.get(USER_ID)

    start = time.perf_counter()
    counter = AtomicCounter(f"{user_id}.calls")
    iterations = rng.randrange(items) if items > 0 else 0
    for _ in range(iterations):
        call_consumer(
            test_case.verify_functionality, params, component, data, counter,
            user_id=user_id,
        )
    count = counter.get()
    params[COUNT_FOR_THIS_USER] = count
    if shared_counter is not None and is_thread_safety_run(params):
        shared_counter.add_and_get(count)
    elapsed = time.perf_counter() - start

    message = format_result_message(template, count, elapsed)
    logger.info(message)
    return PerformanceOutcome(
        message=message,
        count=count,
        iterations=iterations,
        elapsed=elapsed,
    )
