"""
Phase orchestration.

``PhaseOrchestrator`` drives one consumer through

    FUNCTIONAL -> PERFORMANCE -> THREAD_SAFETY -> DONE

Every phase follows the same steps: reset the assertion tracker and the shared
aggregate counter, take a baseline of the global probe count, derive the phase
parameters, obtain a fresh component and fresh data, run the phase handler, and
report the assertion count and the probe delta. The consumer's ``reset`` runs
between phases.

Phases are independent attempts. A failing phase is recorded in its
``PhaseResult`` and the next phase still runs. ``run`` returns the report;
``verify_component`` raises ``PhaseExecutionError`` afterwards if any phase
failed, which makes it a drop-in body for a pytest test function:

    >>> def test_date_formatting():
    ...     with PhaseOrchestrator(DateFormatTest()) as orchestrator:
    ...         orchestrator.verify_component()
"""

import random
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional

from phaseharness import logger
from phaseharness.config.parameters import ParameterDerivation, ParameterMap
from phaseharness.config.settings import HarnessSettings, load_settings
from phaseharness.exceptions import PhaseExecutionError, PhaseHarnessError, log_and_raise
from phaseharness.harness._shared import call_consumer
from phaseharness.harness.consumer import ComponentTestCase
from phaseharness.harness.performance import verify_performance
from phaseharness.harness.simulator import ConcurrentUserSimulator
from phaseharness.instrumentation.counters import AtomicCounter, CounterRegistry
from phaseharness.instrumentation.dispatcher import AsyncCounterDispatcher
from phaseharness.instrumentation.probe import AssertionProbe
from phaseharness.models import HarnessReport, Phase, PhaseResult
from phaseharness.tracking import AssertionResultTracker

# constants for messages displayed by the harness
STARTING = "starting '%s' test for '%s'."
ASSERTION_COUNT = "%d assertions were evaluated during the %s test."
PROBE_COUNT = "%d runtime defensive programming assertions were evaluated."
FUNCTIONAL_RESULT = "%d items were verified during the functional test."

PhaseHandler = Callable[[ParameterMap, Any, Any, PhaseResult, HarnessReport], None]


class PhaseOrchestrator:
    """
    Fixed driver running the three harness phases for one consumer.

    Args:
        test_case: The consumer describing the component under test
        settings: Harness settings; loaded from the environment when omitted
        probe: Probe whose global count is baselined per phase. When omitted the
            orchestrator creates and owns a run-scoped probe.
        rng: Random source for user counts and iteration counts
    """

    def __init__(
        self,
        test_case: ComponentTestCase,
        settings: Optional[HarnessSettings] = None,
        probe: Optional[AssertionProbe] = None,
        rng: Optional[random.Random] = None,
    ):
        self.test_case = test_case
        self.settings = settings or load_settings()
        self.rng = rng or random.Random(self.settings.random_seed)

        self._owns_probe = probe is None
        self.probe = probe or AssertionProbe(
            CounterRegistry(),
            AsyncCounterDispatcher(),
            checks_enabled=self.settings.internal_checks,
        )
        self.tracker = AssertionResultTracker()
        self.shared_counter = AtomicCounter("shared")
        self.derivation = ParameterDerivation(
            test_case,
            settings=self.settings,
            rng=self.rng,
            user_id=getattr(test_case, "user_id", None),
        )
        self.state = Phase.FUNCTIONAL
        self._closed = False
        self._executor: Optional[ThreadPoolExecutor] = None

        self.test_case.bind(self.tracker, self.probe)
        self._handlers: Dict[Phase, PhaseHandler] = {
            Phase.FUNCTIONAL: self._verify_functional,
            Phase.PERFORMANCE: self._verify_performance,
            Phase.THREAD_SAFETY: self._verify_thread_safety,
        }

    @property
    def registry(self) -> CounterRegistry:
        return self.probe.registry

    @property
    def test_name(self) -> str:
        return self.test_case.test_name

    # --- driver ---

    def run(self) -> HarnessReport:
        """Run every phase once, in order, and return their results."""
        if self._closed:
            log_and_raise(
                PhaseHarnessError(
                    "orchestrator has been closed", error_code="HARNESS_003",
                    context={"test_name": self.test_name},
                ),
                logger,
            )

        report = HarnessReport(test_name=self.test_name)
        executor = ThreadPoolExecutor(
            max_workers=self.settings.max_workers,
            thread_name_prefix="simulated-user",
        )
        self._executor = executor
        try:
            for index, phase in enumerate(Phase.sequence()):
                self.state = phase
                reset_error = self._reset_consumer() if index else None
                if reset_error is not None:
                    report.results.append(PhaseResult(phase=phase, error=reset_error))
                    continue
                report.results.append(self._run_phase(phase, report))
        finally:
            self._executor = None
            self.state = Phase.DONE
            self._release_executor(executor, report)

        return report

    def verify_component(self) -> HarnessReport:
        """
        Run every phase, then raise if any of them failed.

        Raises:
            PhaseExecutionError: Chained to the first phase failure
        """
        report = self.run()
        failed = report.failed_phases
        if failed:
            labels = ", ".join(result.phase.label for result in failed)
            raise PhaseExecutionError(
                f"{len(failed)} of {len(report.results)} phases failed for "
                f"'{self.test_name}': {labels}",
                report=report,
                context={"failed_phases": labels},
            ) from failed[0].error
        return report

    def close(self) -> None:
        """
        Release the run-scoped probe, waiting for its queued increments.

        The consumer is unbound from an owned probe, so components it built keep
        probing through ``default_probe()``.
        """
        if self._closed:
            return
        self._closed = True
        if self._owns_probe:
            self.test_case.bind(self.tracker, None)
            self.probe.close()

    def __enter__(self) -> "PhaseOrchestrator":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # --- phase template ---

    def _run_phase(self, phase: Phase, report: HarnessReport) -> PhaseResult:
        self.tracker.reset()
        # a fresh counter per phase; users abandoned by an earlier phase keep the old one
        self.shared_counter = AtomicCounter("shared")
        self.probe.drain(self.settings.drain_timeout)
        before = self.registry.global_count

        logger.info(STARTING % (phase.label, self.test_name))
        result = PhaseResult(phase=phase)
        start = time.perf_counter()
        try:
            params = self.derivation.parameters_for(phase)
            result.parameters = params
            component = call_consumer(self.test_case.get_component_under_test)
            data = call_consumer(self.test_case.generate_test_data, params)
            self._handlers[phase](params, component, data, result, report)
        except Exception as e:
            result.error = e
            logger.opt(exception=e).error(f"{phase.label} test failed for '{self.test_name}': {e}")
        finally:
            result.elapsed = time.perf_counter() - start

            # best effort: probes are counted asynchronously
            self.probe.drain(self.settings.drain_timeout)
            result.probe_delta = self.registry.global_count - before
            result.assertion_count = self.tracker.count
            logger.info(PROBE_COUNT % result.probe_delta)
            logger.info(ASSERTION_COUNT % (result.assertion_count, phase.label))

        return result

    def _release_executor(self, executor: ThreadPoolExecutor, report: HarnessReport) -> None:
        abandoned = report.simulation.timed_out_users if report.simulation else []
        if abandoned:
            logger.warning(
                f"Abandoning {len(abandoned)} simulated user(s) still running after "
                f"{self.settings.user_timeout}s"
            )
        executor.shutdown(wait=not abandoned, cancel_futures=bool(abandoned))

    def _reset_consumer(self) -> Optional[BaseException]:
        try:
            call_consumer(self.test_case.reset)
        except PhaseHarnessError as e:
            logger.opt(exception=e).error(f"reset failed for '{self.test_name}': {e}")
            return e
        return None

    # --- phase handlers ---

    def _verify_functional(self, params, component, data, result, report) -> None:
        counter = AtomicCounter("functional")
        call_consumer(self.test_case.verify_functionality, params, component, data, counter)
        result.item_count = counter.get()
        result.message = FUNCTIONAL_RESULT % result.item_count
        logger.info(result.message)

    def _verify_performance(self, params, component, data, result, report) -> None:
        outcome = verify_performance(
            self.test_case,
            params,
            component,
            data,
            rng=self.rng,
            shared_counter=self.shared_counter,
        )
        result.message = outcome.message
        result.item_count = outcome.count

    def _verify_thread_safety(self, params, component, data, result, report) -> None:
        # each simulated user builds its own component and data
        simulator = ConcurrentUserSimulator(
            self.test_case,
            self.derivation,
            self._executor,
            self.shared_counter,
            rng=self.rng,
            user_timeout=self.settings.user_timeout,
        )
        simulation = simulator.verify_thread_safety(params)
        report.simulation = simulation
        result.message = simulation.message
        result.item_count = simulation.aggregate
