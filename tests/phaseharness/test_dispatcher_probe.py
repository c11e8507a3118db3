"""Tests for the asynchronous counter dispatcher and AssertionProbe."""

import threading

import pytest

from phaseharness.exceptions import InstrumentationFailure
from phaseharness.instrumentation import (
    AssertionProbe,
    AsyncCounterDispatcher,
    CounterRegistry,
    default_probe,
)


@pytest.fixture
def dispatcher():
    dispatcher = AsyncCounterDispatcher(name="test-dispatcher")
    yield dispatcher
    dispatcher.shutdown(wait=True)


def _block(dispatcher):
    """Occupy the worker until the returned event is set."""
    started = threading.Event()
    release = threading.Event()

    def blocker():
        started.set()
        release.wait(timeout=10)

    dispatcher.submit(blocker)
    assert started.wait(timeout=5)
    return release


class TestAsyncCounterDispatcher:

    def test_tasks_run_in_submission_order(self, dispatcher):
        seen = []
        for index in range(50):
            dispatcher.submit(lambda index=index: seen.append(index))
        assert dispatcher.drain(timeout=5)
        assert seen == list(range(50))

    def test_tasks_run_on_a_single_worker_thread(self, dispatcher):
        threads = set()
        for _ in range(10):
            dispatcher.submit(lambda: threads.add(threading.current_thread().name))
        dispatcher.drain(timeout=5)
        assert len(threads) == 1
        assert threads.pop().startswith("test-dispatcher")

    def test_drain_times_out_while_worker_is_busy(self, dispatcher):
        release = _block(dispatcher)
        try:
            assert dispatcher.drain(timeout=0.05) is False
        finally:
            release.set()
        assert dispatcher.drain(timeout=5) is True

    def test_submitted_counts_tasks(self, dispatcher):
        for _ in range(3):
            dispatcher.submit(lambda: None)
        assert dispatcher.submitted == 3

    def test_submit_after_shutdown_raises(self):
        dispatcher = AsyncCounterDispatcher()
        dispatcher.shutdown()
        assert dispatcher.closed

        with pytest.raises(InstrumentationFailure) as exc_info:
            dispatcher.submit(lambda: None)
        assert exc_info.value.error_code == "INSTRUMENT_002"

    def test_shutdown_waits_for_queued_tasks(self):
        seen = []
        with AsyncCounterDispatcher() as dispatcher:
            for index in range(20):
                dispatcher.submit(lambda index=index: seen.append(index))
        assert seen == list(range(20))

    def test_drain_on_closed_dispatcher_returns_true(self):
        dispatcher = AsyncCounterDispatcher()
        dispatcher.shutdown()
        assert dispatcher.drain(timeout=0) is True

    def test_failing_task_is_logged_and_does_not_stop_the_worker(self, dispatcher, log_messages):
        def explode():
            raise RuntimeError("boom")

        dispatcher.submit(explode)
        seen = []
        dispatcher.submit(lambda: seen.append(1))
        assert dispatcher.drain(timeout=5)

        assert seen == [1]
        assert any("Counter update failed: boom" in message for message in log_messages)


class TestAssertionProbe:

    def test_anonymous_probe_increments_global_and_anonymous(self, probe):
        probe(True)
        probe.probe(True, "")
        assert probe.drain(timeout=5)
        assert probe.registry.global_count == 2
        assert probe.registry.anonymous_count == 2

    def test_named_probe_increments_global_and_named(self, probe):
        probe(True, "open-handle")
        probe(True, "open-handle")
        probe(True, "other")
        assert probe.drain(timeout=5)

        registry = probe.registry
        assert registry.global_count == 3
        assert registry.named_count("open-handle") == 2
        assert registry.named_count("other") == 1
        assert registry.anonymous_count == 0

    def test_increments_are_applied_off_the_calling_thread(self):
        registry = CounterRegistry()
        dispatcher = AsyncCounterDispatcher()
        probe = AssertionProbe(registry, dispatcher)
        release = _block(dispatcher)
        try:
            probe(True, "queued")
            assert registry.global_count == 0
            assert registry.named_count("queued") == 0
        finally:
            release.set()
        assert probe.drain(timeout=5)
        assert registry.global_count == 1
        assert registry.named_count("queued") == 1
        probe.close()

    def test_counter_for_name_exists_before_increment_lands(self):
        registry = CounterRegistry()
        dispatcher = AsyncCounterDispatcher()
        probe = AssertionProbe(registry, dispatcher)
        release = _block(dispatcher)
        try:
            probe(True, "eager")
            assert registry.has_counter("eager")
        finally:
            release.set()
            probe.close()

    def test_failed_condition_raises_when_checks_enabled(self, probe):
        with pytest.raises(InstrumentationFailure) as exc_info:
            probe(False, "invariant")

        assert exc_info.value.error_code == "INSTRUMENT_001"
        assert isinstance(exc_info.value, AssertionError)
        assert "invariant" in str(exc_info.value)
        # the failing probe is still counted
        assert probe.drain(timeout=5)
        assert probe.registry.named_count("invariant") == 1

    def test_failed_condition_is_silent_when_checks_disabled(self):
        probe = AssertionProbe(checks_enabled=False)
        try:
            probe(False, "invariant")
            assert probe.drain(timeout=5)
            assert probe.global_count() == 1
        finally:
            probe.close()

    def test_concurrent_probes_are_all_counted(self, probe):
        threads = 8
        per_thread = 250
        barrier = threading.Barrier(threads)

        def work(index):
            barrier.wait()
            for _ in range(per_thread):
                probe(True, f"thread-{index % 2}")

        workers = [threading.Thread(target=work, args=(i,)) for i in range(threads)]
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join()

        assert probe.drain(timeout=10)
        registry = probe.registry
        assert registry.global_count == threads * per_thread
        assert registry.named_count("thread-0") + registry.named_count("thread-1") == threads * per_thread

    def test_reset_zeroes_registry(self, probe):
        probe(True, "a")
        probe.drain(timeout=5)
        probe.reset()
        assert probe.global_count() == 0
        assert probe.registry.named_count("a") == 0

    def test_probe_after_close_raises(self):
        probe = AssertionProbe()
        probe.close()
        with pytest.raises(InstrumentationFailure):
            probe(True)


class TestDefaultProbe:

    def test_returns_same_instance(self):
        assert default_probe() is default_probe()

    def test_recreated_after_close(self):
        first = default_probe()
        first.close()
        second = default_probe()
        assert second is not first
        assert not second.dispatcher.closed
