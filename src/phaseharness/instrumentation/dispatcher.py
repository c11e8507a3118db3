"""
Background application of counter increments.

Probes hand their increments to an ``AsyncCounterDispatcher`` instead of applying
them in the calling thread. The dispatcher owns a one-worker executor, so tasks
run one at a time in submission order. A caller that reads a counter right after
probing may therefore see a stale value; ``drain`` waits for quiescence when a
test needs an exact read.
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Callable, Optional

from phaseharness import logger
from phaseharness.exceptions import InstrumentationFailure


class AsyncCounterDispatcher:
    """Single-worker FIFO queue for counter updates."""

    def __init__(self, name: str = "probe-dispatcher"):
        self.name = name
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=name)
        self._lock = threading.Lock()
        self._submitted = 0
        self._closed = False

    def submit(self, task: Callable[[], object]) -> Future:
        """
        Queue ``task`` behind every previously submitted task.

        Raises:
            InstrumentationFailure: If the dispatcher was shut down
        """
        with self._lock:
            if self._closed:
                raise InstrumentationFailure(
                    f"Dispatcher '{self.name}' is shut down",
                    error_code="INSTRUMENT_002",
                )
            self._submitted += 1
            future = self._executor.submit(task)
        future.add_done_callback(self._report_failure)
        return future

    def drain(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until every task submitted before this call has run.

        Returns:
            True once quiescent, False if ``timeout`` elapsed first
        """
        with self._lock:
            if self._closed:
                return True
            marker = self._executor.submit(lambda: None)
        try:
            marker.result(timeout=timeout)
        except FutureTimeoutError:
            logger.debug(f"Dispatcher '{self.name}' not quiescent after {timeout}s")
            return False
        return True

    @property
    def submitted(self) -> int:
        """Number of tasks ever submitted."""
        with self._lock:
            return self._submitted

    @property
    def closed(self) -> bool:
        return self._closed

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting tasks; with ``wait`` the queue is drained first."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._executor.shutdown(wait=wait)
        logger.debug(f"Dispatcher '{self.name}' shut down after {self._submitted} task(s)")

    def __enter__(self) -> "AsyncCounterDispatcher":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown(wait=True)

    @staticmethod
    def _report_failure(future: Future) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.opt(exception=error).error(f"Counter update failed: {error}")
