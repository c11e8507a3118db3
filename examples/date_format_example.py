#!/usr/bin/env python
"""
Run the three harness phases against a day-granularity date formatter.

The formatter truncates a timestamp to the start of its UTC day by formatting
and re-parsing it. Each verification checks that the round trip lands strictly
before "now" and on the same calendar day.

Usage:
    python examples/date_format_example.py
    python examples/date_format_example.py --seed 7 --verbose
"""

import argparse
import sys
import threading
from datetime import datetime, timezone
from typing import Any, Mapping

from phaseharness import (
    ComponentTestCase,
    PhaseExecutionError,
    PhaseOrchestrator,
    initialize_logging,
    load_settings,
    logger,
)
from phaseharness.config import NUM_ITEMS


class DayFormatter:
    """Formats timestamps as ``dd-Mon-yyyy`` and parses them back in UTC."""

    def __init__(self, pattern: str = "%d-%b-%Y", probe=None):
        self.pattern = pattern
        self._lock = threading.Lock()
        self._probe = probe

    def truncate(self, moment: datetime) -> datetime:
        with self._lock:
            text = moment.strftime(self.pattern)
            day = datetime.strptime(text, self.pattern).replace(tzinfo=timezone.utc)
        if self._probe is not None:
            self._probe(day <= moment, "day-not-after-moment")
        return day


class DateFormatTest(ComponentTestCase[DayFormatter, datetime]):

    def get_perf_test_result_message(self) -> str:
        return self.create_performance_test_result_message("parsed", "dates")

    def get_thread_safety_result_message(self) -> str:
        return self.create_thread_safety_test_result_message("parsed", "dates")

    def generate_test_data(self, params: Mapping[str, Any]) -> datetime:
        now = datetime.now(timezone.utc)
        # keep clear of midnight so the truncated day is strictly earlier
        if now.hour == 0 and now.minute == 0 and now.second == 0:
            now = now.replace(second=1)
        return now

    def get_component_under_test(self) -> DayFormatter:
        return DayFormatter(probe=self.probe)

    def verify_functionality(self, params, day_formatter, now, counts_for_this_user) -> None:
        today = day_formatter.truncate(now)

        self.assert_true("now should be later than today, which is at start of day", now > today)
        self.assert_equal("truncation keeps the calendar day", now.date(), today.date())

        counts_for_this_user.increment_and_get()


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.split("\n\n")[0])
    parser.add_argument("--seed", type=int, default=None, help="seed for user and iteration counts")
    parser.add_argument("--items", type=int, default=None, help="performance item bound")
    parser.add_argument("--verbose", action="store_true", help="log at DEBUG level instead of PHASEHARNESS_LOG_LEVEL")
    args = parser.parse_args()

    overrides = {"random_seed": args.seed}
    if args.items is not None:
        overrides["performance_items"] = args.items
    if args.verbose:
        overrides["log_level"] = "DEBUG"
    settings = load_settings(**overrides)

    initialize_logging(console_level=settings.log_level)

    test_case = DateFormatTest()
    with PhaseOrchestrator(test_case, settings=settings) as orchestrator:
        try:
            report = orchestrator.verify_component()
        except PhaseExecutionError as e:
            logger.error(str(e))
            return 1

    for result in report.results:
        logger.info(
            f"{result.phase.label}: {result.message} "
            f"({result.assertion_count} assertions, {result.probe_delta} probes)"
        )
    logger.info(f"performance item bound was {report.results[1].parameters.get(NUM_ITEMS)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
