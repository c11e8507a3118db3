"""Tests for ConcurrentUserSimulator."""

import re
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from phaseharness.config import (
    DISABLE_THREAD_SAFETY_TEST,
    NUMBER_OF_SIMULTANEOUS_USERS,
    RESULT_MESSAGE,
    USER_ID,
    ParameterDerivation,
)
from phaseharness.exceptions import ConsumerFailure, ContractViolation
from phaseharness.harness import THREAD_SAFETY_DISABLED_MESSAGE, ConcurrentUserSimulator, SimulatedUser
from phaseharness.instrumentation import AtomicCounter

TS_TEMPLATE = "%d users doubled %d numbers in %.2f seconds."


@pytest.fixture
def executor():
    with ThreadPoolExecutor(max_workers=16, thread_name_prefix="simulated-user") as pool:
        yield pool


@pytest.fixture
def make_simulator(executor, settings, fixed_rng):
    def _make(test_case, count=4, user_timeout=None):
        rng = fixed_rng(count)
        derivation = ParameterDerivation(test_case, settings=settings, rng=rng)
        return ConcurrentUserSimulator(
            test_case,
            derivation,
            executor,
            AtomicCounter("shared"),
            rng=rng,
            user_timeout=user_timeout,
        )
    return _make


def _ts_params(users, **extra):
    params = {
        NUMBER_OF_SIMULTANEOUS_USERS: users,
        DISABLE_THREAD_SAFETY_TEST: False,
        RESULT_MESSAGE: TS_TEMPLATE,
    }
    params.update(extra)
    return params


def test_simulated_user_id_is_derived_from_index():
    assert SimulatedUser(index=3, users=5).user_id == "user-3"


@pytest.mark.parametrize("users, count", [(1, 0), (2, 3), (5, 4), (11, 7)])
def test_aggregate_is_users_times_iterations(doubling_test, make_simulator, users, count):
    simulator = make_simulator(doubling_test, count=count)
    result = simulator.verify_thread_safety(_ts_params(users))

    assert result.users == users
    assert result.aggregate == users * count
    assert simulator.shared_counter.get() == users * count
    assert sum(outcome.count for outcome in result.outcomes) == result.aggregate
    assert not result.failed_users


def test_message_has_users_aggregate_and_two_decimals(doubling_test, make_simulator):
    result = make_simulator(doubling_test, count=4).verify_thread_safety(_ts_params(5))
    assert re.fullmatch(r"5 users doubled 20 numbers in \d+\.\d{2} seconds\.", result.message)


def test_each_user_gets_its_own_parameters_component_and_data(doubling_test, make_simulator):
    make_simulator(doubling_test, count=2).verify_thread_safety(_ts_params(4))

    user_ids = sorted(params[USER_ID] for params in doubling_test.data_params)
    assert user_ids == ["user-0", "user-1", "user-2", "user-3"]
    assert all(params[NUMBER_OF_SIMULTANEOUS_USERS] == 4 for params in doubling_test.data_params)
    assert len(doubling_test.components) == 4
    assert len({id(component) for component in doubling_test.components}) == 4
    assert all(component.calls == 2 for component in doubling_test.components)


def test_users_run_concurrently(make_doubling_test, make_simulator):
    users = 4
    barrier = threading.Barrier(users, timeout=5)

    class RendezvousTest(make_doubling_test):
        def get_component_under_test(self):
            # every user must be in flight at once to get past the barrier
            barrier.wait()
            return super().get_component_under_test()

    result = make_simulator(RendezvousTest(), count=1).verify_thread_safety(_ts_params(users))
    assert not result.failed_users
    assert result.aggregate == users


def test_failing_user_is_isolated(make_doubling_test, make_simulator, log_messages):
    test_case = make_doubling_test(fail_on="verify_functionality", fail_user="user-1")
    result = make_simulator(test_case, count=3).verify_thread_safety(_ts_params(4))

    assert [outcome.user_id for outcome in result.failed_users] == ["user-1"]
    failure = result.failed_users[0].error
    assert isinstance(failure, ConsumerFailure)
    assert failure.context["user_id"] == "user-1"
    assert len(result.succeeded_users) == 3
    assert result.aggregate == 9
    assert result.message.startswith("4 users doubled 9 numbers in ")
    assert "1 of 4 simulated user(s) failed" in log_messages


def test_data_generation_failure_is_isolated(make_doubling_test, make_simulator):
    test_case = make_doubling_test(fail_on="generate_test_data", fail_user="user-0")
    result = make_simulator(test_case, count=2).verify_thread_safety(_ts_params(3))

    assert [outcome.index for outcome in result.failed_users] == [0]
    assert result.failed_users[0].error.error_code == "CONSUMER_001"
    assert result.aggregate == 4


def test_slow_user_times_out_without_blocking_others(make_doubling_test, make_simulator):
    release = threading.Event()

    class SlowFirstUser(make_doubling_test):
        def generate_test_data(self, params):
            if params[USER_ID] == "user-0":
                release.wait(timeout=10)
            return super().generate_test_data(params)

    try:
        result = make_simulator(SlowFirstUser(), count=2, user_timeout=0.2).verify_thread_safety(_ts_params(3))
    finally:
        release.set()

    assert [outcome.user_id for outcome in result.failed_users] == ["user-0"]
    assert isinstance(result.failed_users[0].error, TimeoutError)
    assert result.aggregate == 4


def test_disabled_thread_safety_launches_no_users(doubling_test, make_simulator, log_messages):
    result = make_simulator(doubling_test).verify_thread_safety(
        _ts_params(5, **{DISABLE_THREAD_SAFETY_TEST: "true"})
    )

    assert result.message == THREAD_SAFETY_DISABLED_MESSAGE
    assert result.users == 0
    assert result.outcomes == []
    assert doubling_test.verify_calls == 0
    assert THREAD_SAFETY_DISABLED_MESSAGE in log_messages


def test_invalid_user_count_is_rejected_before_launch(doubling_test, make_simulator):
    with pytest.raises(ContractViolation) as exc_info:
        make_simulator(doubling_test).verify_thread_safety(_ts_params(0))
    assert exc_info.value.error_code == "CONTRACT_006"
    assert doubling_test.data_params == []


def test_template_without_int_placeholder_is_rejected(doubling_test, make_simulator):
    params = _ts_params(2, **{RESULT_MESSAGE: "users doubled %s numbers in %.2f"})
    with pytest.raises(ContractViolation) as exc_info:
        make_simulator(doubling_test).verify_thread_safety(params)
    assert exc_info.value.error_code == "CONTRACT_005"
