"""
Parameter maps for the three harness phases and the contracts they must satisfy.

Each phase builds on the previous one:

    functional    -> {user.id, number.items}
    performance   -> functional + {disable.performance.test, result.message},
                     number.items raised to the performance default
    thread safety -> performance + {number.of.simultaneous.users,
                     disable.thread.safety.test}, result.message replaced by
                     the thread-safety template

Performance result messages are formatted with ``(count, seconds)`` and must hold a
floating-point placeholder such as ``%.2f``. Thread-safety result messages are
formatted with ``(users, count, seconds)`` and additionally need ``%d``.
"""

import random
import re
from typing import Any, Dict, Mapping, Optional, Protocol

from phaseharness import logger
from phaseharness.config.settings import HarnessSettings
from phaseharness.exceptions import ContractViolation
from phaseharness.models import Phase


ParameterMap = Dict[str, Any]

# the id of the user; distinguishes simulated users during thread-safety testing
USER_ID = "user.id"

# max number of items for performance testing, also used by each simulated user
NUM_ITEMS = "number.items"

# number of simultaneous users to simulate during thread-safety testing
NUMBER_OF_SIMULTANEOUS_USERS = "number.of.simultaneous.users"

# set to True in the performance map to skip performance testing
DISABLE_PERFORMANCE_TEST = "disable.performance.test"

# set to True in the thread-safety map to skip thread-safety testing
DISABLE_THREAD_SAFETY_TEST = "disable.thread.safety.test"

# template used to format the phase result message
RESULT_MESSAGE = "result.message"

# verification calls made by one user during its performance run
COUNT_FOR_THIS_USER = "count.for.this.user"

FLOAT_PLACEHOLDER = "%.2f"
INT_PLACEHOLDER = "%d"

# messages displayed by the harness when a contract is broken
MUST_CONTAIN_SEQUENCE = "the value '%s' must contain the sequence '%s'"
NOT_EMPTY = "the value of '%s' cannot be empty."
MUST_BE_POSITIVE = "the value of '%s' must be greater than 0."
MUST_BE = "the value of '%s' must be an '%s'."
MUST_CONTAIN = "the parameter map for '%s' must contain a '%s' field."

_FLOAT_CONVERSION = re.compile(r"%[-+ #0]*\d*(?:\.\d+)?f")
_INT_CONVERSION = re.compile(r"%[-+ #0]*\d*d")


class ResultMessageSource(Protocol):
    """The parts of a consumer that parameter derivation reads."""

    def get_perf_test_result_message(self) -> str:
        ...

    def get_thread_safety_result_message(self) -> str:
        ...

    def parameter_overrides(self, phase: Phase) -> Mapping[str, Any]:
        ...


class ParameterDerivation:
    """
    Builds the cascading parameter maps for one consumer.

    Every call returns a fresh dict, so simulated users can each mutate their
    own copy.
    """

    def __init__(
        self,
        source: ResultMessageSource,
        settings: Optional[HarnessSettings] = None,
        rng: Optional[random.Random] = None,
        user_id: Optional[str] = None,
    ):
        self.source = source
        self.settings = settings or HarnessSettings()
        self.rng = rng or random.Random(self.settings.random_seed)
        self.user_id = user_id

    @property
    def user(self) -> str:
        """Identity used by the functional phase."""
        return self.user_id or self.settings.default_user_id

    def functional_parameters(self) -> ParameterMap:
        params: ParameterMap = {
            USER_ID: self.user,
            NUM_ITEMS: self.settings.functional_items,
        }
        return self._apply_overrides(Phase.FUNCTIONAL, params)

    def performance_parameters(self) -> ParameterMap:
        params = self.functional_parameters()
        params[DISABLE_PERFORMANCE_TEST] = False
        params[RESULT_MESSAGE] = self.source.get_perf_test_result_message()
        params[NUM_ITEMS] = self.settings.performance_items
        return self._apply_overrides(Phase.PERFORMANCE, params)

    def thread_safety_parameters(self) -> ParameterMap:
        users = self.rng.randint(
            self.settings.min_simultaneous_users,
            self.settings.max_simultaneous_users,
        )

        params = self.performance_parameters()
        params[NUMBER_OF_SIMULTANEOUS_USERS] = users
        params[DISABLE_THREAD_SAFETY_TEST] = False
        params[RESULT_MESSAGE] = self.source.get_thread_safety_result_message()
        return self._apply_overrides(Phase.THREAD_SAFETY, params)

    def parameters_for(self, phase: Phase) -> ParameterMap:
        if phase is Phase.FUNCTIONAL:
            return self.functional_parameters()
        if phase is Phase.PERFORMANCE:
            return self.performance_parameters()
        if phase is Phase.THREAD_SAFETY:
            return self.thread_safety_parameters()
        raise ValueError(f"No parameters are derived for phase '{phase.label}'")

    def user_parameters(self, index: int, users: int) -> ParameterMap:
        """Performance map for one simulated user."""
        params = self.performance_parameters()
        params[USER_ID] = f"user-{index}"
        params[NUMBER_OF_SIMULTANEOUS_USERS] = users
        return params

    def _apply_overrides(self, phase: Phase, params: ParameterMap) -> ParameterMap:
        overrides = self.source.parameter_overrides(phase)
        if overrides:
            logger.debug(f"Applying {len(overrides)} {phase.label} parameter override(s)")
            params.update(overrides)
        return params


# --- Contract validation ---

def is_thread_safety_run(params: Mapping[str, Any]) -> bool:
    """A map belongs to a thread-safety run once it carries a user count."""
    return params.get(NUMBER_OF_SIMULTANEOUS_USERS) is not None


def is_disabled(params: Mapping[str, Any], key: str) -> bool:
    """
    Interpret a ``disable.*`` flag.

    Missing flags are false; strings follow ``"true"`` case-insensitively.
    """
    value = params.get(key)
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    raise ContractViolation(
        MUST_BE % (key, "bool"),
        error_code="CONTRACT_002",
        context={"key": key, "actual_type": type(value).__name__},
    )


def validate_result_message(params: Mapping[str, Any], phase: Phase) -> str:
    """
    Check that the result-message template is usable for ``phase``.

    Returns:
        The validated template

    Raises:
        ContractViolation: With a distinct message per broken rule
    """
    template = params.get(RESULT_MESSAGE)
    if template is None:
        raise ContractViolation(
            MUST_CONTAIN % (phase.label, RESULT_MESSAGE),
            error_code="CONTRACT_001",
            context={"phase": phase.label, "key": RESULT_MESSAGE},
        )
    if not isinstance(template, str):
        raise ContractViolation(
            MUST_BE % (RESULT_MESSAGE, "str"),
            error_code="CONTRACT_002",
            context={"phase": phase.label, "key": RESULT_MESSAGE},
        )
    if not template.strip():
        raise ContractViolation(
            NOT_EMPTY % RESULT_MESSAGE,
            error_code="CONTRACT_003",
            context={"phase": phase.label, "key": RESULT_MESSAGE},
        )
    if not _FLOAT_CONVERSION.search(template):
        raise ContractViolation(
            MUST_CONTAIN_SEQUENCE % (RESULT_MESSAGE, FLOAT_PLACEHOLDER),
            error_code="CONTRACT_004",
            context={"phase": phase.label, "key": RESULT_MESSAGE},
        )
    if phase is Phase.THREAD_SAFETY and not _INT_CONVERSION.search(template):
        raise ContractViolation(
            MUST_CONTAIN_SEQUENCE % (RESULT_MESSAGE, INT_PLACEHOLDER),
            error_code="CONTRACT_005",
            context={"phase": phase.label, "key": RESULT_MESSAGE},
        )
    return template


def validate_user_count(params: Mapping[str, Any]) -> int:
    """
    Check the simultaneous-user count of a thread-safety map.

    Raises:
        ContractViolation: If the count is missing, not an int, or not positive
    """
    num = params.get(NUMBER_OF_SIMULTANEOUS_USERS)
    if num is None:
        raise ContractViolation(
            MUST_CONTAIN % (Phase.THREAD_SAFETY.label, NUMBER_OF_SIMULTANEOUS_USERS),
            error_code="CONTRACT_001",
            context={"phase": Phase.THREAD_SAFETY.label, "key": NUMBER_OF_SIMULTANEOUS_USERS},
        )
    if isinstance(num, bool) or not isinstance(num, int):
        raise ContractViolation(
            MUST_BE % (NUMBER_OF_SIMULTANEOUS_USERS, "int"),
            error_code="CONTRACT_002",
            context={"phase": Phase.THREAD_SAFETY.label, "key": NUMBER_OF_SIMULTANEOUS_USERS},
        )
    if num <= 0:
        raise ContractViolation(
            MUST_BE_POSITIVE % NUMBER_OF_SIMULTANEOUS_USERS,
            error_code="CONTRACT_006",
            context={"phase": Phase.THREAD_SAFETY.label, "key": NUMBER_OF_SIMULTANEOUS_USERS},
        )
    return num


def validate_item_count(params: Mapping[str, Any]) -> int:
    items = params.get(NUM_ITEMS)
    if isinstance(items, bool) or not isinstance(items, int) or items < 0:
        raise ContractViolation(
            MUST_BE % (NUM_ITEMS, "int"),
            error_code="CONTRACT_002",
            context={"key": NUM_ITEMS, "value": items},
        )
    return items
