"""Helpers shared by the phase handlers and the user simulator."""

from typing import Any, Callable, Optional, TypeVar

from phaseharness.config.parameters import RESULT_MESSAGE
from phaseharness.exceptions import ConsumerFailure, ContractViolation, PhaseHarnessError

T = TypeVar("T")

_CALLBACK_CODES = {
    "generate_test_data": "CONSUMER_001",
    "get_component_under_test": "CONSUMER_002",
    "verify_functionality": "CONSUMER_003",
    "reset": "CONSUMER_004",
}


def call_consumer(
    callback: Callable[..., T],
    *args: Any,
    user_id: Optional[str] = None,
) -> T:
    """
    Invoke a consumer callback, wrapping anything it raises in ``ConsumerFailure``.

    Harness errors (contract violations, failed probes) pass through unchanged.
    """
    name = getattr(callback, "__name__", repr(callback))
    try:
        return callback(*args)
    except PhaseHarnessError:
        raise
    except Exception as e:
        context = {"callback": name, "error_type": type(e).__name__}
        if user_id is not None:
            context["user_id"] = user_id
        raise ConsumerFailure(
            f"{name} raised: {e}",
            error_code=_CALLBACK_CODES.get(name, "CONSUMER_003"),
            context=context,
        ) from e


def format_result_message(template: str, *values: Any) -> str:
    """
    Apply printf-style ``values`` to a validated result template.

    Raises:
        ContractViolation: If the template's placeholders do not fit ``values``
    """
    try:
        return template % values
    except (TypeError, ValueError) as e:
        raise ContractViolation(
            f"the value '{RESULT_MESSAGE}' could not be formatted with {len(values)} values: {e}",
            error_code="CONTRACT_008",
            context={"key": RESULT_MESSAGE, "template": template},
        ) from e
