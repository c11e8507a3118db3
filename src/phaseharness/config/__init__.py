"""Harness settings and phase parameter derivation."""

from phaseharness.config.settings import HarnessSettings, load_settings
from phaseharness.config.parameters import (
    ParameterDerivation,
    ParameterMap,
    USER_ID,
    NUM_ITEMS,
    NUMBER_OF_SIMULTANEOUS_USERS,
    DISABLE_PERFORMANCE_TEST,
    DISABLE_THREAD_SAFETY_TEST,
    RESULT_MESSAGE,
    COUNT_FOR_THIS_USER,
    is_disabled,
    is_thread_safety_run,
    validate_item_count,
    validate_result_message,
    validate_user_count,
)

__all__ = [
    "HarnessSettings",
    "load_settings",
    "ParameterDerivation",
    "ParameterMap",
    "USER_ID",
    "NUM_ITEMS",
    "NUMBER_OF_SIMULTANEOUS_USERS",
    "DISABLE_PERFORMANCE_TEST",
    "DISABLE_THREAD_SAFETY_TEST",
    "RESULT_MESSAGE",
    "COUNT_FOR_THIS_USER",
    "is_disabled",
    "is_thread_safety_run",
    "validate_item_count",
    "validate_result_message",
    "validate_user_count",
]
