"""
PhaseHarness Exception Hierarchy

The harness separates three kinds of failure, each with its own propagation rule:

- ContractViolation: a phase's parameter map is missing or malformed. The current
  phase fails immediately; other phases are unaffected.
- ConsumerFailure: a consumer callback (data generation, component creation,
  verification, reset) raised. The phase fails in the functional and performance
  phases; inside a simulated-user task the failure is isolated and logged.
- InstrumentationFailure: an internal defensive check evaluated false while
  internal checks are enabled. It subclasses AssertionError because it plays the
  role of a failed ``assert``.

PhaseExecutionError is raised once, after every phase has run, when the caller
asked for failures to surface.

Usage Examples:
    >>> try:
    ...     orchestrator.verify_component()
    ... except PhaseExecutionError as e:
    ...     for result in e.report.failed_phases:
    ...         logger.error(f"{result.phase.label}: {result.error}")

    >>> raise ContractViolation("bad template", "CONTRACT_003").with_context({
    ...     "phase": "performance",
    ...     "key": "result.message",
    ... })
"""

from typing import Any, Dict, Optional


class PhaseHarnessError(Exception):
    """
    Base exception class for all harness errors.

    Attributes:
        error_code (str): Unique identifier for programmatic error handling
        context (Dict[str, Any]): Additional context information for debugging

    Error Codes:
        HARNESS_001: Generic harness error
        HARNESS_002: One or more phases failed
        HARNESS_003: Harness used after shutdown
    """

    def __init__(
        self,
        message: str,
        error_code: str = "HARNESS_001",
        context: Optional[Dict[str, Any]] = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = dict(context) if context else {}

    def with_context(self, context: Dict[str, Any]) -> 'PhaseHarnessError':
        """
        Add context to the exception and return self for chaining.

        Example:
            >>> raise PhaseHarnessError("Phase failed").with_context({"phase": "functional"})
        """
        self.context.update(context)
        return self

    def __str__(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} [Error Code: {self.error_code}, Context: {context_str}]"
        return f"{self.message} [Error Code: {self.error_code}]"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"context={self.context!r})"
        )


class ContractViolation(PhaseHarnessError):
    """
    A required phase parameter is missing or malformed.

    Error Codes:
        CONTRACT_001: Required field missing from the parameter map
        CONTRACT_002: Field has the wrong type
        CONTRACT_003: Field is empty
        CONTRACT_004: Result message lacks the floating-point placeholder
        CONTRACT_005: Result message lacks the integer placeholder
        CONTRACT_006: Field must be positive
        CONTRACT_007: Invalid harness settings
        CONTRACT_008: Result message cannot be formatted with the phase values
    """

    def __init__(
        self,
        message: str,
        error_code: str = "CONTRACT_001",
        context: Optional[Dict[str, Any]] = None
    ) -> None:
        super().__init__(message, error_code, context)


class ConsumerFailure(PhaseHarnessError):
    """
    A consumer callback raised while a phase was running.

    The original exception is always chained as ``__cause__``.

    Error Codes:
        CONSUMER_001: generate_test_data failed
        CONSUMER_002: get_component_under_test failed
        CONSUMER_003: verify_functionality failed
        CONSUMER_004: reset failed
    """

    def __init__(
        self,
        message: str,
        error_code: str = "CONSUMER_003",
        context: Optional[Dict[str, Any]] = None
    ) -> None:
        super().__init__(message, error_code, context)


class InstrumentationFailure(PhaseHarnessError, AssertionError):
    """
    A defensive-programming probe evaluated false with internal checks enabled.

    Error Codes:
        INSTRUMENT_001: Probe condition failed
        INSTRUMENT_002: Dispatcher rejected the increment
    """

    def __init__(
        self,
        message: str,
        error_code: str = "INSTRUMENT_001",
        context: Optional[Dict[str, Any]] = None
    ) -> None:
        super().__init__(message, error_code, context)


class PhaseExecutionError(PhaseHarnessError):
    """Raised after a full run when at least one phase failed."""

    def __init__(
        self,
        message: str,
        report: Any = None,
        error_code: str = "HARNESS_002",
        context: Optional[Dict[str, Any]] = None
    ) -> None:
        super().__init__(message, error_code, context)
        self.report = report


def log_and_raise(
    exception: PhaseHarnessError,
    logger: Optional[Any] = None,
    level: str = "error"
) -> None:
    """
    Log an exception with its context and then raise it.

    Args:
        exception: The exception to log and raise
        logger: Logger instance to use (optional)
        level: Log level ("error", "warning", "critical")

    Raises:
        The provided exception after logging
    """
    if logger is not None:
        log_method = getattr(logger, level, logger.error)
        log_method(f"{exception.__class__.__name__}: {exception}")

    raise exception


__all__ = [
    'PhaseHarnessError',
    'ContractViolation',
    'ConsumerFailure',
    'InstrumentationFailure',
    'PhaseExecutionError',
    'log_and_raise',
]
