"""
PhaseHarness - Functional, performance and thread-safety testing for pluggable components.

This module owns the Loguru configuration shared by every harness module. Logging is
test-configurable so pytest fixtures can redirect or silence the console sink, and the
public harness API is re-exported at the bottom of the module.
"""

__version__ = "0.1.0"

import sys
import os
from pathlib import Path
from typing import Optional, Dict, Union, TextIO
from loguru import logger
from pydantic import ValidationError
import warnings


# --- Logger Configuration Classes and Types ---

class LoggingConfigError(Exception):
    """Exception raised when logging configuration fails validation or setup."""
    pass


class LoggerState:
    """
    Tracks logger sinks installed by the harness.

    Keeping the sink ids lets tests tear down exactly what the harness added
    without touching sinks installed by the host application.
    """

    def __init__(self):
        self._initialized = False
        self._test_mode = False
        self._sink_ids = []

    def is_initialized(self) -> bool:
        """Check if logger has been initialized."""
        return self._initialized

    def is_test_mode(self) -> bool:
        """Check if logger is in test mode."""
        return self._test_mode

    def mark_initialized(self, test_mode: bool = False):
        """Mark logger as initialized."""
        self._initialized = True
        self._test_mode = test_mode

    def add_sink_id(self, sink_id: int):
        """Track sink IDs for cleanup."""
        self._sink_ids.append(sink_id)

    @property
    def sink_ids(self):
        return list(self._sink_ids)

    def reset(self):
        """Reset logger state for test isolation."""
        self._initialized = False
        self._test_mode = False
        self._sink_ids.clear()


_logger_state = LoggerState()


# --- Configuration Validation Functions ---

def validate_log_level(level: str) -> str:
    """
    Validate a Loguru log level name.

    Args:
        level: Log level string to validate

    Returns:
        Upper-cased log level

    Raises:
        LoggingConfigError: If log level is invalid
    """
    valid_levels = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}
    level_upper = level.upper()

    if level_upper not in valid_levels:
        raise LoggingConfigError(
            f"Invalid log level '{level}'. Must be one of: {', '.join(sorted(valid_levels))}"
        )

    return level_upper


def validate_output_destination(destination: Union[str, Path, TextIO, None]) -> Union[str, TextIO, None]:
    """
    Validate a sink destination, creating the parent directory of file sinks.

    Raises:
        LoggingConfigError: If destination is invalid
    """
    if destination is None:
        return None

    if hasattr(destination, 'write'):
        return destination

    try:
        path_dest = Path(destination)

        if not path_dest.parent.exists():
            try:
                path_dest.parent.mkdir(parents=True, exist_ok=True)
            except (OSError, PermissionError) as e:
                raise LoggingConfigError(
                    f"Cannot create directory for log destination '{destination}': {e}"
                )

        return str(path_dest)
    except (TypeError, ValueError) as e:
        raise LoggingConfigError(
            f"Invalid output destination '{destination}': {e}"
        )


# --- Core Logging Configuration Functions ---

def configure_console_logging(
    level: str = "INFO",
    format_template: Optional[str] = None,
    colorize: bool = True,
    destination: TextIO = sys.stderr
) -> int:
    """
    Add a console sink for harness output.

    Phase banners, assertion counts and per-user result messages are written
    at INFO, so the default level shows the whole trace of a run.

    Returns:
        Sink ID for tracking and cleanup

    Raises:
        LoggingConfigError: If configuration fails
    """
    try:
        validated_level = validate_log_level(level)

        if format_template is None:
            format_template = (
                "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{thread.name}</cyan> | "
                "<cyan>{module}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
            )

        sink_id = logger.add(
            destination,
            level=validated_level,
            format=format_template,
            colorize=colorize
        )

        _logger_state.add_sink_id(sink_id)
        return sink_id

    except Exception as e:
        raise LoggingConfigError(f"Failed to configure console logging: {e}") from e


def configure_file_logging(
    log_file_path: Union[str, Path],
    level: str = "DEBUG",
    rotation: str = "10 MB",
    retention: str = "7 days",
    format_template: Optional[str] = None,
    encoding: str = "utf-8",
) -> int:
    """
    Add a rotating file sink.

    Args:
        log_file_path: Path to log file
        level: Log level for file output
        rotation: Log rotation setting
        retention: Log retention setting
        format_template: Custom format template (uses default if None)
        encoding: File encoding

    Returns:
        Sink ID for tracking and cleanup

    Raises:
        LoggingConfigError: If configuration fails
    """
    try:
        validated_level = validate_log_level(level)
        validated_path = validate_output_destination(log_file_path)

        if format_template is None:
            format_template = (
                "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
                "{level: <8} | "
                "{thread.name} | "
                "{name}:{function}:{line} - {message}"
            )

        sink_id = logger.add(
            validated_path,
            rotation=rotation,
            retention=retention,
            level=validated_level,
            format=format_template,
            encoding=encoding,
            enqueue=True,
        )

        _logger_state.add_sink_id(sink_id)
        return sink_id

    except Exception as e:
        raise LoggingConfigError(f"Failed to configure file logging: {e}") from e


# --- Test-Specific Entry Points ---

def configure_test_logging(
    console_level: str = "DEBUG",
    console_destination: Optional[TextIO] = None,
    capture_warnings: bool = False,
) -> Dict[str, int]:
    """
    Configure logging for test scenarios.

    Removes every existing sink, then installs an uncolored console sink.

    Returns:
        Dictionary mapping sink types to sink IDs

    Raises:
        LoggingConfigError: If test logging configuration fails
    """
    try:
        reset_logging()

        sink_ids = {}
        console_dest = console_destination if console_destination is not None else sys.stderr
        sink_ids['console'] = configure_console_logging(
            level=console_level,
            destination=console_dest,
            colorize=False,
        )

        if capture_warnings:
            warnings.showwarning = lambda *args: logger.warning(
                f"Warning: {args[0]} ({args[1]}:{args[2]})"
            )

        _logger_state.mark_initialized(test_mode=True)
        return sink_ids

    except Exception as e:
        raise LoggingConfigError(f"Failed to configure test logging: {e}") from e


def reset_logging():
    """
    Remove all sinks and reset the tracked state.

    Raises:
        LoggingConfigError: If reset fails
    """
    try:
        logger.remove()
        _logger_state.reset()
    except Exception as e:
        raise LoggingConfigError(f"Failed to reset logging configuration: {e}") from e


# --- Production Logging Initialization ---

def initialize_logging(
    console_level: str = "INFO",
    log_file: Optional[Union[str, Path]] = None,
    file_level: str = "DEBUG",
) -> Dict[str, int]:
    """
    Replace Loguru's default handler with the harness console sink.

    A file sink is only added when ``log_file`` is given; the harness keeps no
    persisted state of its own.

    Returns:
        Dictionary mapping sink types to sink IDs

    Raises:
        LoggingConfigError: If initialization fails
    """
    try:
        logger.remove()

        sink_ids = {}
        sink_ids['console'] = configure_console_logging(level=console_level)

        if log_file is not None:
            sink_ids['file'] = configure_file_logging(log_file_path=log_file, level=file_level)

        _logger_state.mark_initialized(test_mode=False)
        logger.debug("--- PhaseHarness Logger Initialized ---")

        return sink_ids

    except Exception as e:
        raise LoggingConfigError(f"Failed to initialize logging: {e}") from e


def get_logger_state() -> LoggerState:
    """Get current logger state for test inspection."""
    return _logger_state


def is_logging_initialized() -> bool:
    return _logger_state.is_initialized()


def is_test_mode() -> bool:
    return _logger_state.is_test_mode()


def _auto_initialize_logging():
    """
    Install the console sink on import unless pytest is driving the process.

    The level is ``HarnessSettings.log_level``, so ``PHASEHARNESS_LOG_LEVEL``
    applies here exactly as it does to explicitly loaded settings.
    """
    if not _logger_state.is_initialized() and not _is_pytest_running():
        try:
            initialize_logging(console_level=HarnessSettings().log_level)
        except (ValidationError, LoggingConfigError) as e:
            warnings.warn(f"Failed to initialize logging: {e}. Using basic stderr logging.")
            logger.remove()
            logger.add(sys.stderr, level="INFO")
            _logger_state.mark_initialized(test_mode=False)


def _is_pytest_running() -> bool:
    return "pytest" in sys.modules or "PYTEST_CURRENT_TEST" in os.environ


# --- End Logger Configuration ---

# Public API. Imported after the logger so submodules can use
# ``from phaseharness import logger``.
from phaseharness.exceptions import (  # noqa: E402
    PhaseHarnessError,
    ContractViolation,
    ConsumerFailure,
    InstrumentationFailure,
    PhaseExecutionError,
)
from phaseharness.config import HarnessSettings, load_settings, ParameterDerivation  # noqa: E402
from phaseharness.instrumentation import (  # noqa: E402
    AtomicCounter,
    CounterRegistry,
    AsyncCounterDispatcher,
    AssertionProbe,
    default_probe,
)
from phaseharness.tracking import AssertionResultTracker  # noqa: E402
from phaseharness.harness import (  # noqa: E402
    ComponentTestCase,
    ConcurrentUserSimulator,
    Phase,
    PhaseOrchestrator,
    PhaseResult,
    HarnessReport,
)

# Needs HarnessSettings, so it runs once the public API is importable.
_auto_initialize_logging()

__all__ = [
    "logger",
    "LoggingConfigError",
    "configure_console_logging",
    "configure_file_logging",
    "configure_test_logging",
    "reset_logging",
    "initialize_logging",
    "get_logger_state",
    "is_logging_initialized",
    "is_test_mode",
    "validate_log_level",
    "validate_output_destination",
    "PhaseHarnessError",
    "ContractViolation",
    "ConsumerFailure",
    "InstrumentationFailure",
    "PhaseExecutionError",
    "HarnessSettings",
    "load_settings",
    "ParameterDerivation",
    "AtomicCounter",
    "CounterRegistry",
    "AsyncCounterDispatcher",
    "AssertionProbe",
    "default_probe",
    "AssertionResultTracker",
    "ComponentTestCase",
    "ConcurrentUserSimulator",
    "Phase",
    "PhaseOrchestrator",
    "PhaseResult",
    "HarnessReport",
]
