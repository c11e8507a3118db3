"""
Environment-aware harness settings.

Every knob of a run (defaults for the parameter maps, the simultaneous-user range,
worker pool size, timeouts and the internal-check switch) lives on one pydantic
settings model so it can be overridden from ``PHASEHARNESS_*`` environment variables
or passed explicitly to the orchestrator.
"""

from typing import Any, Dict, Optional

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from phaseharness import LoggingConfigError, logger, validate_log_level
from phaseharness.exceptions import ContractViolation


class HarnessSettings(BaseSettings):
    """
    Settings for a single harness run.

    Attributes:
        default_user_id: Identity placed in the functional parameter map
        functional_items: Item count for the functional phase
        performance_items: Upper bound on performance iterations
        min_simultaneous_users: Inclusive lower bound for the random user count
        max_simultaneous_users: Inclusive upper bound for the random user count
        max_workers: Ceiling on threads in the user pool
        user_timeout: Seconds to wait for each simulated user; None waits forever
        drain_timeout: Seconds to wait for probe quiescence before reporting deltas
        internal_checks: Whether failing probes raise InstrumentationFailure
        random_seed: Seed for the run's random source; None seeds from the OS
        log_level: Console level for the import-time sink and ``initialize_logging`` callers
    """

    model_config = SettingsConfigDict(
        env_prefix="PHASEHARNESS_",
        case_sensitive=False,
        validate_assignment=True,
        extra="ignore",
    )

    default_user_id: str = Field(default="user", min_length=1)
    functional_items: int = Field(default=20, ge=0)
    performance_items: int = Field(default=50, ge=0)
    min_simultaneous_users: int = Field(default=2, ge=1)
    max_simultaneous_users: int = Field(default=11, ge=1)
    max_workers: int = Field(default=32, gt=0)
    user_timeout: Optional[float] = Field(default=None, gt=0)
    drain_timeout: float = Field(default=1.0, ge=0)
    internal_checks: bool = Field(default=__debug__)
    random_seed: Optional[int] = None
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Accept any Loguru level name, case-insensitively."""
        try:
            return validate_log_level(v)
        except LoggingConfigError as e:
            raise ValueError(str(e)) from e

    @model_validator(mode="after")
    def validate_user_range(self) -> "HarnessSettings":
        if self.min_simultaneous_users > self.max_simultaneous_users:
            raise ValueError(
                f"min_simultaneous_users ({self.min_simultaneous_users}) cannot exceed "
                f"max_simultaneous_users ({self.max_simultaneous_users})"
            )
        return self


def load_settings(**overrides: Any) -> HarnessSettings:
    """
    Build settings from the environment plus explicit overrides.

    Raises:
        ContractViolation: If the resulting settings are invalid
    """
    try:
        settings = HarnessSettings(**overrides)
    except ValidationError as e:
        error_details = []
        for error in e.errors():
            field_path = " -> ".join(str(loc) for loc in error['loc'])
            error_details.append(f"Field '{field_path}': {error['msg']}")

        detailed_error = "Harness settings validation failed:\n" + "\n".join(error_details)
        logger.error(detailed_error)
        raise ContractViolation(
            detailed_error,
            error_code="CONTRACT_007",
            context={"validation_errors": error_details}
        ) from e

    logger.debug(f"Loaded harness settings: {settings_summary(settings)}")
    return settings


def settings_summary(settings: HarnessSettings) -> Dict[str, Any]:
    return settings.model_dump(exclude={"log_level"})
