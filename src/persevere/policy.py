"""Retry policy: a delay strategy paired with a retry budget.

The policy is pure configuration. Frozen, so a single instance can be
shared by any number of concurrent sessions.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated

from pydantic import BaseModel, ConfigDict, Field, computed_field

from persevere.errors import ConfigurationError
from persevere.strategy import Constant, DelayStrategy, ExponentialBackoff, Fuzzy, Linear

if TYPE_CHECKING:
    from persevere.config import PersevereSettings


class RetryPolicy(BaseModel):
    """How often and how patiently to retry.

    Attributes:
        strategy: Delay strategy, evaluated with the 1-based retry number
        max_retries: Extra attempts allowed after the first (0 = no retries)

    Example:
        >>> policy = RetryPolicy(strategy=Linear(0.001), max_retries=2)
        >>> policy.delay_for(2)
        0.002
    """

    model_config = ConfigDict(
        frozen=True,
        arbitrary_types_allowed=True,  # For DelayStrategy protocol
        extra="forbid",
        revalidate_instances="never",
    )

    strategy: DelayStrategy
    max_retries: Annotated[int, Field(ge=0)]

    @computed_field
    @property
    def is_disabled(self) -> bool:
        """Whether the task gets exactly one attempt."""
        return self.max_retries == 0

    def delay_for(self, attempt: int) -> float:
        """Delay before the given 1-based retry."""
        return self.strategy.delay(attempt)

    @classmethod
    def from_settings(cls, settings: PersevereSettings | None = None) -> RetryPolicy:
        """Build a policy from ``PERSEVERE_RETRY_*`` configuration.

        Raises:
            ConfigurationError: If the configured strategy kind is unknown
        """
        if settings is None:
            from persevere.config import get_settings
            settings = get_settings()
        cfg = settings.retry
        match cfg.strategy:
            case "constant":
                strategy: DelayStrategy = Constant(cfg.base_delay)
            case "linear":
                strategy = Linear(cfg.base_delay)
            case "exponential":
                strategy = ExponentialBackoff(cfg.base_delay)
            case "fuzzy_exponential":
                strategy = Fuzzy(cfg.fuzz_factor, ExponentialBackoff(cfg.base_delay))
            case other:
                raise ConfigurationError(f"Unknown retry strategy: {other!r}")
        return cls(strategy=strategy, max_retries=cfg.max_retries)


# Singleton for single-attempt execution
NO_RETRY = RetryPolicy(strategy=Constant(0.0), max_retries=0)
