"""Immutable retry session state."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from persevere.policy import RetryPolicy


@dataclass(frozen=True, slots=True)
class RetryContext:
    """Snapshot of a session's progress.

    Never mutated: each retry gets a fresh context from ``advance()``, so a
    timer callback only ever sees the context it was scheduled with.

    Attributes:
        policy: Policy governing the session
        current_try: Number of retries already made (0 for the first attempt)
    """

    policy: RetryPolicy
    current_try: int = 0

    @property
    def next_try(self) -> int:
        """1-based number of the retry that would follow this attempt."""
        return self.current_try + 1

    @property
    def retries_left(self) -> bool:
        return self.current_try < self.policy.max_retries

    @property
    def attempts(self) -> int:
        """Invocations made so far, counting the one in flight."""
        return self.current_try + 1

    def advance(self) -> RetryContext:
        """Context for the next attempt."""
        return RetryContext(self.policy, self.current_try + 1)

    def next_delay(self) -> float:
        """Delay before the retry following this attempt."""
        return self.policy.delay_for(self.next_try)
