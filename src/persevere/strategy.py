"""Delay strategies for retry policies.

A strategy maps the 1-based index of the next retry to the number of
seconds to wait before making it:
- Constant: Fixed delay
- Linear: ``multiplier * attempt``
- ExponentialBackoff: Random slot in a window that doubles per attempt
- Fuzzy: Random perturbation of another strategy (jitter)
- Custom: Caller-supplied function

Strategies are frozen values and compose: ``Fuzzy`` wraps any other
strategy, including another ``Fuzzy``.

Example:
    >>> delays(Linear(0.5), 3)
    [0.5, 1.0, 1.5]
    >>> jittered = Fuzzy(0.2, Constant(1.0))
    >>> all(0.8 <= d <= 1.2 for d in delays(jittered, 10))
    True
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Protocol, runtime_checkable

from persevere.randomness import RandomSource, default_source, pick

# Slot windows for the first two retries; later retries draw continuously
_FIRST_SLOTS: tuple[int, ...] = (0, 1)
_SECOND_SLOTS: tuple[int, ...] = (0, 1, 2, 3)

# Window exponent ceiling: delay never exceeds (2**32 - 1) * base
MAX_SLOT = 32


@runtime_checkable
class DelayStrategy(Protocol):
    """Protocol for delay calculation.

    Attempt numbers are 1-based: the first retry (second invocation of the
    task) is attempt 1.
    """

    def delay(self, attempt: int) -> float:
        """Calculate delay in seconds before the given retry.

        Args:
            attempt: 1-based retry number

        Returns:
            Delay in seconds, >= 0 except for the documented edge cases
            (``Fuzzy`` with factor > 1, ``Custom`` returning negatives)
        """
        ...


@dataclass(frozen=True, slots=True)
class Constant:
    """Same delay before every retry.

    Attributes:
        seconds: Fixed delay in seconds
    """

    seconds: float

    def delay(self, attempt: int) -> float:
        return self.seconds


@dataclass(frozen=True, slots=True)
class Linear:
    """Delay grows by ``multiplier`` seconds per retry.

    Delay = multiplier * attempt
    """

    multiplier: float

    def delay(self, attempt: int) -> float:
        return self.multiplier * attempt


@dataclass(frozen=True, slots=True)
class ExponentialBackoff:
    """Classic slotted exponential backoff.

    Delay = k * base, where k is random and its window doubles per retry:
    - retry 1: k in {0, 1}
    - retry 2: k in {0, 1, 2, 3}
    - retry n >= 3: k continuous in [0, 2^min(n, 32) - 1]

    The window stops growing at slot 32, bounding the delay at
    ``(2**32 - 1) * base`` however long the retry sequence gets.

    See: https://en.wikipedia.org/wiki/Exponential_backoff

    Attributes:
        base: Slot time in seconds
        source: Random source (default: process-wide source)
    """

    base: float
    source: RandomSource | None = field(default=None, compare=False, repr=False)

    def delay(self, attempt: int) -> float:
        source = self.source or default_source()
        if attempt == 1:
            return (pick(_FIRST_SLOTS, source) or 0) * self.base
        if attempt == 2:
            return (pick(_SECOND_SLOTS, source) or 0) * self.base
        slot = min(attempt, MAX_SLOT)
        return source.uniform(2.0 ** slot - 1) * self.base


@dataclass(frozen=True, slots=True)
class Fuzzy:
    """Random perturbation of another strategy.

    Delay = inner.delay(attempt) * f, f uniform in [1 - factor, 1 + factor]

    Decorrelates callers that share the same base strategy. A factor above 1
    can produce negative delays; the executor clamps those to zero.

    Attributes:
        factor: Relative spread, normally in (0, 1]
        inner: Wrapped strategy
        source: Random source (default: process-wide source)
    """

    factor: float
    inner: DelayStrategy
    source: RandomSource | None = field(default=None, compare=False, repr=False)

    def delay(self, attempt: int) -> float:
        u = (self.source or default_source()).uniform(1.0)
        return ((u * 2 * self.factor) - self.factor + 1.0) * self.inner.delay(attempt)


@dataclass(frozen=True, slots=True)
class Custom:
    """Caller-defined strategy. The function's value is used verbatim."""

    fn: Callable[[int], float]

    def delay(self, attempt: int) -> float:
        return self.fn(attempt)


def delays(strategy: DelayStrategy, count: int) -> list[float]:
    """Delays for retries 1..count, in order."""
    return [strategy.delay(attempt) for attempt in range(1, count + 1)]
