"""Uniform random generation for jitter and backoff.

Strategies never reach for the global ``random`` module directly; they draw
from a ``RandomSource`` so tests can substitute a deterministic one.

Example:
    >>> source = SystemRandomSource(seed=7)
    >>> 0.0 <= source.uniform(10.0) <= 10.0
    True
    >>> source.integer(4) in range(4)
    True
"""

from __future__ import annotations

import random
import threading
from typing import Protocol, Sequence, TypeVar, runtime_checkable

from persevere.errors import RandomSourceError

T = TypeVar("T")


@runtime_checkable
class RandomSource(Protocol):
    """Protocol for uniform random draws."""

    def uniform(self, upper: float = 1.0) -> float:
        """Continuous draw in ``[0, upper]`` (both ends inclusive)."""
        ...

    def integer(self, upper: int) -> int:
        """Discrete draw in ``[0, upper)``. Rejects ``upper <= 0``."""
        ...


class SystemRandomSource:
    """Default source backed by a private ``random.Random`` instance.

    Statistically uniform, not cryptographic. Draws are guarded by a lock
    because strategies may be evaluated from timer threads and task threads
    at the same time.
    """

    __slots__ = ("_rng", "_lock")

    def __init__(self, seed: int | None = None) -> None:
        self._rng = random.Random(seed)
        self._lock = threading.Lock()

    def uniform(self, upper: float = 1.0) -> float:
        if upper < 0:
            raise RandomSourceError(f"upper bound must be >= 0, got {upper}")
        with self._lock:
            return self._rng.uniform(0.0, upper)

    def integer(self, upper: int) -> int:
        if upper <= 0:
            raise RandomSourceError(f"upper bound must be > 0, got {upper}")
        with self._lock:
            return self._rng.randrange(upper)

    def __repr__(self) -> str:
        return "SystemRandomSource()"


_default_source: RandomSource = SystemRandomSource()


def default_source() -> RandomSource:
    """Get the process-wide random source."""
    return _default_source


def set_default_source(source: RandomSource) -> RandomSource:
    """Replace the process-wide random source, returning the previous one."""
    global _default_source
    previous, _default_source = _default_source, source
    return previous


def pick(choices: Sequence[T], source: RandomSource | None = None) -> T | None:
    """Pick a uniformly random element, or None when there is nothing to pick."""
    if not choices:
        return None
    return choices[(source or _default_source).integer(len(choices))]
