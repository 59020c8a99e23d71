"""Deterministic stand-ins for tests.

Provides:
- SequenceRandomSource: Replays fixed fractions instead of random draws
- ManualScheduler: Virtual-time scheduler that records requested delays
- ScriptedTask: Task reporting a fixed sequence of results
"""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass, field
from typing import Callable, Generic, Sequence, TypeVar

from persevere.errors import RandomSourceError
from persevere.scheduler import TimerHandle

R = TypeVar("R")


class SequenceRandomSource:
    """Random source replaying fractions in ``[0, 1]``, cycling when exhausted.

    ``uniform(u)`` returns ``fraction * u``; ``integer(u)`` returns
    ``min(int(fraction * u), u - 1)``, so 0.0 picks the first choice and
    1.0 the last.
    """

    def __init__(self, fractions: Sequence[float]) -> None:
        if not fractions:
            raise ValueError("SequenceRandomSource needs at least one fraction")
        if any(not 0.0 <= f <= 1.0 for f in fractions):
            raise ValueError(f"Fractions must lie in [0, 1]: {list(fractions)}")
        self._fractions = itertools.cycle(fractions)
        self._lock = threading.Lock()

    def _next(self) -> float:
        with self._lock:
            return next(self._fractions)

    def uniform(self, upper: float = 1.0) -> float:
        if upper < 0:
            raise RandomSourceError(f"upper bound must be >= 0, got {upper}")
        return self._next() * upper

    def integer(self, upper: int) -> int:
        if upper <= 0:
            raise RandomSourceError(f"upper bound must be > 0, got {upper}")
        return min(int(self._next() * upper), upper - 1)


class ManualScheduler:
    """Scheduler driven by the test instead of a clock.

    Timers fire only when ``advance`` moves virtual time past their
    deadline, on the calling thread.

    Example:
        >>> scheduler = ManualScheduler()
        >>> session = run(policy, task, on_done, scheduler=scheduler)
        >>> scheduler.run_all()
        >>> scheduler.delays
        [0.001, 0.002]
    """

    def __init__(self) -> None:
        self.now = 0.0
        self.delays: list[float] = []
        self._timers: list[tuple[float, int, TimerHandle]] = []
        self._seq = itertools.count()

    @property
    def pending(self) -> int:
        return sum(1 for _, _, h in self._timers if not h.cancelled)

    def call_later(self, delay: float, callback: Callable[[], object]) -> TimerHandle:
        handle = TimerHandle(max(delay, 0.0), callback)
        self.delays.append(handle.delay)
        self._timers.append((self.now + handle.delay, next(self._seq), handle))
        return handle

    def advance(self, seconds: float) -> int:
        """Move virtual time forward, firing due timers in deadline order.

        Returns:
            Number of timers fired
        """
        target = self.now + seconds
        fired = 0
        while True:
            due = sorted(t for t in self._timers if t[0] <= target)
            if not due:
                break
            entry = due[0]
            self._timers.remove(entry)
            self.now = max(self.now, entry[0])
            if not entry[2].cancelled:
                entry[2].fire()
                fired += 1
        self.now = target
        return fired

    def run_all(self, limit: int = 10_000) -> int:
        """Fire timers (including ones scheduled while firing) until none remain."""
        fired = 0
        while self._timers and fired < limit:
            deadline = min(t[0] for t in self._timers)
            fired += self.advance(max(deadline - self.now, 0.0))
        return fired


@dataclass
class ScriptedTask(Generic[R]):
    """Task that reports the next scripted result on each invocation.

    The last result repeats once the script is exhausted.
    """

    results: Sequence[R]
    invocations: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __call__(self, report: Callable[[R], None]) -> None:
        with self._lock:
            index = min(self.invocations, len(self.results) - 1)
            self.invocations += 1
        report(self.results[index])
