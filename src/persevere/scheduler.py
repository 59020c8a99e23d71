"""Non-blocking delayed scheduling.

Retries wait on timers, never on a sleeping thread. Two schedulers:
    - ThreadScheduler: One daemon worker thread draining a deadline heap
    - LoopScheduler: Timers on an asyncio event loop, armed thread-safely

Both fire callbacks in deadline order and log (rather than propagate)
exceptions raised by a callback, so one broken session cannot starve the
timers of another.

Example:
    >>> scheduler = ThreadScheduler()
    >>> handle = scheduler.call_later(0.1, lambda: print("fired"))
    >>> scheduler.shutdown()
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Protocol, runtime_checkable

logger = logging.getLogger("persevere.scheduler")


@dataclass(slots=True)
class TimerHandle:
    """A pending callback.

    Cancellation only stops a timer that has not fired yet; it never
    interrupts a callback that is already running.
    """

    delay: float
    callback: Callable[[], object] = field(repr=False)
    cancelled: bool = False
    fired: bool = False

    def cancel(self) -> bool:
        """Cancel if still pending. Returns True if this call cancelled it."""
        if self.fired or self.cancelled:
            return False
        self.cancelled = True
        return True

    def fire(self) -> None:
        if self.cancelled:
            return
        self.fired = True
        try:
            self.callback()
        except Exception:
            logger.exception(f"Timer callback {self.callback!r} raised")


@runtime_checkable
class Scheduler(Protocol):
    """Protocol for delayed callbacks."""

    def call_later(self, delay: float, callback: Callable[[], object]) -> TimerHandle:
        """Run ``callback`` once, ``delay`` seconds from now, without blocking the caller."""
        ...


# ─────────────────────────────────────────────────────────────────────────────
# Thread-backed scheduler
# ─────────────────────────────────────────────────────────────────────────────


class ThreadScheduler:
    """Single worker thread serving a heap of deadlines.

    The worker starts lazily on the first ``call_later`` and is a daemon, so
    it never holds the interpreter open. Callbacks run on the worker thread:
    long-running work inside a callback delays every later timer.
    """

    def __init__(self, name: str = "persevere-timer", *, clock: Callable[[], float] = time.monotonic) -> None:
        self._name = name
        self._clock = clock
        self._heap: list[tuple[float, int, TimerHandle]] = []
        self._seq = itertools.count()
        self._cond = threading.Condition()
        self._thread: threading.Thread | None = None
        self._closed = False

    @property
    def pending(self) -> int:
        """Timers not yet fired (including cancelled ones not yet drained)."""
        with self._cond:
            return len(self._heap)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def call_later(self, delay: float, callback: Callable[[], object]) -> TimerHandle:
        handle = TimerHandle(max(delay, 0.0), callback)
        with self._cond:
            if self._closed:
                raise RuntimeError(f"Scheduler {self._name!r} is shut down")
            heapq.heappush(self._heap, (self._clock() + handle.delay, next(self._seq), handle))
            if self._thread is None:
                self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
                self._thread.start()
            self._cond.notify()
        return handle

    def shutdown(self, timeout: float | None = 1.0) -> None:
        """Stop the worker. Timers that have not fired are dropped.

        Retry sessions waiting on a dropped timer never finish: their
        ``on_done`` is not called. Shut down only once they are done.
        """
        with self._cond:
            if self._closed:
                return
            self._closed = True
            dropped = len(self._heap)
            self._heap.clear()
            self._cond.notify_all()
        if dropped:
            logger.warning(
                f"[{self._name}] Dropped {dropped} pending timer(s) on shutdown; their sessions will not finish"
            )
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def _next_due(self) -> TimerHandle | None:
        """Block until a timer is due. None means shut down."""
        with self._cond:
            while not self._closed:
                if not self._heap:
                    self._cond.wait()
                    continue
                remaining = self._heap[0][0] - self._clock()
                if remaining <= 0:
                    return heapq.heappop(self._heap)[2]
                self._cond.wait(remaining)
        return None

    def _run(self) -> None:
        while (handle := self._next_due()) is not None:
            handle.fire()

    def __repr__(self) -> str:
        return f"ThreadScheduler(name={self._name!r}, pending={self.pending})"


# ─────────────────────────────────────────────────────────────────────────────
# Event-loop scheduler
# ─────────────────────────────────────────────────────────────────────────────


class LoopScheduler:
    """Timers on an asyncio event loop.

    ``call_later`` may be called from any thread; the timer is armed on the
    loop's own thread via ``call_soon_threadsafe``.
    """

    __slots__ = ("_loop",)

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop or asyncio.get_running_loop()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    def call_later(self, delay: float, callback: Callable[[], object]) -> TimerHandle:
        handle = TimerHandle(max(delay, 0.0), callback)
        self._loop.call_soon_threadsafe(self._arm, handle)
        return handle

    def _arm(self, handle: TimerHandle) -> None:
        if not handle.cancelled:
            self._loop.call_later(handle.delay, handle.fire)


# ─────────────────────────────────────────────────────────────────────────────
# Process-wide default
# ─────────────────────────────────────────────────────────────────────────────

_default_scheduler: ThreadScheduler | None = None
_default_lock = threading.Lock()


def default_scheduler() -> ThreadScheduler:
    """Get or create the shared thread scheduler."""
    global _default_scheduler
    if _default_scheduler is None:
        with _default_lock:
            if _default_scheduler is None:
                from persevere.config import get_settings
                _default_scheduler = ThreadScheduler(get_settings().scheduler.thread_name)
    return _default_scheduler


def reset_default_scheduler() -> None:
    """Shut down the shared scheduler; the next call creates a fresh one.

    Sessions still waiting on the old scheduler never finish.
    """
    global _default_scheduler
    with _default_lock:
        scheduler, _default_scheduler = _default_scheduler, None
    if scheduler is not None:
        from persevere.config import get_settings
        scheduler.shutdown(get_settings().scheduler.join_timeout)
