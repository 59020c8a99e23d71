"""Retry state machine.

Each call to ``Executor.execute`` starts a ``Session``:

    ATTEMPTING ──success──────────────► TERMINATED (on_done(result))
        │
        └─failure─┬─retries left──► SCHEDULED ──timer──► ATTEMPTING (advanced context)
                  └─budget spent──► TERMINATED (on_done(last failing result))

The task may report from any thread, and may report more than once.
Every report goes through the session lock, and only the first report for
the attempt currently in flight is acted upon; anything else is logged and
dropped. ``on_done`` therefore fires exactly once per session.

Example:
    >>> executor = Executor()
    >>> session = executor.execute(RetryContext(policy), task, print)
    >>> session.wait(timeout=5)
"""

from __future__ import annotations

import itertools
import logging
import threading
from enum import StrEnum
from typing import TYPE_CHECKING, Callable, Generic, TypeVar

from persevere.result import Failure, failure_of
from persevere.scheduler import Scheduler, default_scheduler

if TYPE_CHECKING:
    from persevere.context import RetryContext

R = TypeVar("R")

logger = logging.getLogger("persevere.executor")

OnRetry = Callable[[int, object, float], None]

_session_ids = itertools.count(1)


class SessionState(StrEnum):
    """Session lifecycle states."""
    ATTEMPTING = "attempting"  # Task invoked, waiting for its report
    SCHEDULED = "scheduled"    # Attempt failed, timer armed for the next one
    TERMINATED = "terminated"  # Terminal result delivered


class Session(Generic[R]):
    """One retry session: a task, its completion callback, and its progress.

    Created by ``Executor.execute``. Exposes read-only progress and a
    blocking ``wait`` for synchronous callers; there is no cancellation.
    """

    __slots__ = (
        "name", "_task", "_on_done", "_scheduler", "_on_retry",
        "_lock", "_finished", "_state", "_context", "_result", "_delays",
    )

    def __init__(
        self,
        task: Callable[[Callable[[R], None]], None],
        on_done: Callable[[R], None],
        scheduler: Scheduler,
        on_retry: OnRetry | None = None,
        name: str | None = None,
    ) -> None:
        self.name = name or f"session-{next(_session_ids)}"
        self._task = task
        self._on_done = on_done
        self._scheduler = scheduler
        self._on_retry = on_retry
        self._lock = threading.Lock()
        self._finished = threading.Event()
        self._state = SessionState.ATTEMPTING
        self._context: RetryContext | None = None
        self._result: R | None = None
        self._delays: list[float] = []

    # ─────────────────────────────────────────────────────────────────
    # Progress
    # ─────────────────────────────────────────────────────────────────

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def attempts(self) -> int:
        """Task invocations started so far."""
        context = self._context
        return context.attempts if context is not None else 0

    @property
    def delays(self) -> tuple[float, ...]:
        """Delays scheduled so far, in order."""
        with self._lock:
            return tuple(self._delays)

    @property
    def done(self) -> bool:
        return self._finished.is_set()

    @property
    def result(self) -> R | None:
        """Terminal result, or None while the session is running."""
        return self._result

    def wait(self, timeout: float | None = None) -> R | None:
        """Block until the terminal result is delivered.

        Returns:
            The terminal result, or None if ``timeout`` elapsed first
        """
        self._finished.wait(timeout)
        return self._result

    # ─────────────────────────────────────────────────────────────────
    # Transitions
    # ─────────────────────────────────────────────────────────────────

    def _attempt(self, context: RetryContext) -> None:
        with self._lock:
            self._state = SessionState.ATTEMPTING
            self._context = context

        reported = False

        def report(result: R) -> None:
            nonlocal reported
            reported = True
            self._handle(context, result)

        try:
            self._task(report)
        except Exception as exc:
            if reported:
                logger.warning(f"[{self.name}] Attempt {context.attempts} raised {exc!r} after reporting, ignored")
                return
            logger.warning(f"[{self.name}] Attempt {context.attempts} raised {exc!r}")
            report(Failure(exc))  # type: ignore[arg-type]

    def _handle(self, context: RetryContext, result: R) -> None:
        failure = failure_of(result)

        with self._lock:
            current = self._context
            if (
                self._state is not SessionState.ATTEMPTING
                or current is None
                or current.current_try != context.current_try
            ):
                logger.warning(
                    f"[{self.name}] Ignoring report for attempt {context.attempts} "
                    f"(state: {self._state}, current attempt: {self.attempts})"
                )
                return

            terminal = failure is None or not context.retries_left
            if not terminal:
                delay = context.next_delay()
                if delay < 0:
                    logger.warning(f"[{self.name}] Strategy returned negative delay {delay}, using 0")
                    delay = 0.0
                self._state = SessionState.SCHEDULED
                self._delays.append(delay)
            else:
                self._state = SessionState.TERMINATED
                self._result = result

        if terminal:
            self._finish(context, result, failure)
            return

        logger.info(
            f"[{self.name}] Retry {context.next_try}/{context.policy.max_retries} "
            f"after {delay:.3f}s (failure: {failure!r})"
        )
        if self._on_retry is not None:
            try:
                self._on_retry(context.next_try, failure, delay)
            except Exception:
                logger.exception(f"[{self.name}] on_retry hook raised")
        try:
            self._scheduler.call_later(delay, lambda: self._attempt(context.advance()))
        except Exception:
            logger.exception(f"[{self.name}] Could not schedule retry {context.next_try}, giving up")
            with self._lock:
                self._state = SessionState.TERMINATED
                self._result = result
                self._delays.pop()
            self._finish(context, result, failure)

    def _finish(self, context: RetryContext, result: R, failure: object | None) -> None:
        if failure is None:
            logger.debug(f"[{self.name}] Succeeded after {context.attempts} attempt(s)")
        else:
            logger.info(f"[{self.name}] Gave up after {context.attempts} attempt(s) (failure: {failure!r})")
        try:
            self._on_done(result)
        except Exception:
            logger.exception(f"[{self.name}] on_done callback raised")
        finally:
            self._finished.set()

    def __repr__(self) -> str:
        return f"Session(name={self.name!r}, state={self._state}, attempts={self.attempts})"


class Executor:
    """Starts retry sessions on a scheduler.

    Holds no per-session state; a single executor can drive any number of
    concurrent sessions.

    Attributes:
        scheduler: Timer source for delays (default: shared thread scheduler)
        on_retry: Hook called with (retry number, failure, delay) before each retry
    """

    __slots__ = ("_scheduler", "_on_retry")

    def __init__(self, scheduler: Scheduler | None = None, on_retry: OnRetry | None = None) -> None:
        self._scheduler = scheduler
        self._on_retry = on_retry

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler or default_scheduler()

    def execute(
        self,
        context: RetryContext,
        task: Callable[[Callable[[R], None]], None],
        on_done: Callable[[R], None],
        *,
        name: str | None = None,
    ) -> Session[R]:
        """Invoke ``task`` under ``context`` and retry until a terminal result.

        Returns immediately after the first invocation has been started; the
        returned session tracks progress.
        """
        session: Session[R] = Session(task, on_done, self.scheduler, self._on_retry, name)
        logger.debug(f"[{session.name}] Starting (max_retries={context.policy.max_retries})")
        session._attempt(context)
        return session
