"""asyncio bridge for the callback-based engine.

Lets coroutine code await a retry session instead of registering a
callback. Delays run as event-loop timers, so awaiting never blocks the
loop or a thread.

Example:
    >>> async def fetch() -> Success[bytes] | Failure[OSError]:
    ...     try:
    ...         return Success(await client.get(url))
    ...     except OSError as e:
    ...         return Failure(e)
    >>>
    >>> result = await retry_call(policy, fetch)
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Callable, TypeVar

from persevere.errors import RetriesExhaustedError
from persevere.facade import run
from persevere.result import Failure, failure_of
from persevere.scheduler import LoopScheduler

if TYPE_CHECKING:
    from collections.abc import Awaitable

    from persevere.executor import OnRetry
    from persevere.policy import RetryPolicy

R = TypeVar("R")


def _resolve(future: asyncio.Future[R], result: R) -> None:
    if not future.done():
        future.set_result(result)


def retry_future(
    policy: RetryPolicy,
    task: Callable[[Callable[[R], None]], None],
    *,
    loop: asyncio.AbstractEventLoop | None = None,
    on_retry: OnRetry | None = None,
) -> asyncio.Future[R]:
    """Start a session and return a future for its terminal result.

    The task may report from any thread; the future is always resolved on
    its loop. Cancelling the future does not stop the session.
    """
    loop = loop or asyncio.get_running_loop()
    future: asyncio.Future[R] = loop.create_future()
    run(
        policy,
        task,
        lambda result: loop.call_soon_threadsafe(_resolve, future, result),
        scheduler=LoopScheduler(loop),
        on_retry=on_retry,
    )
    return future


async def retry_call(
    policy: RetryPolicy,
    operation: Callable[[], Awaitable[R]],
    *,
    raise_on_failure: bool = False,
    on_retry: OnRetry | None = None,
) -> R:
    """Await ``operation()`` until it returns a success or the budget is spent.

    An exception raised by ``operation`` counts as a failed attempt with a
    ``Failure(exception)`` result.

    Args:
        policy: Delay strategy and retry budget
        operation: Coroutine function returning a result with a ``failure`` indicator
        raise_on_failure: Raise RetriesExhaustedError instead of returning the last failure
        on_retry: Hook called with (retry number, failure, delay) before each retry

    Raises:
        RetriesExhaustedError: If ``raise_on_failure`` and the session ended in failure
    """
    loop = asyncio.get_running_loop()
    inflight: set[asyncio.Task[None]] = set()
    attempts = 0

    async def attempt(report: Callable[[R], None]) -> None:
        try:
            result = await operation()
        except Exception as exc:
            report(Failure(exc))  # type: ignore[arg-type]
        else:
            report(result)

    def task(report: Callable[[R], None]) -> None:
        nonlocal attempts
        attempts += 1
        spawned = loop.create_task(attempt(report))
        inflight.add(spawned)
        spawned.add_done_callback(inflight.discard)

    result = await retry_future(policy, task, loop=loop, on_retry=on_retry)
    failure = failure_of(result)
    if raise_on_failure and failure is not None:
        error = RetriesExhaustedError(failure, attempts)
        if isinstance(failure, BaseException):
            raise error from failure
        raise error
    return result
