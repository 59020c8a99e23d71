"""Retrying async streams.

``retry_stream`` re-subscribes to a stream source whenever the stream
fails, following a retry policy:
    - Items are forwarded downstream as soon as they are produced, without
      waiting for the retry decision
    - Every retry calls the source factory again, so production restarts
      from scratch (items of failed attempts are not de-duplicated)
    - Only the terminal notification waits for the engine: normal
      completion ends the stream, a failure that exhausted the budget is
      raised into the consumer

Example:
    >>> async def ticks() -> AsyncIterator[dict]:
    ...     async with connect(feed_url) as ws:
    ...         async for message in ws:
    ...             yield message
    >>>
    >>> async for tick in retry_stream(ticks, policy):
    ...     handle(tick)
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Callable, TypeVar

from persevere.facade import run
from persevere.result import Failure, Success, failure_of
from persevere.scheduler import LoopScheduler

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from persevere.executor import OnRetry
    from persevere.policy import RetryPolicy

T = TypeVar("T")

logger = logging.getLogger("persevere.streams")


class _Signal(Enum):
    ITEM = "item"
    DONE = "done"


async def retry_stream(
    source: Callable[[], AsyncIterator[T]],
    policy: RetryPolicy,
    *,
    on_retry: OnRetry | None = None,
) -> AsyncIterator[T]:
    """Iterate ``source()``, re-subscribing on failure according to ``policy``.

    Args:
        source: Factory producing a fresh async iterator per subscription
        policy: Delay strategy and retry budget
        on_retry: Hook called with (retry number, exception, delay) before each retry

    Raises:
        Exception: The last failure, once the retry budget is spent
    """
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[tuple[_Signal, object]] = asyncio.Queue()
    inflight: set[asyncio.Task[None]] = set()
    closed = False

    async def pump(report: Callable[[object], None]) -> None:
        try:
            async for item in source():
                queue.put_nowait((_Signal.ITEM, item))
        except asyncio.CancelledError:
            report(Success(None))
            raise
        except Exception as exc:
            logger.debug(f"Stream subscription failed: {exc!r}")
            report(Failure(exc))
        else:
            report(Success(None))

    def subscribe(report: Callable[[object], None]) -> None:
        if closed:
            # Consumer is gone; end the session instead of producing into the void
            report(Success(None))
            return
        spawned = loop.create_task(pump(report))
        inflight.add(spawned)
        spawned.add_done_callback(inflight.discard)

    def finish(result: object) -> None:
        loop.call_soon_threadsafe(queue.put_nowait, (_Signal.DONE, result))

    run(policy, subscribe, finish, scheduler=LoopScheduler(loop), on_retry=on_retry)

    try:
        while True:
            signal, value = await queue.get()
            if signal is _Signal.ITEM:
                yield value  # type: ignore[misc]
                continue
            failure = failure_of(value)
            if isinstance(failure, BaseException):
                raise failure
            return
    finally:
        closed = True
        for pending in list(inflight):
            pending.cancel()
