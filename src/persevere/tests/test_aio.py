"""Tests for the asyncio bridge and the retrying stream adapter."""

from __future__ import annotations

import asyncio
import threading
from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import Callable

import pytest

from persevere.aio import retry_call, retry_future
from persevere.errors import RetriesExhaustedError
from persevere.policy import RetryPolicy
from persevere.result import Failure, Success
from persevere.streams import retry_stream
from persevere.strategy import Constant, Linear


def immediate(max_retries: int) -> RetryPolicy:
    return RetryPolicy(strategy=Constant(0.0), max_retries=max_retries)


# ═════════════════════════════════════════════════════════════════════════════
# retry_future
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_retry_future_resolves_from_thread() -> None:
    attempts = 0

    def task(report: Callable[[object], None]) -> None:
        nonlocal attempts
        attempts += 1
        result = Failure("busy") if attempts < 2 else Success(attempts)
        threading.Thread(target=report, args=(result,)).start()

    result = await asyncio.wait_for(retry_future(RetryPolicy(strategy=Linear(0.001), max_retries=2), task), 2)

    assert result == Success(2)


@pytest.mark.asyncio
async def test_retry_future_exhausted() -> None:
    result = await asyncio.wait_for(retry_future(immediate(1), lambda report: report(Failure("no"))), 2)
    assert result == Failure("no")


# ═════════════════════════════════════════════════════════════════════════════
# retry_call
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_retry_call_returns_first_success() -> None:
    calls = 0

    async def fetch() -> Success[int] | Failure[TimeoutError]:
        nonlocal calls
        calls += 1
        return Failure(TimeoutError()) if calls < 3 else Success(calls)

    assert await retry_call(immediate(5), fetch) == Success(3)
    assert calls == 3


@pytest.mark.asyncio
async def test_retry_call_exception_is_failure() -> None:
    async def fetch() -> Success[str]:
        raise OSError("unreachable")

    result = await retry_call(immediate(2), fetch)

    assert isinstance(result, Failure)
    assert isinstance(result.error, OSError)


@pytest.mark.asyncio
async def test_retry_call_raise_on_failure() -> None:
    async def fetch() -> Success[str]:
        raise OSError("unreachable")

    with pytest.raises(RetriesExhaustedError) as info:
        await retry_call(immediate(2), fetch, raise_on_failure=True)

    assert info.value.attempts == 3
    assert isinstance(info.value.__cause__, OSError)


@pytest.mark.asyncio
async def test_retry_call_on_retry_hook() -> None:
    retries: list[int] = []

    async def fetch() -> Failure[str]:
        return Failure("nope")

    await retry_call(immediate(2), fetch, on_retry=lambda attempt, failure, delay: retries.append(attempt))

    assert retries == [1, 2]


# ═════════════════════════════════════════════════════════════════════════════
# retry_stream
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_stream_resubscribes_and_forwards_items() -> None:
    subscriptions = 0

    async def feed() -> AsyncIterator[int]:
        nonlocal subscriptions
        subscriptions += 1
        yield subscriptions * 10
        if subscriptions < 3:
            raise ConnectionError("dropped")
        yield 99

    items = [item async for item in retry_stream(feed, immediate(3))]

    assert items == [10, 20, 30, 99]
    assert subscriptions == 3


@pytest.mark.asyncio
async def test_stream_exhausted_raises_last_error() -> None:
    async def feed() -> AsyncIterator[int]:
        yield 1
        raise ValueError("bad frame")

    received: list[int] = []
    with pytest.raises(ValueError, match="bad frame"):
        async for item in retry_stream(feed, immediate(1)):
            received.append(item)

    assert received == [1, 1]


@pytest.mark.asyncio
async def test_stream_completion_without_failure() -> None:
    async def feed() -> AsyncIterator[str]:
        for item in ("a", "b"):
            yield item

    assert [item async for item in retry_stream(feed, immediate(3))] == ["a", "b"]


@pytest.mark.asyncio
async def test_stream_items_arrive_before_retry_decision() -> None:
    """Items from a failing subscription are not held back by the retry delay."""
    async def feed() -> AsyncIterator[int]:
        yield 1
        raise ConnectionError("dropped")

    stream = retry_stream(feed, RetryPolicy(strategy=Constant(10.0), max_retries=1))
    async with aclosing(stream):
        first = await asyncio.wait_for(stream.__anext__(), timeout=1)

    assert first == 1


@pytest.mark.asyncio
async def test_stream_close_stops_production() -> None:
    produced = 0

    async def endless() -> AsyncIterator[int]:
        nonlocal produced
        while True:
            produced += 1
            yield produced
            await asyncio.sleep(0)

    async with aclosing(retry_stream(endless, immediate(3))) as stream:
        async for _ in stream:
            break

    await asyncio.sleep(0.01)
    snapshot = produced
    await asyncio.sleep(0.01)

    assert produced == snapshot
