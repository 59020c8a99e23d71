"""Tests for timer schedulers."""

from __future__ import annotations

import asyncio
import threading

import pytest

from persevere.facade import run
from persevere.policy import RetryPolicy
from persevere.result import Failure, Success
from persevere.scheduler import (
    LoopScheduler,
    Scheduler,
    ThreadScheduler,
    TimerHandle,
    default_scheduler,
    reset_default_scheduler,
)
from persevere.strategy import Constant
from persevere.testing import ManualScheduler, ScriptedTask


@pytest.fixture
def scheduler() -> object:
    scheduler = ThreadScheduler("test-timer")
    yield scheduler
    scheduler.shutdown()


# ═════════════════════════════════════════════════════════════════════════════
# ThreadScheduler
# ═════════════════════════════════════════════════════════════════════════════


def test_fires_in_deadline_order(scheduler: ThreadScheduler) -> None:
    fired: list[str] = []
    done = threading.Event()

    scheduler.call_later(0.04, lambda: (fired.append("late"), done.set()))
    scheduler.call_later(0.01, lambda: fired.append("early"))

    assert done.wait(timeout=2)
    assert fired == ["early", "late"]


def test_worker_starts_lazily() -> None:
    scheduler = ThreadScheduler("lazy-timer")
    try:
        assert not scheduler.running
        scheduler.call_later(0.0, lambda: None)
        assert scheduler.running
    finally:
        scheduler.shutdown()


def test_cancelled_timer_does_not_fire(scheduler: ThreadScheduler) -> None:
    fired: list[str] = []
    done = threading.Event()

    handle = scheduler.call_later(0.01, lambda: fired.append("cancelled"))
    assert handle.cancel()
    assert not handle.cancel()
    scheduler.call_later(0.03, done.set)

    assert done.wait(timeout=2)
    assert fired == []


def test_callback_exception_does_not_stop_worker(scheduler: ThreadScheduler, caplog: pytest.LogCaptureFixture) -> None:
    done = threading.Event()

    def explode() -> None:
        raise RuntimeError("boom")

    scheduler.call_later(0.0, explode)
    scheduler.call_later(0.01, done.set)

    assert done.wait(timeout=2)
    assert any("raised" in r.getMessage() for r in caplog.records)


def test_shutdown_rejects_new_timers() -> None:
    scheduler = ThreadScheduler("closed-timer")
    scheduler.call_later(10.0, lambda: None)
    scheduler.shutdown()

    assert scheduler.pending == 0
    with pytest.raises(RuntimeError):
        scheduler.call_later(0.0, lambda: None)


def test_shutdown_warns_about_dropped_timers(caplog: pytest.LogCaptureFixture) -> None:
    scheduler = ThreadScheduler("busy-timer")
    scheduler.call_later(10.0, lambda: None)
    scheduler.call_later(10.0, lambda: None)

    with caplog.at_level("WARNING", logger="persevere.scheduler"):
        scheduler.shutdown()

    dropped = [r for r in caplog.records if "Dropped 2 pending timer(s)" in r.getMessage()]
    assert dropped and dropped[0].levelname == "WARNING"


def test_negative_delay_fires_immediately(scheduler: ThreadScheduler) -> None:
    done = threading.Event()
    handle = scheduler.call_later(-1.0, done.set)

    assert handle.delay == 0.0
    assert done.wait(timeout=2)


def test_schedulers_satisfy_protocol(scheduler: ThreadScheduler) -> None:
    assert isinstance(scheduler, Scheduler)
    assert isinstance(ManualScheduler(), Scheduler)


# ═════════════════════════════════════════════════════════════════════════════
# TimerHandle
# ═════════════════════════════════════════════════════════════════════════════


def test_fired_handle_cannot_be_cancelled() -> None:
    calls: list[int] = []
    handle = TimerHandle(0.0, lambda: calls.append(1))
    handle.fire()

    assert calls == [1]
    assert handle.fired
    assert not handle.cancel()


# ═════════════════════════════════════════════════════════════════════════════
# LoopScheduler
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_loop_scheduler_fires_on_loop() -> None:
    loop = asyncio.get_running_loop()
    fired: asyncio.Future[str] = loop.create_future()

    LoopScheduler().call_later(0.01, lambda: fired.set_result("ok"))

    assert await asyncio.wait_for(fired, timeout=2) == "ok"


@pytest.mark.asyncio
async def test_loop_scheduler_from_other_thread() -> None:
    loop = asyncio.get_running_loop()
    scheduler = LoopScheduler(loop)
    fired: asyncio.Future[bool] = loop.create_future()

    def on_loop() -> None:
        fired.set_result(threading.current_thread() is threading.main_thread())

    worker = threading.Thread(target=scheduler.call_later, args=(0.0, on_loop))
    worker.start()
    worker.join()

    assert await asyncio.wait_for(fired, timeout=2) is True


@pytest.mark.asyncio
async def test_loop_scheduler_cancel_before_arming() -> None:
    scheduler = LoopScheduler()
    calls: list[int] = []

    handle = scheduler.call_later(0.0, lambda: calls.append(1))
    handle.cancel()
    await asyncio.sleep(0.02)

    assert calls == []


# ═════════════════════════════════════════════════════════════════════════════
# ManualScheduler
# ═════════════════════════════════════════════════════════════════════════════


def test_manual_scheduler_virtual_time() -> None:
    scheduler = ManualScheduler()
    fired: list[str] = []

    scheduler.call_later(2.0, lambda: fired.append("b"))
    scheduler.call_later(1.0, lambda: fired.append("a"))

    assert scheduler.advance(0.5) == 0
    assert scheduler.advance(1.0) == 1
    assert scheduler.run_all() == 1
    assert fired == ["a", "b"]
    assert scheduler.delays == [2.0, 1.0]
    assert scheduler.pending == 0


# ═════════════════════════════════════════════════════════════════════════════
# Shared default
# ═════════════════════════════════════════════════════════════════════════════


def test_default_scheduler_shared_and_resettable() -> None:
    first = default_scheduler()
    try:
        assert default_scheduler() is first
        reset_default_scheduler()
        assert default_scheduler() is not first
    finally:
        reset_default_scheduler()


def test_run_uses_default_scheduler() -> None:
    try:
        session = run(
            RetryPolicy(strategy=Constant(0.001), max_retries=1),
            ScriptedTask([Failure("e"), Success("ok")]),
            lambda _: None,
        )
        assert session.wait(timeout=2) == Success("ok")
        assert default_scheduler().running
    finally:
        reset_default_scheduler()
