"""Entry points binding a policy to a task.

Example:
    >>> policy = RetryPolicy(strategy=ExponentialBackoff(0.1), max_retries=5)
    >>> Persevere.with_policy(policy).at(fetch_profile, on_done=render)

    Or without the fluent wrapper:
    >>> session = run(policy, fetch_profile, render)
    >>> session.wait(timeout=10)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, TypeVar

from persevere.context import RetryContext
from persevere.executor import Executor, OnRetry, Session

if TYPE_CHECKING:
    from persevere.policy import RetryPolicy
    from persevere.scheduler import Scheduler

R = TypeVar("R")


def run(
    policy: RetryPolicy,
    task: Callable[[Callable[[R], None]], None],
    on_done: Callable[[R], None],
    *,
    scheduler: Scheduler | None = None,
    on_retry: OnRetry | None = None,
    name: str | None = None,
) -> Session[R]:
    """Run ``task`` under ``policy``; ``on_done`` receives the terminal result once.

    Args:
        policy: Delay strategy and retry budget
        task: Callable invoked with a completion callback per attempt
        on_done: Receives the first success, or the last failure once the budget is spent
        scheduler: Timer source (default: shared thread scheduler)
        on_retry: Hook called with (retry number, failure, delay) before each retry
        name: Session name used in log lines

    Returns:
        Session handle for progress inspection and blocking waits
    """
    return Executor(scheduler, on_retry).execute(RetryContext(policy), task, on_done, name=name)


class Persevere:
    """A policy ready to be applied to tasks.

    Stateless apart from the policy, so one instance can run any number of
    tasks concurrently.
    """

    __slots__ = ("_policy", "_executor")

    def __init__(self, policy: RetryPolicy, executor: Executor | None = None) -> None:
        self._policy = policy
        self._executor = executor or Executor()

    @classmethod
    def with_policy(
        cls,
        policy: RetryPolicy,
        *,
        scheduler: Scheduler | None = None,
        on_retry: OnRetry | None = None,
    ) -> Persevere:
        """Configure an instance with a retry policy."""
        return cls(policy, Executor(scheduler, on_retry))

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    def at(
        self,
        task: Callable[[Callable[[R], None]], None],
        on_done: Callable[[R], None],
        *,
        name: str | None = None,
    ) -> Session[R]:
        """Perform a retryable task.

        ``on_done`` is called as soon as the task succeeds, or once the
        maximum number of retries has been reached.
        """
        return self._executor.execute(RetryContext(self._policy), task, on_done, name=name)

    def __repr__(self) -> str:
        return f"Persevere(policy={self._policy!r})"
