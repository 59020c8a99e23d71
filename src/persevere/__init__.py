"""Declarative retries for asynchronous, callback-reporting tasks.

Wrap an unreliable operation once, and let persevere re-invoke it on a
timer until it succeeds or the retry budget is spent.

Example:
    >>> from persevere import ExponentialBackoff, Fuzzy, Persevere, RetryPolicy
    >>>
    >>> policy = RetryPolicy(
    ...     strategy=Fuzzy(0.2, ExponentialBackoff(0.1)),
    ...     max_retries=5,
    ... )
    >>>
    >>> def fetch(report):
    ...     client.get(url, callback=report)   # reports a result with .failure
    >>>
    >>> Persevere.with_policy(policy).at(fetch, on_done=handle_response)
"""

from .config import PersevereSettings, clear_settings_cache, get_settings
from .context import RetryContext
from .errors import ConfigurationError, PersevereError, RandomSourceError, RetriesExhaustedError
from .executor import Executor, Session, SessionState
from .facade import Persevere, run
from .logging import configure_logging
from .policy import NO_RETRY, RetryPolicy
from .randomness import RandomSource, SystemRandomSource, default_source, pick, set_default_source
from .result import Failure, RetryableResult, Success, Task, failure_of
from .scheduler import (
    LoopScheduler,
    Scheduler,
    ThreadScheduler,
    TimerHandle,
    default_scheduler,
    reset_default_scheduler,
)
from .strategy import Constant, Custom, DelayStrategy, ExponentialBackoff, Fuzzy, Linear, delays

__version__ = "1.0.0"

__all__ = [
    # Strategies
    "DelayStrategy",
    "Constant",
    "Linear",
    "ExponentialBackoff",
    "Fuzzy",
    "Custom",
    "delays",
    # Policy & context
    "RetryPolicy",
    "NO_RETRY",
    "RetryContext",
    # Execution
    "Executor",
    "Session",
    "SessionState",
    "Persevere",
    "run",
    # Results
    "RetryableResult",
    "Success",
    "Failure",
    "Task",
    "failure_of",
    # Randomness
    "RandomSource",
    "SystemRandomSource",
    "default_source",
    "set_default_source",
    "pick",
    # Scheduling
    "Scheduler",
    "ThreadScheduler",
    "LoopScheduler",
    "TimerHandle",
    "default_scheduler",
    "reset_default_scheduler",
    # Configuration
    "PersevereSettings",
    "get_settings",
    "clear_settings_cache",
    "configure_logging",
    # Errors
    "PersevereError",
    "RandomSourceError",
    "ConfigurationError",
    "RetriesExhaustedError",
]
