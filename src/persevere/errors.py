"""Error types raised by persevere itself.

The retry engine never raises on behalf of a task: a failing task delivers
its failing result, untouched. These exceptions cover misuse of the library
(invalid bounds, unusable configuration) and the few surfaces that convert a
terminal failure back into an exception (stream adapter, asyncio bridge).
"""

from __future__ import annotations


class PersevereError(Exception):
    """Base class for all persevere errors."""


class RandomSourceError(PersevereError, ValueError):
    """Random draw requested with an invalid bound."""


class ConfigurationError(PersevereError, ValueError):
    """Settings that cannot be turned into a retry policy."""


class RetriesExhaustedError(PersevereError):
    """Raised by adapters when a session terminates with a failure.

    Attributes:
        failure: The failure carried by the last result
        attempts: Number of attempts made, including the first
    """

    def __init__(self, failure: object, attempts: int) -> None:
        self.failure = failure
        self.attempts = attempts
        super().__init__(f"Gave up after {attempts} attempt(s): {failure!r}")
