"""Result shapes accepted by the retry engine.

The engine only asks one question of a result: does it carry a failure?
Any object with a ``failure`` attribute qualifies (``None`` means success).
``Success`` and ``Failure`` are ready-made results for tasks that have no
result type of their own.

Example:
    >>> failure_of(Success(42)) is None
    True
    >>> failure_of(Failure(TimeoutError("slow")))
    TimeoutError('slow')
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, Protocol, TypeAlias, TypeVar, runtime_checkable

T = TypeVar("T")
E = TypeVar("E")
R = TypeVar("R")


@runtime_checkable
class RetryableResult(Protocol):
    """Anything exposing an optional failure indicator."""

    @property
    def failure(self) -> object | None: ...


@dataclass(frozen=True, slots=True)
class Success(Generic[T]):
    """Successful attempt carrying a value."""

    value: T

    @property
    def failure(self) -> None:
        return None


@dataclass(frozen=True, slots=True)
class Failure(Generic[E]):
    """Failed attempt carrying the error."""

    error: E

    @property
    def failure(self) -> E:
        return self.error


# A task is invoked with a completion callback and reports through it
Task: TypeAlias = Callable[[Callable[[R], None]], None]


def failure_of(result: object) -> object | None:
    """Extract the failure indicator from a result.

    Understands ``failure`` attributes and Result-like objects exposing
    ``is_err()`` / ``err()``. Anything else counts as a success.
    """
    if isinstance(result, (Success, Failure)):
        return result.failure
    if hasattr(result, "failure"):
        return result.failure  # type: ignore[no-any-return]
    is_err = getattr(result, "is_err", None)
    if callable(is_err) and is_err():
        err = getattr(result, "err", None)
        failure = err() if callable(err) else None
        return failure if failure is not None else result
    return None
