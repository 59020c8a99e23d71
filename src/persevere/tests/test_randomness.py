"""Tests for random sources and the pick helper."""

from __future__ import annotations

import pytest

from persevere.errors import RandomSourceError
from persevere.randomness import (
    RandomSource,
    SystemRandomSource,
    default_source,
    pick,
    set_default_source,
)
from persevere.testing import SequenceRandomSource


def test_uniform_within_bounds() -> None:
    source = SystemRandomSource()
    for _ in range(10_000):
        assert 0.0 <= source.uniform(10.0) <= 10.0


def test_uniform_zero_upper() -> None:
    assert SystemRandomSource().uniform(0.0) == 0.0


def test_integer_within_bounds() -> None:
    source = SystemRandomSource()
    seen = {source.integer(4) for _ in range(2_000)}
    assert seen == {0, 1, 2, 3}


def test_seeded_sources_repeat() -> None:
    a, b = SystemRandomSource(seed=42), SystemRandomSource(seed=42)
    assert [a.uniform(5.0) for _ in range(5)] == [b.uniform(5.0) for _ in range(5)]


@pytest.mark.parametrize("upper", [0, -1])
def test_integer_rejects_non_positive_bound(upper: int) -> None:
    with pytest.raises(RandomSourceError):
        SystemRandomSource().integer(upper)


def test_uniform_rejects_negative_bound() -> None:
    with pytest.raises(ValueError):
        SystemRandomSource().uniform(-1.0)


def test_sources_satisfy_protocol() -> None:
    assert isinstance(SystemRandomSource(), RandomSource)
    assert isinstance(SequenceRandomSource([0.5]), RandomSource)


def test_pick_empty_is_none() -> None:
    assert pick([]) is None


def test_pick_uses_source() -> None:
    choices = ["a", "b", "c"]
    assert pick(choices, SequenceRandomSource([0.0])) == "a"
    assert pick(choices, SequenceRandomSource([0.5])) == "b"
    assert pick(choices, SequenceRandomSource([1.0])) == "c"


def test_set_default_source_round_trip() -> None:
    replacement = SequenceRandomSource([1.0])
    previous = set_default_source(replacement)
    try:
        assert default_source() is replacement
        assert pick([1, 2]) == 2
    finally:
        set_default_source(previous)
    assert default_source() is previous


def test_sequence_source_validation() -> None:
    with pytest.raises(ValueError):
        SequenceRandomSource([])
    with pytest.raises(ValueError):
        SequenceRandomSource([1.5])
