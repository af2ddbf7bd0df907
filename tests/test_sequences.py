import pytest

from lifecycle.sequences import SequenceGenerator, SequenceRegistry


def test_monotonic_from_start():
    seq = SequenceGenerator(start_counter=5)
    assert seq.peek() == 5
    assert [seq.issue() for _ in range(3)] == [5, 6, 7]
    assert seq.peek() == 8


def test_start_must_be_positive():
    with pytest.raises(ValueError):
        SequenceGenerator(start_counter=0)


def test_registry_is_per_kind():
    reg = SequenceRegistry(["user", "client"], start_counters={"client": 10})
    assert reg.issue("user") == 1
    assert reg.issue("client") == 10
    assert reg.issue("user") == 2
    assert reg.peek("client") == 11
