import logging

import pytest

from argon.utils.batch import ErrorPolicy, for_each


class CountingLimiter:
    def __init__(self):
        self.acquired = 0

    async def acquire(self, tokens=1):
        self.acquired += 1
        return 0.0


async def square_unless_three(value):
    if value == 3:
        raise RuntimeError("three")
    return value * value


async def test_continue_collects_failures_and_keeps_going(caplog):
    caplog.set_level(logging.ERROR)

    outcome = await for_each([1, 2, 3, 4], square_unless_three, policy=ErrorPolicy.CONTINUE,
                             describe=lambda value: f"unit {value}")

    assert outcome.results == [1, 4, 16]
    assert [unit for unit, _ in outcome.errors] == [3]
    assert isinstance(outcome.errors[0][1], RuntimeError)
    assert outcome.attempted == 4
    assert "Failed to process unit 3" in caplog.text


async def test_raise_stops_at_first_failure():
    seen = []

    async def apply(value):
        seen.append(value)
        return await square_unless_three(value)

    with pytest.raises(RuntimeError):
        await for_each([1, 2, 3, 4], apply, policy=ErrorPolicy.RAISE)

    assert seen == [1, 2, 3]


async def test_limiter_is_acquired_for_every_unit():
    limiter = CountingLimiter()

    await for_each([1, 3, 5], square_unless_three, limiter=limiter)

    assert limiter.acquired == 3


async def test_uses_given_logger(caplog):
    caplog.set_level(logging.ERROR)
    logger = logging.getLogger("argon.tests.batch")

    await for_each([3], square_unless_three, logger=logger)

    assert [record.name for record in caplog.records] == ["argon.tests.batch"]


async def test_empty_input():
    outcome = await for_each([], square_unless_three)

    assert outcome.results == []
    assert outcome.errors == []
    assert outcome.attempted == 0
