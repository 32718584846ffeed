"""Tests for the retry policy and retry_with_backoff combinator."""

from unittest.mock import AsyncMock

import pytest

from sitebot.llm.retry import RetryPolicy, retry_with_backoff


class Flaky(Exception):
    pass


def test_default_policy_delays() -> None:
    assert RetryPolicy().delays() == [1.0, 2.0]


def test_delays_are_capped() -> None:
    policy = RetryPolicy(max_attempts=6, base_delay=1.0, max_delay=5.0)
    assert policy.delays() == [1.0, 2.0, 4.0, 5.0, 5.0]


def test_policy_validation() -> None:
    with pytest.raises(ValueError, match="max_attempts"):
        RetryPolicy(max_attempts=0)
    with pytest.raises(ValueError, match="non-negative"):
        RetryPolicy(base_delay=-1)


async def test_returns_first_success() -> None:
    fn = AsyncMock(return_value="ok")
    sleep = AsyncMock()

    assert await retry_with_backoff(fn, RetryPolicy(), sleep=sleep) == "ok"
    fn.assert_awaited_once()
    sleep.assert_not_awaited()


async def test_retries_until_success() -> None:
    fn = AsyncMock(side_effect=[Flaky("1"), Flaky("2"), "ok"])
    sleep = AsyncMock()

    result = await retry_with_backoff(fn, RetryPolicy(), retry_on=(Flaky,), sleep=sleep)

    assert result == "ok"
    assert fn.await_count == 3
    assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]


async def test_raises_last_error_when_exhausted() -> None:
    fn = AsyncMock(side_effect=[Flaky("1"), Flaky("2"), Flaky("3"), "never"])
    sleep = AsyncMock()

    with pytest.raises(Flaky, match="3"):
        await retry_with_backoff(fn, RetryPolicy(), retry_on=(Flaky,), sleep=sleep)

    assert fn.await_count == 3
    assert sleep.await_count == 2


async def test_does_not_retry_other_errors() -> None:
    fn = AsyncMock(side_effect=KeyError("boom"))
    sleep = AsyncMock()

    with pytest.raises(KeyError):
        await retry_with_backoff(fn, RetryPolicy(), retry_on=(Flaky,), sleep=sleep)

    fn.assert_awaited_once()
    sleep.assert_not_awaited()
