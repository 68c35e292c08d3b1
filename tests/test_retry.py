import asyncio

import pytest

from group_insight.llm.retry import EmptyResponseError, LLMCallError, RetryHandler


class Flaky:
    def __init__(self, failures: list[Exception], result: str = "ok"):
        self.failures = list(failures)
        self.result = result
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return self.result


@pytest.mark.asyncio
async def test_retries_until_success():
    func = Flaky([EmptyResponseError("empty"), asyncio.TimeoutError()])
    handler = RetryHandler(max_retries=2, backoff=0)

    assert await handler.execute(func) == "ok"
    assert func.calls == 3


@pytest.mark.asyncio
async def test_gives_up_after_all_attempts():
    func = Flaky([EmptyResponseError("empty")] * 5)
    handler = RetryHandler(max_retries=2, backoff=0)

    with pytest.raises(LLMCallError) as exc_info:
        await handler.execute(func)

    assert exc_info.value.attempts == 3
    assert func.calls == 3
    assert isinstance(exc_info.value.__cause__, EmptyResponseError)


@pytest.mark.asyncio
async def test_non_retryable_error_fails_fast():
    func = Flaky([ValueError("bad request")])
    handler = RetryHandler(max_retries=2, backoff=0)

    with pytest.raises(LLMCallError) as exc_info:
        await handler.execute(func)

    assert exc_info.value.attempts == 1
    assert func.calls == 1


@pytest.mark.asyncio
async def test_per_attempt_timeout():
    async def slow():
        await asyncio.sleep(1)

    handler = RetryHandler(max_retries=0, timeout=0.01)

    with pytest.raises(LLMCallError):
        await handler.execute(slow)


def test_linear_backoff_is_capped():
    handler = RetryHandler(backoff=2.0, max_delay=5.0)
    assert handler._calculate_delay(1) == 2.0
    assert handler._calculate_delay(2) == 4.0
    assert handler._calculate_delay(3) == 5.0
