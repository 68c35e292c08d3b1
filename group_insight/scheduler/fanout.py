"""Bounded-concurrency fan-out over independent items."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Iterable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class FanoutResult(Generic[T]):
    item: T
    value: Any = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def run_with_concurrency(
    items: Iterable[T],
    handler: Callable[[T], Awaitable[Any]],
    limit: int = 3,
) -> list[FanoutResult[T]]:
    """
    Run handler(item) for every item, at most `limit` at a time.

    One item's failure does not cancel or block the others.

    Args:
        items: Items to process
        handler: Async callable invoked once per item
        limit: Maximum number of handler calls in flight

    Returns:
        One result per item, in input order
    """
    if limit < 1:
        raise ValueError(f"limit must be at least 1, got {limit}")

    items = list(items)
    semaphore = asyncio.Semaphore(limit)

    async def run_one(item: T) -> Any:
        async with semaphore:
            return await handler(item)

    outcomes = await asyncio.gather(*(run_one(item) for item in items), return_exceptions=True)

    results = []
    for item, outcome in zip(items, outcomes):
        if isinstance(outcome, BaseException):
            logger.error(f"Fan-out handler failed for {item}: {outcome}")
            results.append(FanoutResult(item=item, error=outcome))
        else:
            results.append(FanoutResult(item=item, value=outcome))
    return results
