"""Batch planning: split a day's messages into fixed-size cacheable batches."""

from dataclasses import dataclass

from group_insight.models import Message


@dataclass(frozen=True)
class BatchPlan:
    total: int
    batch_size: int
    completed_batches: int
    remainder: int

    @property
    def last_batch_end(self) -> int:
        """Index of the first message after the last complete batch."""
        return self.completed_batches * self.batch_size

    @property
    def needs_batching(self) -> bool:
        return self.total > self.batch_size

    def bounds(self, batch_index: int) -> tuple[int, int]:
        if not 0 <= batch_index < self.completed_batches:
            raise IndexError(f"Batch {batch_index} out of range (0..{self.completed_batches - 1})")
        start = batch_index * self.batch_size
        return start, start + self.batch_size


@dataclass(frozen=True)
class Batch:
    """A contiguous slice plus the messages preceding it, kept as context only."""

    index: int
    start: int
    end: int
    context: list[Message]
    messages: list[Message]

    @property
    def for_analysis(self) -> list[Message]:
        return [*self.context, *self.messages]


def plan_batches(total: int, batch_size: int = 1000) -> BatchPlan:
    """Compute how many complete batches exist and how many messages follow them."""
    if batch_size <= 0:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    if total < 0:
        raise ValueError(f"total must be non-negative, got {total}")
    completed, remainder = divmod(total, batch_size)
    return BatchPlan(
        total=total,
        batch_size=batch_size,
        completed_batches=completed,
        remainder=remainder,
    )


def slice_batch(
    messages: list[Message],
    plan: BatchPlan,
    batch_index: int,
    overlap: int,
) -> Batch:
    start, end = plan.bounds(batch_index)
    context_start = max(0, start - max(overlap, 0))
    return Batch(
        index=batch_index,
        start=start,
        end=end,
        context=messages[context_start:start],
        messages=messages[start:end],
    )


def slice_remainder(messages: list[Message], plan: BatchPlan, overlap: int) -> list[Message]:
    """Messages after the last complete batch, led by `overlap` messages of context."""
    start = max(0, plan.last_batch_end - max(overlap, 0))
    return messages[start:]
