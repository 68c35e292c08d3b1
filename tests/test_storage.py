import asyncio
import json

import pytest

from group_insight.models import Report, TokenUsage
from group_insight.storage.batch_cache import BatchCacheEntry, BatchCacheStore, BatchState
from group_insight.storage.cooldown import CooldownGate
from group_insight.storage.locks import GenerationLock
from group_insight.storage.messages import MessageStorage
from group_insight.storage.reports import ReportStorage

from conftest import DATE, GROUP_ID, make_messages


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


# Messages


@pytest.mark.asyncio
async def test_messages_append_and_read(redis):
    storage = MessageStorage(redis, retention_days=7)
    for message in make_messages(3):
        await storage.append_message(GROUP_ID, DATE, message)

    messages = await storage.get_messages(GROUP_ID, DATE)

    assert [m.text for m in messages] == ["message number 0", "message number 1", "message number 2"]
    assert await storage.count_messages(GROUP_ID, DATE) == 3
    assert 0 < await redis.ttl(storage._make_key(GROUP_ID, DATE)) <= 7 * 86400


@pytest.mark.asyncio
async def test_messages_skip_unparseable_entries(redis):
    storage = MessageStorage(redis)
    await storage.append_message(GROUP_ID, DATE, make_messages(1)[0])
    await redis.rpush(storage._make_key(GROUP_ID, DATE), "not json")

    assert len(await storage.get_messages(GROUP_ID, DATE)) == 1


# Batch cache


@pytest.mark.asyncio
async def test_batch_cache_roundtrip_keeps_state(redis):
    cache = BatchCacheStore(redis, ttl_seconds=60)
    entry = BatchCacheEntry(
        batch_index=1,
        start_index=1000,
        end_index=2000,
        message_count=1000,
        state=BatchState.SUCCEEDED,
        attempts=2,
        token_usage=TokenUsage(1, 2, 3),
    )
    await cache.put(GROUP_ID, DATE, 1, entry)

    stored = await cache.get(GROUP_ID, DATE, 1)
    raw = json.loads(await redis.get(cache._make_key(GROUP_ID, DATE, 1)))

    assert stored.state is BatchState.SUCCEEDED
    assert stored.success and stored.retried
    assert raw["success"] is True and raw["retried"] is True
    assert 0 < await redis.ttl(cache._make_key(GROUP_ID, DATE, 1)) <= 60


@pytest.mark.asyncio
async def test_batch_cache_corrupt_entry_is_missing(redis):
    cache = BatchCacheStore(redis)
    await redis.set(cache._make_key(GROUP_ID, DATE, 0), "{broken")

    assert await cache.get(GROUP_ID, DATE, 0) is None
    assert (await cache.get_state(GROUP_ID, DATE, 0))[0] is BatchState.UNSEEN


@pytest.mark.asyncio
async def test_force_regenerate_ignores_cached_entry(redis):
    cache = BatchCacheStore(redis)
    entry = BatchCacheEntry(0, 0, 1000, 1000, state=BatchState.FAILED_FINAL, attempts=2)
    await cache.put(GROUP_ID, DATE, 0, entry)

    assert (await cache.get_state(GROUP_ID, DATE, 0))[0] is BatchState.FAILED_FINAL
    assert await cache.get_state(GROUP_ID, DATE, 0, force_regenerate=True) == (BatchState.UNSEEN, None)


def test_failure_state_depends_on_attempts():
    assert BatchState.after_failure(1) is BatchState.FAILED_RETRYABLE
    assert BatchState.after_failure(2) is BatchState.FAILED_FINAL


# Reports


@pytest.mark.asyncio
async def test_report_save_and_load(redis):
    storage = ReportStorage(redis)
    await storage.save_report(Report(group_id=GROUP_ID, date=DATE, stats={"basic": {}}, message_count=42))

    report = await storage.get_report(GROUP_ID, DATE)

    assert report.message_count == 42
    assert await redis.ttl(storage._make_key(GROUP_ID, DATE)) == -1
    assert await storage.get_report(GROUP_ID, "2024-05-02") is None


@pytest.mark.asyncio
async def test_report_retention(redis):
    storage = ReportStorage(redis, retention_days=2)
    await storage.save_report(Report(group_id=GROUP_ID, date=DATE, stats={}))
    assert 0 < await redis.ttl(storage._make_key(GROUP_ID, DATE)) <= 2 * 86400


# Generation lock


@pytest.mark.asyncio
async def test_only_one_concurrent_acquire_wins(redis):
    lock = GenerationLock(redis)

    results = await asyncio.gather(*(lock.acquire(GROUP_ID, DATE) for _ in range(5)))

    assert sorted(results) == [False, False, False, False, True]
    assert 0 < await redis.ttl(lock._make_key(GROUP_ID, DATE)) <= 300


@pytest.mark.asyncio
async def test_release_allows_reacquire(redis):
    lock = GenerationLock(redis)
    assert await lock.acquire(GROUP_ID, DATE)
    await lock.release(GROUP_ID, DATE)

    assert not await lock.is_locked(GROUP_ID, DATE)
    assert await lock.acquire(GROUP_ID, DATE)


@pytest.mark.asyncio
async def test_lock_is_scoped_to_group_and_date(redis):
    lock = GenerationLock(redis)
    assert await lock.acquire(GROUP_ID, DATE)
    assert await lock.acquire(GROUP_ID, "2024-05-02")
    assert await lock.acquire("other", DATE)


@pytest.mark.asyncio
async def test_hold_releases_only_when_acquired(redis):
    lock = GenerationLock(redis)
    await lock.acquire(GROUP_ID, DATE)

    async with lock.hold(GROUP_ID, DATE) as acquired:
        assert not acquired
    assert await lock.is_locked(GROUP_ID, DATE)

    await lock.release(GROUP_ID, DATE)
    with pytest.raises(RuntimeError):
        async with lock.hold(GROUP_ID, DATE) as acquired:
            assert acquired
            raise RuntimeError("build failed")
    assert not await lock.is_locked(GROUP_ID, DATE)


# Cooldown


@pytest.mark.asyncio
async def test_cooldown_window(redis):
    clock = FakeClock()
    gate = CooldownGate(redis, cooldown_minutes=10, clock=clock)

    assert not (await gate.check(GROUP_ID, DATE)).in_cooldown

    await gate.mark(GROUP_ID, DATE, generated_by="alice", message_count=120)
    clock.now += 4 * 60 + 30

    status = await gate.check(GROUP_ID, DATE)
    assert status.in_cooldown
    assert status.remaining_minutes == 6
    assert status.last_generated.generated_by == "alice"
    assert status.last_generated.message_count == 120

    clock.now += 6 * 60
    assert not (await gate.check(GROUP_ID, DATE)).in_cooldown


@pytest.mark.asyncio
async def test_cooldown_bypass_is_never_in_cooldown(redis):
    gate = CooldownGate(redis, cooldown_minutes=10, clock=FakeClock())
    await gate.mark(GROUP_ID, DATE, generated_by="alice", message_count=1)

    status = await gate.check(GROUP_ID, DATE, bypass=True)

    assert not status.in_cooldown
    assert status.remaining_minutes == 0
    assert (await gate.check(GROUP_ID, DATE)).in_cooldown


@pytest.mark.asyncio
async def test_cooldown_record_expires(redis):
    gate = CooldownGate(redis, ttl_seconds=3600)
    await gate.mark(GROUP_ID, DATE, generated_by="alice", message_count=1)
    assert 0 < await redis.ttl(gate._make_key(GROUP_ID, DATE)) <= 3600
