import pytest

from group_insight.config import Settings
from group_insight.container import ServiceContainer
from group_insight.services import ServiceHandle, ServiceStatus, ServiceUnavailable


def test_service_handle_states():
    ready = ServiceHandle.ready("llm", "client")
    assert ready.is_ready and ready.get() == "client"

    for handle in (ServiceHandle.disabled("llm"), ServiceHandle.failed("llm", "bad key")):
        assert not handle.is_ready
        with pytest.raises(ServiceUnavailable):
            handle.get()

    assert ServiceHandle.failed("llm", "bad key").describe() == {"status": "failed", "cause": "bad key"}


@pytest.mark.asyncio
async def test_missing_llm_key_disables_analysis(redis):
    container = ServiceContainer(Settings(llm_api_key=None, telegram_bot_token=None), redis)

    assert container.llm.status is ServiceStatus.DISABLED
    assert container.delivery.status is ServiceStatus.DISABLED
    assert container.batch_analyzer.topic_analyzer is None
    assert container.assembler.title_analyzer is None

    # without analysis the scheduler is never started
    await container.start()
    assert container.scheduler.scheduler is None
    await container.stop()


@pytest.mark.asyncio
async def test_reconfigure_rebuilds_components(redis):
    container = ServiceContainer(Settings(llm_api_key=None, telegram_bot_token=None), redis)

    await container.reconfigure(
        Settings(
            llm_api_key="test-key",
            telegram_bot_token=None,
            golden_quote_enabled=False,
            batch_size=500,
            key_prefix="other",
        )
    )

    assert container.llm.is_ready
    assert container.batch_analyzer.topic_analyzer is not None
    assert container.batch_analyzer.quote_analyzer is None
    assert container.assembler.batch_size == 500
    assert container.reports._make_key("g", "d") == "other:report:g:d"
    await container.stop()


def test_default_llm_call_fits_inside_generation_lock():
    settings = Settings(_env_file=None)
    retries = settings.llm_retries
    worst_case = (retries + 1) * settings.llm_timeout + sum(settings.llm_backoff * n for n in range(1, retries + 1))

    assert worst_case < settings.generation_lock_ttl_seconds
