import logging
import threading

import pytest

from jobs.scheduler import (
    build_jobs,
    execute_job,
    in_worker_thread,
    scheduler_enabled,
    startup,
)


def test_job_table():
    jobs = {job_id: cron for job_id, cron, _ in build_jobs()}

    assert jobs == {
        "ingest_us_10y_real_yield": "0 6 * * *",
        "ingest_us_dollar_index": "5 6 * * *",
        "gold_risk_aggregation": "10 6 * * *",
        "gold_price_history": "*/15 * * * *",
    }


@pytest.mark.parametrize(("raw", "expected"), [("true", True), ("FALSE", False), ("0", False)])
def test_scheduler_enabled_flag(monkeypatch, raw, expected):
    monkeypatch.setenv("SCHEDULER_ENABLED", raw)

    assert scheduler_enabled() is expected


@pytest.mark.asyncio
async def test_execute_job_logs_failures(caplog):
    async def broken():
        raise RuntimeError("boom")

    with caplog.at_level(logging.ERROR, logger="jobs.scheduler"):
        await execute_job("broken", broken)

    assert "Job broken failed" in caplog.text


def test_startup_disabled_does_nothing(monkeypatch):
    monkeypatch.setenv("SCHEDULER_ENABLED", "false")

    assert startup() is None


@pytest.mark.asyncio
@pytest.mark.parametrize("is_async", [True, False])
async def test_jobs_run_off_the_event_loop_thread(is_async):
    loop_thread = threading.get_ident()

    async def async_body():
        return threading.get_ident()

    def sync_body():
        return threading.get_ident()

    job = in_worker_thread(async_body if is_async else sync_body)

    assert await job() != loop_thread


def test_every_periodic_job_is_wrapped_for_worker_threads():
    for job_id, _, func in build_jobs():
        assert func.__qualname__.startswith("in_worker_thread"), job_id
