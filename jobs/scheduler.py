"""In-process job scheduler built on APScheduler's asyncio scheduler.

Every job body runs in a worker thread with its own event loop, so neither
DuckDB calls nor a slow provider ever block the loop that serves the API.
"""

from __future__ import annotations

import asyncio
import logging
import os
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from jobs.backfill import backfill_async
from jobs.config import GOLD_PRICE_HISTORY_CRON, RISK_AGGREGATION_CRON, TRACKED_INDICATORS
from jobs.derive import run_risk_job
from jobs.gold_price import run_gold_price_job
from jobs.ingest import run_indicator_job

logger = logging.getLogger(__name__)

SCHEDULER_ENABLED_ENV = "SCHEDULER_ENABLED"
SCHEDULER_TIMEZONE = "UTC"
STARTUP_BACKFILL_JOB_ID = "startup_backfill"

JobFunc = Callable[[], Awaitable[Any]]


def scheduler_enabled() -> bool:
    return os.getenv(SCHEDULER_ENABLED_ENV, "true").strip().lower() not in {"0", "false", "no"}


def in_worker_thread(func: Callable[[], Any]) -> JobFunc:
    """Wrap a sync function or coroutine function to run off the event loop."""

    async def job() -> Any:
        if asyncio.iscoroutinefunction(func):
            return await asyncio.to_thread(lambda: asyncio.run(func()))
        return await asyncio.to_thread(func)

    return job


def _indicator_job(code: str) -> JobFunc:
    async def job() -> Any:
        return await run_indicator_job(code)

    return in_worker_thread(job)


def build_jobs() -> list[tuple[str, str, JobFunc]]:
    """(job id, crontab, coroutine function) for every periodic job."""

    jobs: list[tuple[str, str, JobFunc]] = [
        (f"ingest_{indicator.code.lower()}", indicator.cron, _indicator_job(indicator.code))
        for indicator in TRACKED_INDICATORS
    ]
    jobs.append(("gold_risk_aggregation", RISK_AGGREGATION_CRON, in_worker_thread(run_risk_job)))
    jobs.append(
        ("gold_price_history", GOLD_PRICE_HISTORY_CRON, in_worker_thread(run_gold_price_job))
    )
    return jobs


class JobScheduler:
    """Runs each periodic job on its own cadence, never overlapping itself."""

    def __init__(self) -> None:
        self._scheduler = AsyncIOScheduler(
            timezone=SCHEDULER_TIMEZONE,
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": 60 * 5,
            },
        )
        self._running = False

    def schedule_all(self) -> None:
        for job_id, cron, func in build_jobs():
            self._scheduler.add_job(
                self._wrap_job(job_id, func),
                trigger=CronTrigger.from_crontab(cron, timezone=SCHEDULER_TIMEZONE),
                id=job_id,
                name=job_id,
                replace_existing=True,
            )
            logger.info("Scheduled job: %s (%s)", job_id, cron)

    def schedule_startup_backfill(self) -> None:
        """Queue the historical backfill to run once, right away."""

        self._scheduler.add_job(
            self._wrap_job(STARTUP_BACKFILL_JOB_ID, in_worker_thread(backfill_async)),
            id=STARTUP_BACKFILL_JOB_ID,
            name=STARTUP_BACKFILL_JOB_ID,
            next_run_time=datetime.now(timezone.utc),
            replace_existing=True,
        )
        logger.info("Scheduled one-shot job: %s", STARTUP_BACKFILL_JOB_ID)

    def _wrap_job(self, name: str, func: JobFunc) -> JobFunc:
        async def wrapper() -> None:
            await execute_job(name, func)

        return wrapper

    def start(self) -> None:
        if self._running:
            logger.warning("Scheduler already running")
            return
        self.schedule_all()
        self._scheduler.start()
        self._running = True
        logger.info("Job scheduler started")

    def stop(self) -> None:
        if not self._running:
            return
        self._scheduler.shutdown(wait=False)
        self._running = False
        logger.info("Job scheduler stopped")

    def get_jobs_status(self) -> list[dict[str, Any]]:
        return [
            {
                "id": job.id,
                "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
            }
            for job in self._scheduler.get_jobs()
        ]


async def execute_job(name: str, func: JobFunc) -> None:
    """Run a job, logging its duration; unexpected errors never escape."""

    logger.info("Job %s started", name)
    start = datetime.now(timezone.utc)
    try:
        result = await func()
    except Exception:
        duration_ms = int((datetime.now(timezone.utc) - start).total_seconds() * 1000)
        logger.exception("Job %s failed after %sms", name, duration_ms)
        return
    duration_ms = int((datetime.now(timezone.utc) - start).total_seconds() * 1000)
    logger.info("Job %s completed in %sms (result=%s)", name, duration_ms, result)


def startup() -> JobScheduler | None:
    """Start the periodic jobs and queue the historical backfill.

    Must be called with an event loop running. Returns immediately; the
    backfill runs in the background like any other job.
    """

    if not scheduler_enabled():
        logger.info("Scheduler disabled via %s=false", SCHEDULER_ENABLED_ENV)
        return None

    scheduler = JobScheduler()
    scheduler.start()
    scheduler.schedule_startup_backfill()
    return scheduler


async def run_forever() -> None:
    scheduler = startup()
    if scheduler is None:
        return
    try:
        await asyncio.Event().wait()
    finally:
        scheduler.stop()


__all__ = [
    "JobScheduler",
    "STARTUP_BACKFILL_JOB_ID",
    "build_jobs",
    "execute_job",
    "in_worker_thread",
    "run_forever",
    "scheduler_enabled",
    "startup",
]
