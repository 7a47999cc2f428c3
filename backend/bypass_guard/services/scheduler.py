"""Recurring job bootstrap for rq-scheduler."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from redis import Redis
from rq_scheduler import Scheduler  # type: ignore[import-untyped]

from bypass_guard.core.config import settings
from bypass_guard.core.logging import get_logger
from bypass_guard.services.queue_worker import run_flush_notification_queue
from bypass_guard.services.request_sweeper import run_process_requests
from bypass_guard.services.sensor_reactivation import run_reactivate_sensors

logger = get_logger(__name__)
_FIRST_RUN_DELAY_SECONDS = 5


@dataclass(frozen=True)
class RecurringJob:
    job_id: str
    func: Callable[[], Any]
    interval_seconds: int


def recurring_jobs() -> list[RecurringJob]:
    """Jobs registered by `bootstrap_job_schedules`, read from current settings."""
    return [
        RecurringJob(
            job_id=settings.process_requests_schedule_id,
            func=run_process_requests,
            interval_seconds=settings.process_requests_interval_seconds,
        ),
        RecurringJob(
            job_id=settings.reactivate_sensors_schedule_id,
            func=run_reactivate_sensors,
            interval_seconds=settings.reactivate_sensors_interval_seconds,
        ),
        RecurringJob(
            job_id=settings.notification_worker_schedule_id,
            func=run_flush_notification_queue,
            interval_seconds=settings.notification_worker_interval_seconds,
        ),
    ]


def _scheduler() -> Scheduler:
    connection = Redis.from_url(settings.rq_redis_url)
    return Scheduler(queue_name=settings.rq_jobs_queue_name, connection=connection)


def bootstrap_job_schedules(scheduler: Scheduler | None = None) -> list[str]:
    """Register every recurring job, replacing earlier registrations with the same id."""
    scheduler = scheduler or _scheduler()
    jobs = recurring_jobs()
    job_ids = {job.job_id for job in jobs}

    for existing in scheduler.get_jobs():
        if existing.id in job_ids:
            scheduler.cancel(existing)

    first_run = datetime.now(tz=timezone.utc) + timedelta(seconds=_FIRST_RUN_DELAY_SECONDS)
    for job in jobs:
        scheduler.schedule(
            first_run,
            func=job.func,
            interval=job.interval_seconds,
            repeat=None,
            id=job.job_id,
            queue_name=settings.rq_jobs_queue_name,
        )
        logger.info(
            "scheduler.job.registered",
            extra={"job_id": job.job_id, "interval_seconds": job.interval_seconds},
        )
    return [job.job_id for job in jobs]
