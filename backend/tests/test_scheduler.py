# ruff: noqa: INP001
"""Recurring job registration with rq-scheduler."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from bypass_guard.services.request_sweeper import run_process_requests
from bypass_guard.services.scheduler import bootstrap_job_schedules


@dataclass
class _Job:
    id: str


@dataclass
class _FakeScheduler:
    existing: list[_Job] = field(default_factory=list)
    cancelled: list[str] = field(default_factory=list)
    scheduled: list[dict[str, Any]] = field(default_factory=list)

    def get_jobs(self) -> list[_Job]:
        return list(self.existing)

    def cancel(self, job: _Job) -> None:
        self.cancelled.append(job.id)

    def schedule(self, scheduled_time: Any, **kwargs: Any) -> None:
        self.scheduled.append({"scheduled_time": scheduled_time, **kwargs})


def test_bootstrap_registers_three_recurring_jobs() -> None:
    scheduler = _FakeScheduler()

    job_ids = bootstrap_job_schedules(scheduler)

    assert job_ids == [
        "bypass-process-requests",
        "bypass-reactivate-sensors",
        "bypass-notification-flush",
    ]
    by_id = {entry["id"]: entry for entry in scheduler.scheduled}
    assert by_id["bypass-process-requests"]["interval"] == 14400
    assert by_id["bypass-process-requests"]["func"] is run_process_requests
    assert by_id["bypass-reactivate-sensors"]["interval"] == 3600
    assert by_id["bypass-notification-flush"]["interval"] == 60
    assert all(entry["repeat"] is None for entry in scheduler.scheduled)
    assert all(entry["queue_name"] == "bypass-jobs" for entry in scheduler.scheduled)


def test_bootstrap_replaces_only_its_own_jobs() -> None:
    scheduler = _FakeScheduler(
        existing=[_Job("bypass-process-requests"), _Job("someone-elses-job")],
    )

    bootstrap_job_schedules(scheduler)

    assert scheduler.cancelled == ["bypass-process-requests"]
    assert len(scheduler.scheduled) == 3
