"""CLI script to run the bypass background jobs by hand or register their schedules."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_ROOT))


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run the bypass expiry sweep, reactivation advisory, or notification worker.",
    )
    subcommands = parser.add_subparsers(dest="command", required=True)
    subcommands.add_parser(
        "process-requests",
        help="Remind approvers about pending requests and auto-cancel expired ones",
    )
    subcommands.add_parser(
        "reactivate-sensors",
        help="Notify approvers about overdue bypasses whose sensor is still disabled",
    )
    subcommands.add_parser(
        "flush-notifications",
        help="Drain the notification queue once and exit",
    )
    subcommands.add_parser(
        "notification-worker",
        help="Run the blocking notification worker until interrupted",
    )
    subcommands.add_parser(
        "schedule",
        help="Register the recurring jobs with rq-scheduler",
    )
    return parser.parse_args()


async def _process_requests() -> int:
    from bypass_guard.db.session import job_session
    from bypass_guard.services.request_sweeper import process_requests

    async with job_session() as session:
        result = await process_requests(session)
    sys.stdout.write(
        f"reminders_sent={result.reminders_sent} "
        f"cancelled={result.cancelled} "
        f"cancel_notifications_sent={result.cancel_notifications_sent} "
        f"failures={result.failures}\n",
    )
    return 1 if result.failures else 0


async def _reactivate_sensors() -> int:
    from bypass_guard.db.session import job_session
    from bypass_guard.services.sensor_reactivation import notify_sensor_reactivations

    async with job_session() as session:
        sent = await notify_sensor_reactivations(session)
    sys.stdout.write(f"notifications_enqueued={sent}\n")
    return 0


async def _flush_notifications() -> int:
    from bypass_guard.services.queue_worker import flush_queue

    processed = await flush_queue()
    sys.stdout.write(f"delivered={processed}\n")
    return 0


def _schedule() -> int:
    from bypass_guard.services.scheduler import bootstrap_job_schedules

    for job_id in bootstrap_job_schedules():
        sys.stdout.write(f"scheduled={job_id}\n")
    return 0


def main() -> None:
    """Dispatch the selected subcommand and exit with its return code."""
    from bypass_guard.core.logging import configure_logging

    args = _parse_args()
    configure_logging()
    if args.command == "process-requests":
        raise SystemExit(asyncio.run(_process_requests()))
    if args.command == "reactivate-sensors":
        raise SystemExit(asyncio.run(_reactivate_sensors()))
    if args.command == "flush-notifications":
        raise SystemExit(asyncio.run(_flush_notifications()))
    if args.command == "notification-worker":
        from bypass_guard.services.queue_worker import run_worker

        run_worker()
        raise SystemExit(0)
    raise SystemExit(_schedule())


if __name__ == "__main__":
    main()
