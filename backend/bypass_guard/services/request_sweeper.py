"""Expiry sweeper for pending requests: reminders, then auto-cancellation.

The two scans select disjoint sets (`end_time > now` vs `end_time < now`).
A request whose `end_time` equals `now` exactly is left for the next run.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlmodel import col

from bypass_guard.core.logging import get_logger
from bypass_guard.core.permissions import APPROVER_ROLES
from bypass_guard.core.time import utcnow
from bypass_guard.db.session import job_session
from bypass_guard.models.bypass_requests import BypassRequest
from bypass_guard.models.enums import RequestStatus
from bypass_guard.models.users import User
from bypass_guard.services import messages
from bypass_guard.services.audit import ACTOR_SYSTEM, record_audit
from bypass_guard.services.bypass_requests import transition_from_pending
from bypass_guard.services.notifications.queue import NotificationIntent, enqueue_notification
from bypass_guard.services.recipients import contactable_users, phone_of

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

logger = get_logger(__name__)


@dataclass
class SweepResult:
    """Counters for one `process_requests` run."""

    reminders_sent: int = 0
    cancelled: int = 0
    cancel_notifications_sent: int = 0
    failures: int = 0


def _contacts(users: list[User]) -> list[tuple[UUID, str]]:
    """Snapshot (user id, phone) pairs so later rollbacks cannot expire them."""
    return [(user.id, phone) for user in users if (phone := phone_of(user))]


def _notify_each(
    recipients: list[tuple[UUID, str]],
    *,
    event_type: str,
    message: str,
    request: BypassRequest,
) -> tuple[int, int]:
    """Enqueue `message` per recipient; returns (sent, failed)."""
    sent = failed = 0
    for user_id, phone in recipients:
        try:
            accepted = enqueue_notification(
                NotificationIntent(
                    event_type=event_type,
                    recipient_phone=phone,
                    message=message,
                    request_id=request.id,
                ),
            )
        except Exception:
            logger.warning(
                "sweeper.notify.failed",
                extra={"request_id": str(request.id), "user_id": str(user_id)},
                exc_info=True,
            )
            accepted = False
        if accepted:
            sent += 1
        else:
            failed += 1
    return sent, failed


async def run_reminder_scan(
    session: AsyncSession,
    *,
    now: datetime | None = None,
    result: SweepResult | None = None,
) -> SweepResult:
    """Remind approvers about every pending request whose deadline is still ahead."""
    now = now or utcnow()
    result = result if result is not None else SweepResult()
    pending = await (
        BypassRequest.objects.filter(
            col(BypassRequest.status) == RequestStatus.PENDING.value,
            col(BypassRequest.end_time) > now,
        )
        .order_by(col(BypassRequest.end_time).asc())
        .all(session)
    )
    if not pending:
        return result

    approvers = _contacts(await contactable_users(session, APPROVER_ROLES))
    for request in pending:
        try:
            requester = await User.objects.by_id(request.requester_id).first(session)
            if requester is None:
                logger.warning(
                    "sweeper.reminder.requester_missing",
                    extra={"request_id": str(request.id)},
                )
                continue
            sent, failed = _notify_each(
                approvers,
                event_type="pending_reminder",
                message=messages.pending_reminder_message(request, requester),
                request=request,
            )
        except Exception:
            result.failures += 1
            logger.exception("sweeper.reminder.failed", extra={"request_id": str(request.id)})
            continue
        result.reminders_sent += sent
        result.failures += failed
    logger.info(
        "sweeper.reminder.complete",
        extra={"pending": len(pending), "reminders_sent": result.reminders_sent},
    )
    return result


async def run_auto_cancel_scan(
    session: AsyncSession,
    *,
    now: datetime | None = None,
    result: SweepResult | None = None,
) -> SweepResult:
    """Cancel pending requests whose deadline has passed, notifying approvers once.

    Each cancellation commits on its own; approvers are notified only for
    rows this run actually moved out of `pending`.
    """
    now = now or utcnow()
    result = result if result is not None else SweepResult()
    expired_ids = [
        request.id
        for request in await BypassRequest.objects.filter(
            col(BypassRequest.status) == RequestStatus.PENDING.value,
            col(BypassRequest.end_time) < now,
        ).all(session)
    ]
    if not expired_ids:
        return result

    approvers = _contacts(await contactable_users(session, APPROVER_ROLES))
    for request_id in expired_ids:
        try:
            cancelled = await transition_from_pending(
                session,
                request_id=request_id,
                values={"status": RequestStatus.CANCELLED.value, "updated_at": now},
            )
            if not cancelled:
                await session.rollback()
                continue
            await record_audit(
                session,
                actor_id=None,
                actor_type=ACTOR_SYSTEM,
                action="request.auto_cancel",
                target_type="bypass_request",
                target_id=request_id,
                payload={"cancelled_at": now.isoformat()},
                commit=False,
            )
            await session.commit()
        except Exception:
            await session.rollback()
            result.failures += 1
            logger.exception("sweeper.cancel.failed", extra={"request_id": str(request_id)})
            continue

        result.cancelled += 1
        logger.info("sweeper.cancel.applied", extra={"request_id": str(request_id)})
        try:
            request = await BypassRequest.objects.by_id(request_id).first(session)
            if request is None:
                continue
            sent, failed = _notify_each(
                approvers,
                event_type="auto_cancelled",
                message=messages.auto_cancelled_message(request),
                request=request,
            )
        except Exception:
            result.failures += 1
            logger.exception("sweeper.cancel.notify_failed", extra={"request_id": str(request_id)})
            continue
        result.cancel_notifications_sent += sent
        result.failures += failed
    return result


async def process_requests(session: AsyncSession, *, now: datetime | None = None) -> SweepResult:
    """Run the reminder scan, then the auto-cancel scan, against one `now`."""
    now = now or utcnow()
    result = SweepResult()
    await run_reminder_scan(session, now=now, result=result)
    await run_auto_cancel_scan(session, now=now, result=result)
    logger.info(
        "sweeper.run.complete",
        extra={
            "reminders_sent": result.reminders_sent,
            "cancelled": result.cancelled,
            "cancel_notifications_sent": result.cancel_notifications_sent,
            "failures": result.failures,
        },
    )
    return result


async def _process_requests_job() -> SweepResult:
    async with job_session() as session:
        return await process_requests(session)


def run_process_requests() -> SweepResult:
    """RQ job entrypoint for the scheduled expiry sweep."""
    return asyncio.run(_process_requests_job())
