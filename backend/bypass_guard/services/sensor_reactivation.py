"""Advisory notifier for overdue bypasses whose sensor is still disabled.

Nothing here mutates state: reactivating a sensor is a field action, so the
job only tells approvers which sensors need attention. Re-running it simply
repeats the advisories.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlmodel import col, select

from bypass_guard.core.logging import get_logger
from bypass_guard.core.permissions import APPROVER_ROLES
from bypass_guard.core.time import utcnow
from bypass_guard.db.session import job_session
from bypass_guard.models.bypass_requests import BypassRequest
from bypass_guard.models.enums import RequestStatus, SensorStatus
from bypass_guard.models.equipment import Equipment
from bypass_guard.models.sensors import Sensor
from bypass_guard.models.users import User
from bypass_guard.services import messages
from bypass_guard.services.notifications.queue import NotificationIntent, enqueue_notification
from bypass_guard.services.recipients import contactable_users, phone_of

if TYPE_CHECKING:
    from datetime import datetime

    from sqlmodel.ext.asyncio.session import AsyncSession

logger = get_logger(__name__)


@dataclass(frozen=True)
class ReactivationCandidate:
    request: BypassRequest
    sensor: Sensor
    requester: User
    equipment: Equipment


async def select_reactivation_candidates(
    session: AsyncSession,
    *,
    now: datetime,
) -> list[ReactivationCandidate]:
    """Approved requests past `end_time` whose sensor is still bypassed."""
    statement = (
        select(BypassRequest, Sensor, User, Equipment)
        .join(Sensor, col(Sensor.id) == col(BypassRequest.sensor_id))
        .join(User, col(User.id) == col(BypassRequest.requester_id))
        .join(Equipment, col(Equipment.id) == col(BypassRequest.equipment_id))
        .where(
            col(BypassRequest.status) == RequestStatus.APPROVED.value,
            col(BypassRequest.end_time) < now,
            col(Sensor.status) == SensorStatus.BYPASSED.value,
        )
        .order_by(col(BypassRequest.end_time).asc())
    )
    rows = await session.exec(statement)
    return [
        ReactivationCandidate(request=request, sensor=sensor, requester=requester, equipment=equipment)
        for request, sensor, requester, equipment in rows
    ]


async def notify_sensor_reactivations(
    session: AsyncSession,
    *,
    now: datetime | None = None,
) -> int:
    """Send one advisory per overdue bypass to every approver; returns messages enqueued."""
    now = now or utcnow()
    candidates = await select_reactivation_candidates(session, now=now)
    if not candidates:
        logger.info("reactivation.scan.empty")
        return 0

    recipients = [
        (user.id, phone)
        for user in await contactable_users(session, APPROVER_ROLES)
        if (phone := phone_of(user))
    ]
    sent = 0
    for candidate in candidates:
        try:
            message = messages.reactivation_required_message(
                candidate.request,
                requester=candidate.requester,
                equipment=candidate.equipment,
                sensor=candidate.sensor,
            )
        except Exception:
            logger.exception(
                "reactivation.render_failed",
                extra={"request_id": str(candidate.request.id)},
            )
            continue
        for user_id, phone in recipients:
            try:
                accepted = enqueue_notification(
                    NotificationIntent(
                        event_type="reactivation_required",
                        recipient_phone=phone,
                        message=message,
                        request_id=candidate.request.id,
                    ),
                )
            except Exception:
                logger.warning(
                    "reactivation.notify_failed",
                    extra={"request_id": str(candidate.request.id), "user_id": str(user_id)},
                    exc_info=True,
                )
                continue
            if accepted:
                sent += 1
    logger.info(
        "reactivation.scan.complete",
        extra={"candidates": len(candidates), "notifications": sent},
    )
    return sent


async def _reactivation_job() -> int:
    async with job_session() as session:
        return await notify_sensor_reactivations(session)


def run_reactivate_sensors() -> int:
    """RQ job entrypoint for the scheduled reactivation advisory."""
    return asyncio.run(_reactivation_job())
