"""Bypass request transition engine: submit, edit, validate, and cancel.

Every status change out of `pending` goes through a conditional
`UPDATE ... WHERE status = 'pending'` so that concurrent validators, manual
cancels, and the expiry sweeper can never both win. Notifications are
enqueued only after the owning transaction has committed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import HTTPException, status
from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import col, select

from bypass_guard.core.logging import get_logger
from bypass_guard.core.permissions import (
    PRIORITY_VALIDATION_ROLE,
    REQUESTS_CREATE,
    REQUESTS_DELETE_OWN,
    REQUESTS_UPDATE_OWN,
    REQUESTS_VIEW_ALL,
    ROLE_PERMISSIONS_VERSION,
    has_permission,
    permissions_for_role,
    roles_with_permission,
    validation_permission_for,
)
from bypass_guard.core.time import utcnow
from bypass_guard.models.bypass_requests import BypassRequest
from bypass_guard.models.enums import (
    EquipmentStatus,
    RequestPriority,
    RequestStatus,
    SensorStatus,
    UserRole,
    ValidationDecision,
)
from bypass_guard.models.equipment import Equipment
from bypass_guard.models.sensors import Sensor
from bypass_guard.models.users import User
from bypass_guard.services import messages
from bypass_guard.services.audit import ACTOR_HUMAN, record_audit
from bypass_guard.services.notifications.queue import NotificationIntent, enqueue_notifications
from bypass_guard.services.recipients import contactable_users, phone_of

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

    from bypass_guard.schemas.bypass_requests import BypassRequestCreate, BypassRequestUpdate

logger = get_logger(__name__)

REQUEST_CODE_PREFIX = "BR"


def needs_reactivation(request: BypassRequest, sensor: Sensor, now: datetime) -> bool:
    """Approved, past its end time, and the sensor is still bypassed."""
    return (
        request.status == RequestStatus.APPROVED
        and sensor.status == SensorStatus.BYPASSED
        and request.end_time < now
    )


def is_active_bypass(request: BypassRequest, sensor: Sensor, now: datetime) -> bool:
    """Approved, inside its time window, with the sensor bypassed."""
    return (
        request.status == RequestStatus.APPROVED
        and sensor.status == SensorStatus.BYPASSED
        and request.start_time <= now <= request.end_time
    )


def _unprocessable(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=detail)


def _require_permission(user: User, permission: str) -> None:
    if not has_permission(user.role, permission):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Missing permission: {permission}",
        )


def _require_owner_or_supervisor(
    actor: User,
    request: BypassRequest,
    *,
    own_permission: str,
    detail: str,
) -> None:
    if has_permission(actor.role, REQUESTS_VIEW_ALL):
        return
    if request.requester_id == actor.id and has_permission(actor.role, own_permission):
        return
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


async def generate_request_code(session: AsyncSession, *, year: int) -> str:
    """Return the next `BR-{year}-{NNN}` code for `year`."""
    prefix = f"{REQUEST_CODE_PREFIX}-{year}-"
    existing = await session.exec(
        select(BypassRequest.request_code).where(
            col(BypassRequest.request_code).startswith(prefix),
        ),
    )
    highest = 0
    for code in existing:
        suffix = code.removeprefix(prefix)
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return f"{prefix}{highest + 1:03d}"


async def transition_from_pending(
    session: AsyncSession,
    *,
    request_id: UUID,
    values: dict[str, Any],
) -> bool:
    """Apply `values` only if the row is still pending; True when it was.

    Every pending-only write goes through here, edits included.
    """
    result = await session.exec(
        update(BypassRequest)
        .where(
            col(BypassRequest.id) == request_id,
            col(BypassRequest.status) == RequestStatus.PENDING.value,
        )
        .values(**values),
    )
    return result.rowcount == 1


async def _mark_sensor_bypassed(session: AsyncSession, *, sensor_id: UUID, now: datetime) -> Sensor:
    sensor = await Sensor.objects.by_id(sensor_id).first(session)
    if sensor is None:
        raise _unprocessable("Sensor not found")
    sensor.status = SensorStatus.BYPASSED.value
    sensor.updated_at = now
    session.add(sensor)
    return sensor


async def _mark_equipment_in_maintenance(
    session: AsyncSession,
    *,
    equipment_id: UUID,
    now: datetime,
) -> Equipment | None:
    equipment = await Equipment.objects.by_id(equipment_id).first(session)
    if equipment is None:
        return None
    equipment.status = EquipmentStatus.MAINTENANCE.value
    equipment.updated_at = now
    session.add(equipment)
    return equipment


async def _load_request_or_404(session: AsyncSession, request_id: UUID) -> BypassRequest:
    request = await BypassRequest.objects.by_id(request_id).first(session)
    if request is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Request not found")
    return request


async def submit_request(
    session: AsyncSession,
    *,
    requester: User,
    payload: BypassRequestCreate,
) -> BypassRequest:
    """Create a pending bypass request after validating its invariants."""
    _require_permission(requester, REQUESTS_CREATE)
    requester_id = requester.id

    end_time = payload.resolved_end_time()
    if end_time is None:
        raise _unprocessable("Either end_time or estimated_duration_hours is required")
    if end_time <= payload.start_time:
        raise _unprocessable("end_time must be after start_time")
    mitigation_measures = payload.cleaned_mitigation_measures()
    if not mitigation_measures:
        raise _unprocessable("At least one mitigation measure is required")
    if not (payload.safety_acknowledged and payload.responsibility_acknowledged):
        raise _unprocessable("Safety and responsibility acknowledgements are required")

    equipment = await Equipment.objects.by_id(payload.equipment_id).first(session)
    if equipment is None:
        raise _unprocessable("Equipment not found")
    sensor = await Sensor.objects.by_id(payload.sensor_id).first(session)
    if sensor is None or sensor.equipment_id != equipment.id:
        raise _unprocessable("Sensor not found on the selected equipment")

    now = utcnow()
    priority = RequestPriority(payload.priority)
    request = BypassRequest(
        request_code=await generate_request_code(session, year=now.year),
        requester_id=requester_id,
        equipment_id=equipment.id,
        sensor_id=sensor.id,
        title=payload.title.value,
        description=payload.description.strip(),
        priority=priority.value,
        safety_impact=payload.safety_impact.value,
        operational_impact=payload.operational_impact.value,
        environmental_impact=payload.environmental_impact.value,
        mitigation_measures=mitigation_measures,
        contingency_plan=payload.contingency_plan,
        validation_required_by_role=PRIORITY_VALIDATION_ROLE[priority].value,
        start_time=payload.start_time,
        end_time=end_time,
        status=RequestStatus.PENDING.value,
        created_at=now,
        updated_at=now,
    )
    session.add(request)
    try:
        await session.flush()
        await record_audit(
            session,
            actor_id=requester.id,
            actor_type=ACTOR_HUMAN,
            action="request.create",
            target_type="bypass_request",
            target_id=request.id,
            payload={
                "request_code": request.request_code,
                "sensor_id": str(sensor.id),
                "priority": priority.value,
            },
            commit=False,
        )
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        logger.warning(
            "bypass.request.create_conflict",
            extra={"requester_id": str(requester_id), "error": str(exc.orig)},
        )
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Request code collision; retry the submission",
        ) from exc
    await session.refresh(request)
    logger.info(
        "bypass.request.created",
        extra={"request_id": str(request.id), "request_code": request.request_code},
    )

    try:
        await _notify_submission(session, request=request, requester=requester, now=now)
    except Exception:
        logger.warning("Failed to enqueue request creation notifications", exc_info=True)
    return request


async def _notify_submission(
    session: AsyncSession,
    *,
    request: BypassRequest,
    requester: User,
    now: datetime,
) -> None:
    intents: list[NotificationIntent] = []
    requester_phone = phone_of(requester)
    if requester_phone:
        intents.append(
            NotificationIntent(
                event_type="request_created",
                recipient_phone=requester_phone,
                message=messages.request_created_message(request, requester, now=now),
                request_id=request.id,
            ),
        )
    validator_roles = roles_with_permission(validation_permission_for(request.priority))
    to_validate = messages.request_to_validate_message(request, requester, now=now)
    for validator in await contactable_users(session, validator_roles):
        validator_phone = phone_of(validator)
        if validator.id == requester.id or validator_phone is None:
            continue
        intents.append(
            NotificationIntent(
                event_type="request_to_validate",
                recipient_phone=validator_phone,
                message=to_validate,
                request_id=request.id,
            ),
        )
    enqueue_notifications(intents)


async def validate_request(
    session: AsyncSession,
    *,
    request_id: UUID,
    validator: User,
    decision: ValidationDecision,
    comment: str,
) -> BypassRequest:
    """Approve or reject a pending request.

    Approval flips the sensor to bypassed and the equipment to maintenance in
    the same transaction as the status change.
    """
    comment = comment.strip()
    if not comment:
        raise _unprocessable("A validation comment is required")
    decision = ValidationDecision(decision)

    request = await _load_request_or_404(session, request_id)
    required_permission = validation_permission_for(request.priority)
    _require_permission(validator, required_permission)
    if request.status != RequestStatus.PENDING:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Only pending requests can be validated",
        )

    now = utcnow()
    values: dict[str, Any] = {
        "status": RequestStatus(decision.value).value,
        "validated_by_id": validator.id,
        "validated_at": now,
        "validation_comment": comment,
        "updated_at": now,
    }
    if decision == ValidationDecision.REJECTED:
        values["rejection_reason"] = comment

    try:
        if not await transition_from_pending(session, request_id=request.id, values=values):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Request was already decided or cancelled",
            )
        audit_payload: dict[str, object] = {
            "decision": decision.value,
            "comment": comment,
            "permission": required_permission,
            "policy_version": ROLE_PERMISSIONS_VERSION,
        }
        if decision == ValidationDecision.APPROVED:
            sensor = await _mark_sensor_bypassed(session, sensor_id=request.sensor_id, now=now)
            equipment = await _mark_equipment_in_maintenance(
                session,
                equipment_id=request.equipment_id,
                now=now,
            )
            await record_audit(
                session,
                actor_id=validator.id,
                actor_type=ACTOR_HUMAN,
                action="sensor.bypass",
                target_type="sensor",
                target_id=sensor.id,
                payload={
                    "request_id": str(request.id),
                    "equipment_id": str(equipment.id) if equipment else None,
                },
                commit=False,
            )
        await record_audit(
            session,
            actor_id=validator.id,
            actor_type=ACTOR_HUMAN,
            action=f"request.{decision.value}",
            target_type="bypass_request",
            target_id=request.id,
            payload=audit_payload,
            commit=False,
        )
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    await session.refresh(request)
    logger.info(
        "bypass.request.validated",
        extra={
            "request_id": str(request.id),
            "decision": decision.value,
            "validator_id": str(validator.id),
        },
    )

    try:
        await _notify_decision(session, request=request, decision=decision, now=now)
    except Exception:
        logger.warning("Failed to enqueue request decision notifications", exc_info=True)
    return request


async def _notify_decision(
    session: AsyncSession,
    *,
    request: BypassRequest,
    decision: ValidationDecision,
    now: datetime,
) -> None:
    requester = await User.objects.by_id(request.requester_id).first(session)
    if requester is None:
        return
    intents: list[NotificationIntent] = []
    requester_phone = phone_of(requester)
    if requester_phone:
        intents.append(
            NotificationIntent(
                event_type="request_decided",
                recipient_phone=requester_phone,
                message=messages.request_decision_message(
                    request,
                    decision=decision,
                    validated_at=now,
                ),
                request_id=request.id,
            ),
        )
    admin_copy = messages.request_decision_message(
        request,
        decision=decision,
        validated_at=now,
        requester=requester,
    )
    for admin in await contactable_users(session, [UserRole.ADMINISTRATOR]):
        admin_phone = phone_of(admin)
        if admin_phone:
            intents.append(
                NotificationIntent(
                    event_type="request_decided_admin",
                    recipient_phone=admin_phone,
                    message=admin_copy,
                    request_id=request.id,
                ),
            )
    enqueue_notifications(intents)


async def cancel_request(
    session: AsyncSession,
    *,
    request_id: UUID,
    actor: User,
) -> BypassRequest:
    """Cancel a pending request on behalf of its requester or a supervisor."""
    request = await _load_request_or_404(session, request_id)
    _require_owner_or_supervisor(
        actor,
        request,
        own_permission=REQUESTS_DELETE_OWN,
        detail="Only the requester or a supervisor can cancel this request",
    )
    if request.status != RequestStatus.PENDING:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Only pending requests can be cancelled",
        )

    now = utcnow()
    try:
        cancelled = await transition_from_pending(
            session,
            request_id=request.id,
            values={"status": RequestStatus.CANCELLED.value, "updated_at": now},
        )
        if not cancelled:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Request was already decided or cancelled",
            )
        await record_audit(
            session,
            actor_id=actor.id,
            actor_type=ACTOR_HUMAN,
            action="request.cancel",
            target_type="bypass_request",
            target_id=request.id,
            commit=False,
        )
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    await session.refresh(request)
    logger.info(
        "bypass.request.cancelled",
        extra={"request_id": str(request.id), "actor_id": str(actor.id)},
    )
    return request


async def update_request(
    session: AsyncSession,
    *,
    request_id: UUID,
    actor: User,
    payload: BypassRequestUpdate,
) -> BypassRequest:
    """Edit a request that is still awaiting validation.

    The merged time window and sensor/equipment pairing are re-checked as on
    submission, and the write only lands while the row is still pending.
    """
    request = await _load_request_or_404(session, request_id)
    _require_owner_or_supervisor(
        actor,
        request,
        own_permission=REQUESTS_UPDATE_OWN,
        detail="Only the requester or a supervisor can edit this request",
    )
    if request.status != RequestStatus.PENDING:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Only pending requests can be edited",
        )

    changes = payload.changes()
    if not changes:
        return request

    start_time = changes.get("start_time", request.start_time)
    end_time = changes.get("end_time", request.end_time)
    if end_time <= start_time:
        raise _unprocessable("end_time must be after start_time")
    if "mitigation_measures" in changes and not changes["mitigation_measures"]:
        raise _unprocessable("At least one mitigation measure is required")
    if "equipment_id" in changes or "sensor_id" in changes:
        equipment = await Equipment.objects.by_id(
            changes.get("equipment_id", request.equipment_id),
        ).first(session)
        if equipment is None:
            raise _unprocessable("Equipment not found")
        sensor = await Sensor.objects.by_id(changes.get("sensor_id", request.sensor_id)).first(
            session,
        )
        if sensor is None or sensor.equipment_id != equipment.id:
            raise _unprocessable("Sensor not found on the selected equipment")
    if "priority" in changes:
        changes["validation_required_by_role"] = PRIORITY_VALIDATION_ROLE[
            RequestPriority(changes["priority"])
        ].value

    now = utcnow()
    try:
        updated = await transition_from_pending(
            session,
            request_id=request.id,
            values={**changes, "updated_at": now},
        )
        if not updated:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Request was already decided or cancelled",
            )
        await record_audit(
            session,
            actor_id=actor.id,
            actor_type=ACTOR_HUMAN,
            action="request.update",
            target_type="bypass_request",
            target_id=request.id,
            payload={"fields": sorted(changes)},
            commit=False,
        )
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    await session.refresh(request)
    logger.info(
        "bypass.request.updated",
        extra={
            "request_id": str(request.id),
            "actor_id": str(actor.id),
            "fields": sorted(changes),
        },
    )

    try:
        await _notify_update(session, request=request, editor=actor, now=now)
    except Exception:
        logger.warning("Failed to enqueue request update notifications", exc_info=True)
    return request


async def _notify_update(
    session: AsyncSession,
    *,
    request: BypassRequest,
    editor: User,
    now: datetime,
) -> None:
    requester = await User.objects.by_id(request.requester_id).first(session)
    if requester is None:
        return
    message = messages.request_updated_message(request, requester, now=now)
    validator_roles = roles_with_permission(validation_permission_for(request.priority))
    intents: list[NotificationIntent] = []
    for validator in await contactable_users(session, validator_roles):
        validator_phone = phone_of(validator)
        if validator.id == editor.id or validator_phone is None:
            continue
        intents.append(
            NotificationIntent(
                event_type="request_updated",
                recipient_phone=validator_phone,
                message=message,
                request_id=request.id,
            ),
        )
    enqueue_notifications(intents)


async def get_request_for_actor(
    session: AsyncSession,
    *,
    request_id: UUID,
    actor: User,
) -> BypassRequest:
    request = await _load_request_or_404(session, request_id)
    if request.requester_id != actor.id and not has_permission(actor.role, REQUESTS_VIEW_ALL):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)
    return request


async def list_requests(
    session: AsyncSession,
    *,
    actor: User,
    mine_only: bool = False,
    status_filter: RequestStatus | None = None,
    priority: RequestPriority | None = None,
    search: str | None = None,
) -> list[BypassRequest]:
    """List requests visible to `actor`, newest first.

    Users without `requests.view.all` only ever see their own requests.
    """
    query = BypassRequest.objects.all()
    if mine_only or not has_permission(actor.role, REQUESTS_VIEW_ALL):
        query = query.filter(col(BypassRequest.requester_id) == actor.id)
    if status_filter is not None:
        query = query.filter(col(BypassRequest.status) == status_filter.value)
    if priority is not None:
        query = query.filter(col(BypassRequest.priority) == priority.value)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(
                col(BypassRequest.request_code).ilike(pattern),
                col(BypassRequest.description).ilike(pattern),
            ),
        )
    return await query.order_by(col(BypassRequest.created_at).desc()).all(session)


async def list_pending_for_validator(
    session: AsyncSession,
    *,
    validator: User,
) -> list[BypassRequest]:
    """Pending requests whose priority tier `validator` may decide, oldest deadline first."""
    granted = permissions_for_role(validator.role)
    priorities = [
        priority for priority in RequestPriority if validation_permission_for(priority) in granted
    ]
    if not priorities:
        return []
    return await (
        BypassRequest.objects.filter(
            col(BypassRequest.status) == RequestStatus.PENDING.value,
            col(BypassRequest.priority).in_([p.value for p in priorities]),
        )
        .order_by(col(BypassRequest.end_time).asc())
        .all(session)
    )
