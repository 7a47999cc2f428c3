"""Bypass request endpoints: submission, edits, validation, cancellation, and listings."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from bypass_guard.api.deps import CURRENT_USER_DEP, SESSION_DEP
from bypass_guard.core.permissions import REQUESTS_VIEW_ALL, has_permission
from bypass_guard.core.time import utcnow
from bypass_guard.models.enums import RequestPriority, RequestStatus
from bypass_guard.models.users import User
from bypass_guard.schemas.bypass_requests import (
    BypassRequestCreate,
    BypassRequestRead,
    BypassRequestUpdate,
    BypassRequestValidate,
    ReactivationCandidateRead,
)
from bypass_guard.services.bypass_requests import (
    cancel_request,
    get_request_for_actor,
    list_pending_for_validator,
    list_requests,
    submit_request,
    update_request,
    validate_request,
)
from bypass_guard.services.sensor_reactivation import select_reactivation_candidates

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

    from bypass_guard.models.bypass_requests import BypassRequest

router = APIRouter(prefix="/requests", tags=["requests"])
STATUS_QUERY = Query(default=None, alias="status")
PRIORITY_QUERY = Query(default=None)
SEARCH_QUERY = Query(default=None, max_length=200)


def _to_read(request: BypassRequest) -> BypassRequestRead:
    return BypassRequestRead.model_validate(request, from_attributes=True)


@router.post("", response_model=BypassRequestRead, status_code=status.HTTP_201_CREATED)
async def create_bypass_request(
    payload: BypassRequestCreate,
    session: AsyncSession = SESSION_DEP,
    actor: User = CURRENT_USER_DEP,
) -> BypassRequestRead:
    """Submit a new bypass request for approval."""
    request = await submit_request(session, requester=actor, payload=payload)
    return _to_read(request)


@router.get("", response_model=list[BypassRequestRead])
async def list_bypass_requests(
    status_filter: RequestStatus | None = STATUS_QUERY,
    priority: RequestPriority | None = PRIORITY_QUERY,
    search: str | None = SEARCH_QUERY,
    session: AsyncSession = SESSION_DEP,
    actor: User = CURRENT_USER_DEP,
) -> list[BypassRequestRead]:
    """List requests visible to the caller, newest first."""
    requests = await list_requests(
        session,
        actor=actor,
        status_filter=status_filter,
        priority=priority,
        search=search,
    )
    return [_to_read(request) for request in requests]


@router.get("/mine", response_model=list[BypassRequestRead])
async def list_my_bypass_requests(
    status_filter: RequestStatus | None = STATUS_QUERY,
    session: AsyncSession = SESSION_DEP,
    actor: User = CURRENT_USER_DEP,
) -> list[BypassRequestRead]:
    """List the caller's own requests."""
    requests = await list_requests(
        session,
        actor=actor,
        mine_only=True,
        status_filter=status_filter,
    )
    return [_to_read(request) for request in requests]


@router.get("/pending", response_model=list[BypassRequestRead])
async def list_pending_bypass_requests(
    session: AsyncSession = SESSION_DEP,
    actor: User = CURRENT_USER_DEP,
) -> list[BypassRequestRead]:
    """List pending requests the caller is allowed to validate."""
    requests = await list_pending_for_validator(session, validator=actor)
    return [_to_read(request) for request in requests]


@router.get("/overdue", response_model=list[ReactivationCandidateRead])
async def list_overdue_bypasses(
    session: AsyncSession = SESSION_DEP,
    actor: User = CURRENT_USER_DEP,
) -> list[ReactivationCandidateRead]:
    """List approved bypasses past their end time whose sensor is still bypassed."""
    if not has_permission(actor.role, REQUESTS_VIEW_ALL):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Missing permission: {REQUESTS_VIEW_ALL}",
        )
    candidates = await select_reactivation_candidates(session, now=utcnow())
    return [
        ReactivationCandidateRead(
            request=_to_read(candidate.request),
            sensor_name=candidate.sensor.name,
            sensor_status=candidate.sensor.status,
            equipment_name=candidate.equipment.name,
            requester_name=candidate.requester.full_name,
        )
        for candidate in candidates
    ]


@router.get("/{request_id}", response_model=BypassRequestRead)
async def get_bypass_request(
    request_id: UUID,
    session: AsyncSession = SESSION_DEP,
    actor: User = CURRENT_USER_DEP,
) -> BypassRequestRead:
    """Fetch one request the caller may see."""
    request = await get_request_for_actor(session, request_id=request_id, actor=actor)
    return _to_read(request)


@router.put("/{request_id}", response_model=BypassRequestRead)
async def update_bypass_request(
    request_id: UUID,
    payload: BypassRequestUpdate,
    session: AsyncSession = SESSION_DEP,
    actor: User = CURRENT_USER_DEP,
) -> BypassRequestRead:
    """Edit a request that is still pending."""
    request = await update_request(session, request_id=request_id, actor=actor, payload=payload)
    return _to_read(request)


@router.put("/{request_id}/validate", response_model=BypassRequestRead)
async def validate_bypass_request(
    request_id: UUID,
    payload: BypassRequestValidate,
    session: AsyncSession = SESSION_DEP,
    actor: User = CURRENT_USER_DEP,
) -> BypassRequestRead:
    """Approve or reject a pending request."""
    request = await validate_request(
        session,
        request_id=request_id,
        validator=actor,
        decision=payload.validation_status,
        comment=payload.rejection_reason,
    )
    return _to_read(request)


@router.post("/{request_id}/cancel", response_model=BypassRequestRead)
async def cancel_bypass_request(
    request_id: UUID,
    session: AsyncSession = SESSION_DEP,
    actor: User = CURRENT_USER_DEP,
) -> BypassRequestRead:
    """Cancel a pending request."""
    request = await cancel_request(session, request_id=request_id, actor=actor)
    return _to_read(request)
