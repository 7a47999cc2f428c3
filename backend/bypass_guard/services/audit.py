"""Audit logging service for request and sensor actions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from bypass_guard.core.time import utcnow
from bypass_guard.models.audit_entries import AuditEntry

if TYPE_CHECKING:
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

ACTOR_HUMAN = "human"
ACTOR_SYSTEM = "system"


async def record_audit(
    session: AsyncSession,
    *,
    actor_id: UUID | None,
    actor_type: str,
    action: str,
    target_type: str = "",
    target_id: UUID | None = None,
    payload: dict[str, object] | None = None,
    commit: bool = True,
) -> AuditEntry:
    """Create an append-only audit log entry."""
    entry = AuditEntry(
        actor_id=actor_id,
        actor_type=actor_type,
        action=action,
        target_type=target_type,
        target_id=target_id,
        payload=payload,
        created_at=utcnow(),
    )
    session.add(entry)
    if commit:
        await session.commit()
        await session.refresh(entry)
    return entry
