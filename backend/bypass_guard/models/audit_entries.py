"""Append-only audit log model for request and sensor actions."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column
from sqlmodel import Field

from bypass_guard.core.time import utcnow
from bypass_guard.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class AuditEntry(QueryModel, table=True):
    """Append-only audit log entry written alongside the change it describes."""

    __tablename__ = "audit_entries"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    actor_id: UUID | None = Field(default=None, index=True)  # None for system actions
    actor_type: str = Field(index=True)  # human | system
    action: str = Field(index=True)
    target_type: str = Field(default="")
    target_id: UUID | None = Field(default=None, index=True)
    payload: dict[str, object] | None = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=utcnow)
