"""Bypass request model tracking the approval lifecycle of a sensor bypass."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column
from sqlmodel import Field

from bypass_guard.core.time import utcnow
from bypass_guard.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class BypassRequest(QueryModel, table=True):
    """Request to temporarily disable one sensor for a bounded time window."""

    __tablename__ = "bypass_requests"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    request_code: str = Field(index=True, unique=True)  # BR-YYYY-NNN
    requester_id: UUID = Field(foreign_key="users.id", index=True)
    equipment_id: UUID = Field(foreign_key="equipment.id", index=True)
    sensor_id: UUID = Field(foreign_key="sensors.id", index=True)

    title: str = Field(index=True)  # reason key, see RequestReason
    description: str = Field(default="")
    priority: str = Field(default="medium", index=True)  # low | medium | high
    safety_impact: str = Field(default="medium")
    operational_impact: str = Field(default="medium")
    environmental_impact: str = Field(default="medium")
    mitigation_measures: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    contingency_plan: str | None = None
    validation_required_by_role: str = Field(default="supervisor")

    start_time: datetime
    end_time: datetime = Field(index=True)

    status: str = Field(default="pending", index=True)  # pending | approved | rejected | cancelled
    validated_by_id: UUID | None = Field(default=None, foreign_key="users.id", index=True)
    validated_at: datetime | None = None
    rejection_reason: str | None = None
    validation_comment: str | None = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
