"""Equipment model; a piece of plant hardware carrying one or more sensors."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlmodel import Field

from bypass_guard.core.time import utcnow
from bypass_guard.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class Equipment(QueryModel, table=True):
    """Equipment record whose status follows approved bypasses."""

    __tablename__ = "equipment"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    zone_id: UUID | None = Field(default=None, foreign_key="zones.id", index=True)
    code: str = Field(index=True, unique=True)
    name: str
    status: str = Field(default="operational", index=True)  # operational | maintenance | out_of_service
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
