"""Safety sensor model."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlmodel import Field

from bypass_guard.core.time import utcnow
from bypass_guard.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class Sensor(QueryModel, table=True):
    """Sensor attached to an equipment; `status` flips to bypassed on approval."""

    __tablename__ = "sensors"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    equipment_id: UUID = Field(foreign_key="equipment.id", index=True)
    code: str = Field(index=True, unique=True)
    name: str
    sensor_type: str = Field(default="")
    # active | bypassed | maintenance | faulty | calibration
    status: str = Field(default="active", index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
