"""Schemas for bypass request API payloads."""

from __future__ import annotations

from datetime import datetime, timedelta
from uuid import UUID

from pydantic import Field, field_validator
from sqlmodel import SQLModel

from bypass_guard.core.time import to_naive_utc
from bypass_guard.models.enums import (
    ImpactLevel,
    RequestPriority,
    RequestReason,
    RequestStatus,
    ValidationDecision,
)

RUNTIME_ANNOTATION_TYPES = (datetime, UUID)
MAX_ESTIMATED_DURATION_HOURS = 24 * 7


class BypassRequestCreate(SQLModel):
    """Payload for submitting a new bypass request.

    Provide either `end_time` or `estimated_duration_hours`; when both are
    given, `end_time` wins.
    """

    title: RequestReason
    description: str = Field(default="", max_length=5000)
    priority: RequestPriority = RequestPriority.MEDIUM
    equipment_id: UUID
    sensor_id: UUID
    start_time: datetime
    end_time: datetime | None = None
    estimated_duration_hours: float | None = Field(
        default=None,
        gt=0,
        le=MAX_ESTIMATED_DURATION_HOURS,
    )
    safety_impact: ImpactLevel = ImpactLevel.MEDIUM
    operational_impact: ImpactLevel = ImpactLevel.MEDIUM
    environmental_impact: ImpactLevel = ImpactLevel.MEDIUM
    mitigation_measures: list[str] = Field(default_factory=list)
    contingency_plan: str | None = Field(default=None, max_length=5000)
    safety_acknowledged: bool = False
    responsibility_acknowledged: bool = False

    @field_validator("start_time", "end_time")
    @classmethod
    def _naive_utc(cls, value: datetime | None) -> datetime | None:
        return to_naive_utc(value) if value is not None else None

    def resolved_end_time(self) -> datetime | None:
        if self.end_time is not None:
            return self.end_time
        if self.estimated_duration_hours is not None:
            return self.start_time + timedelta(hours=self.estimated_duration_hours)
        return None

    def cleaned_mitigation_measures(self) -> list[str]:
        return [measure.strip() for measure in self.mitigation_measures if measure.strip()]


class BypassRequestUpdate(SQLModel):
    """Partial edit of a still-pending request; omitted fields are left as they are."""

    title: RequestReason | None = None
    description: str | None = Field(default=None, max_length=5000)
    priority: RequestPriority | None = None
    equipment_id: UUID | None = None
    sensor_id: UUID | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    safety_impact: ImpactLevel | None = None
    operational_impact: ImpactLevel | None = None
    environmental_impact: ImpactLevel | None = None
    mitigation_measures: list[str] | None = None
    contingency_plan: str | None = Field(default=None, max_length=5000)

    @field_validator("start_time", "end_time")
    @classmethod
    def _naive_utc(cls, value: datetime | None) -> datetime | None:
        return to_naive_utc(value) if value is not None else None

    def changes(self) -> dict[str, object]:
        """Fields the caller actually supplied, with enums reduced to their stored values."""
        changed: dict[str, object] = {}
        for name, value in self.model_dump(exclude_unset=True, exclude_none=True).items():
            if name == "mitigation_measures":
                value = [measure.strip() for measure in value if measure.strip()]
            elif name == "description":
                value = value.strip()
            changed[name] = getattr(value, "value", value)
        return changed


class BypassRequestValidate(SQLModel):
    """Validator decision on a pending request.

    `rejection_reason` doubles as the validation comment for approvals.
    """

    validation_status: ValidationDecision
    rejection_reason: str = Field(default="RAS", max_length=1000)


class BypassRequestRead(SQLModel):
    """Bypass request payload returned by read endpoints."""

    id: UUID
    request_code: str
    requester_id: UUID
    equipment_id: UUID
    sensor_id: UUID
    title: str
    description: str
    priority: str
    safety_impact: str
    operational_impact: str
    environmental_impact: str
    mitigation_measures: list[str]
    contingency_plan: str | None = None
    validation_required_by_role: str
    start_time: datetime
    end_time: datetime
    status: RequestStatus
    validated_by_id: UUID | None = None
    validated_at: datetime | None = None
    rejection_reason: str | None = None
    validation_comment: str | None = None
    created_at: datetime
    updated_at: datetime


class ReactivationCandidateRead(SQLModel):
    """Overdue approved bypass whose sensor still needs reactivation."""

    request: BypassRequestRead
    sensor_name: str
    sensor_status: str
    equipment_name: str
    requester_name: str
