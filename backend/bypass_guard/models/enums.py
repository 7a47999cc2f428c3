"""String enums shared by models, schemas, and services."""

from __future__ import annotations

from enum import StrEnum


class RequestStatus(StrEnum):
    """Persisted lifecycle state of a bypass request."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class ValidationDecision(StrEnum):
    """Outcome a validator may record on a pending request."""

    APPROVED = "approved"
    REJECTED = "rejected"


class RequestReason(StrEnum):
    """Reason key stored in a request's `title`."""

    PREVENTIVE_MAINTENANCE = "preventive_maintenance"
    CORRECTIVE_MAINTENANCE = "corrective_maintenance"
    CALIBRATION = "calibration"
    TESTING = "testing"
    EMERGENCY_REPAIR = "emergency_repair"
    SYSTEM_UPGRADE = "system_upgrade"
    INVESTIGATION = "investigation"
    OTHER = "other"


class RequestPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ImpactLevel(StrEnum):
    VERY_LOW = "very_low"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"


class SensorStatus(StrEnum):
    ACTIVE = "active"
    BYPASSED = "bypassed"
    MAINTENANCE = "maintenance"
    FAULTY = "faulty"
    CALIBRATION = "calibration"


class EquipmentStatus(StrEnum):
    OPERATIONAL = "operational"
    MAINTENANCE = "maintenance"
    OUT_OF_SERVICE = "out_of_service"


class UserRole(StrEnum):
    USER = "user"
    SUPERVISOR = "supervisor"
    DIRECTOR = "director"
    ADMINISTRATOR = "administrator"
