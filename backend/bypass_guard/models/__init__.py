"""Model exports for SQLAlchemy/SQLModel metadata discovery."""

from bypass_guard.models.audit_entries import AuditEntry
from bypass_guard.models.bypass_requests import BypassRequest
from bypass_guard.models.equipment import Equipment
from bypass_guard.models.sensors import Sensor
from bypass_guard.models.users import User
from bypass_guard.models.zones import Zone

__all__ = [
    "AuditEntry",
    "BypassRequest",
    "Equipment",
    "Sensor",
    "User",
    "Zone",
]
