"""Static role → permission table for bypass request workflows.

The table is built once at import and exposed read-only. Bump
`ROLE_PERMISSIONS_VERSION` whenever a grant changes so audit payloads can be
traced back to the policy that authorised them.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import TYPE_CHECKING

from bypass_guard.models.enums import RequestPriority, UserRole

if TYPE_CHECKING:
    from collections.abc import Mapping

ROLE_PERMISSIONS_VERSION = 1

REQUESTS_CREATE = "requests.create"
REQUESTS_VIEW_OWN = "requests.view.own"
REQUESTS_VIEW_ALL = "requests.view.all"
REQUESTS_UPDATE_OWN = "requests.update.own"
REQUESTS_DELETE_OWN = "requests.delete.own"
REQUESTS_VALIDATE_LEVEL1 = "requests.validate.level1"
REQUESTS_VALIDATE_LEVEL2 = "requests.validate.level2"
DASHBOARD_VIEW = "dashboard.view"
EQUIPMENT_VIEW = "equipment.view"
ZONES_VIEW = "zones.view"
SENSORS_VIEW = "sensors.view"
EQUIPMENT_MANAGE = "equipment.manage"
ZONES_MANAGE = "zones.manage"
SENSORS_MANAGE = "sensors.manage"
USERS_MANAGE = "users.manage"

_USER_GRANTS = {
    REQUESTS_CREATE,
    REQUESTS_VIEW_OWN,
    REQUESTS_UPDATE_OWN,
    REQUESTS_DELETE_OWN,
    DASHBOARD_VIEW,
}
_SUPERVISOR_GRANTS = _USER_GRANTS | {
    REQUESTS_VIEW_ALL,
    REQUESTS_VALIDATE_LEVEL1,
    EQUIPMENT_VIEW,
    ZONES_VIEW,
    SENSORS_VIEW,
}
_DIRECTOR_GRANTS = _SUPERVISOR_GRANTS | {
    REQUESTS_VALIDATE_LEVEL2,
    EQUIPMENT_MANAGE,
    ZONES_MANAGE,
    SENSORS_MANAGE,
}
_ADMINISTRATOR_GRANTS = _DIRECTOR_GRANTS | {USERS_MANAGE}

ROLE_PERMISSIONS: Mapping[UserRole, frozenset[str]] = MappingProxyType(
    {
        UserRole.USER: frozenset(_USER_GRANTS),
        UserRole.SUPERVISOR: frozenset(_SUPERVISOR_GRANTS),
        UserRole.DIRECTOR: frozenset(_DIRECTOR_GRANTS),
        UserRole.ADMINISTRATOR: frozenset(_ADMINISTRATOR_GRANTS),
    },
)

# Every priority is decided at the first validation tier.
PRIORITY_VALIDATION_PERMISSION: Mapping[RequestPriority, str] = MappingProxyType(
    {
        RequestPriority.LOW: REQUESTS_VALIDATE_LEVEL1,
        RequestPriority.MEDIUM: REQUESTS_VALIDATE_LEVEL1,
        RequestPriority.HIGH: REQUESTS_VALIDATE_LEVEL1,
    },
)

# Role recorded on the request as the tier expected to decide it.
PRIORITY_VALIDATION_ROLE: Mapping[RequestPriority, UserRole] = MappingProxyType(
    {
        RequestPriority.LOW: UserRole.SUPERVISOR,
        RequestPriority.MEDIUM: UserRole.SUPERVISOR,
        RequestPriority.HIGH: UserRole.SUPERVISOR,
    },
)

# Roles that receive pending-request reminders and reactivation advisories.
APPROVER_ROLES: frozenset[UserRole] = frozenset({UserRole.SUPERVISOR, UserRole.ADMINISTRATOR})


def permissions_for_role(role: UserRole | str) -> frozenset[str]:
    """Return the permission set granted to `role` (empty for unknown roles)."""
    try:
        return ROLE_PERMISSIONS[UserRole(role)]
    except ValueError:
        return frozenset()


def has_permission(role: UserRole | str, permission: str) -> bool:
    """Return whether `role` is granted `permission`."""
    return permission in permissions_for_role(role)


def roles_with_permission(permission: str) -> frozenset[UserRole]:
    """Return every role whose grant set includes `permission`."""
    return frozenset(role for role, grants in ROLE_PERMISSIONS.items() if permission in grants)


def validation_permission_for(priority: RequestPriority | str) -> str:
    """Return the permission a validator needs to decide a request of `priority`."""
    return PRIORITY_VALIDATION_PERMISSION[RequestPriority(priority)]
