"""Recipient lookup for WhatsApp notifications."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlmodel import col

from bypass_guard.models.users import User

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlmodel.ext.asyncio.session import AsyncSession

    from bypass_guard.models.enums import UserRole


def phone_of(user: User | None) -> str | None:
    """The user's phone number, or None when missing or blank."""
    if user is None:
        return None
    phone = (user.phone or "").strip()
    return phone or None


async def contactable_users(session: AsyncSession, roles: Iterable[UserRole]) -> list[User]:
    """Users holding any of `roles` who have a phone number on file."""
    role_values = sorted({role.value for role in roles})
    if not role_values:
        return []
    users = await (
        User.objects.filter(col(User.role).in_(role_values))
        .order_by(col(User.created_at).asc())
        .all(session)
    )
    return [user for user in users if phone_of(user)]
