"""Reusable FastAPI dependencies for sessions and caller identity.

Authentication happens upstream; the trusted gateway forwards the acting
user's id in `X-User-Id`. These dependencies only resolve that id to a
`User` row and never verify credentials themselves.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status

from bypass_guard.db.session import get_session
from bypass_guard.models.users import User

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

USER_ID_HEADER = "X-User-Id"
SESSION_DEP = Depends(get_session)


async def get_current_user(
    x_user_id: str | None = Header(default=None, alias=USER_ID_HEADER),
    session: AsyncSession = SESSION_DEP,
) -> User:
    """Resolve the acting user from the forwarded identity header."""
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    try:
        user_id = UUID(x_user_id.strip())
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid {USER_ID_HEADER} header",
        ) from exc
    user = await User.objects.by_id(user_id).first(session)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    return user


CURRENT_USER_DEP = Depends(get_current_user)
