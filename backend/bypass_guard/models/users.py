"""User directory model (read-only for the approval workflow)."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlmodel import Field

from bypass_guard.core.time import utcnow
from bypass_guard.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class User(QueryModel, table=True):
    """Plant staff member who requests or validates bypasses."""

    __tablename__ = "users"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    full_name: str
    email: str = Field(index=True, unique=True)
    phone: str | None = Field(default=None)
    role: str = Field(default="user", index=True)  # user | supervisor | director | administrator
    created_at: datetime = Field(default_factory=utcnow)
