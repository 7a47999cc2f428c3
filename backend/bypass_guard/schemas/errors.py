"""Structured error payload schema used by API responses."""

from __future__ import annotations

from pydantic import Field
from sqlmodel import SQLModel


class ErrorResponse(SQLModel):
    """Error body produced by the installed exception handlers."""

    detail: str | dict[str, object] | list[object] = Field(
        description="Human-readable message or validation error list.",
        examples=["Only pending requests can be validated"],
    )
    request_id: str | None = Field(
        default=None,
        description="Request correlation identifier injected by middleware.",
    )
