"""Shared SQLModel base class with the `objects` query manager."""

from __future__ import annotations

from typing import Any, ClassVar

from sqlmodel import SQLModel

from bypass_guard.db.query_manager import ModelManager


class _ManagerDescriptor:
    def __get__(self, instance: object, owner: type[Any]) -> ModelManager[Any]:
        return ModelManager(owner)


class QueryModel(SQLModel, table=False):
    """Base for table models; `Model.objects` builds chainable queries."""

    objects: ClassVar[_ManagerDescriptor] = _ManagerDescriptor()
