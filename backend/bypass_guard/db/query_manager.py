"""Small chainable query helpers exposed on models as `Model.objects`."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from sqlmodel import SQLModel, col, select

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession
    from sqlmodel.sql.expression import SelectOfScalar

ModelT = TypeVar("ModelT", bound=SQLModel)


@dataclass(frozen=True)
class QuerySet(Generic[ModelT]):
    """Immutable wrapper around a `select(Model)` statement."""

    model: type[ModelT]
    statement: SelectOfScalar[ModelT]

    def filter(self, *criteria: Any) -> QuerySet[ModelT]:
        return QuerySet(self.model, self.statement.where(*criteria))

    def order_by(self, *ordering: Any) -> QuerySet[ModelT]:
        return QuerySet(self.model, self.statement.order_by(*ordering))

    async def all(self, session: AsyncSession) -> list[ModelT]:
        return list(await session.exec(self.statement))

    async def first(self, session: AsyncSession) -> ModelT | None:
        return (await session.exec(self.statement)).first()


class ModelManager(Generic[ModelT]):
    """Entry point for building `QuerySet`s for one model class."""

    def __init__(self, model: type[ModelT]) -> None:
        self.model = model

    def all(self) -> QuerySet[ModelT]:
        return QuerySet(self.model, select(self.model))

    def filter(self, *criteria: Any) -> QuerySet[ModelT]:
        return self.all().filter(*criteria)

    def by_id(self, obj_id: object) -> QuerySet[ModelT]:
        return self.by_field("id", obj_id)

    def by_field(self, field_name: str, value: object) -> QuerySet[ModelT]:
        return self.filter(col(getattr(self.model, field_name)) == value)
