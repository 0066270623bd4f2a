"""Lightweight chainable query helpers bound to SQLModel table classes."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, TypeVar

from sqlalchemy import inspect as sa_inspect
from sqlmodel import SQLModel, select

if TYPE_CHECKING:
    from sqlalchemy.sql.elements import ColumnElement
    from sqlmodel.ext.asyncio.session import AsyncSession
    from sqlmodel.sql.expression import SelectOfScalar

ModelT = TypeVar("ModelT", bound=SQLModel)


class QuerySet(Generic[ModelT]):
    """Immutable wrapper around a `select()` statement for one model."""

    def __init__(self, model: type[ModelT], statement: SelectOfScalar[ModelT]) -> None:
        self.model = model
        self.statement = statement

    def _clone(self, statement: SelectOfScalar[ModelT]) -> QuerySet[ModelT]:
        return QuerySet(self.model, statement)

    def filter(self, *criteria: ColumnElement[bool]) -> QuerySet[ModelT]:
        return self._clone(self.statement.where(*criteria))

    def filter_by(self, **kwargs: Any) -> QuerySet[ModelT]:
        return self._clone(self.statement.filter_by(**kwargs))

    def order_by(self, *clauses: Any) -> QuerySet[ModelT]:
        return self._clone(self.statement.order_by(*clauses))

    def join(self, target: Any, onclause: Any) -> QuerySet[ModelT]:
        return self._clone(self.statement.join(target, onclause))

    def limit(self, count: int) -> QuerySet[ModelT]:
        return self._clone(self.statement.limit(count))

    async def all(self, session: AsyncSession) -> list[ModelT]:
        return list(await session.exec(self.statement))

    async def first(self, session: AsyncSession) -> ModelT | None:
        return (await session.exec(self.statement)).first()

    async def exists(self, session: AsyncSession) -> bool:
        return await self.limit(1).first(session) is not None


class ModelManager(Generic[ModelT]):
    """Entry point for building querysets, exposed as `Model.objects`."""

    def __init__(self, model: type[ModelT]) -> None:
        self.model = model

    def all(self) -> QuerySet[ModelT]:
        return QuerySet(self.model, select(self.model))

    def filter(self, *criteria: ColumnElement[bool]) -> QuerySet[ModelT]:
        return self.all().filter(*criteria)

    def filter_by(self, **kwargs: Any) -> QuerySet[ModelT]:
        return self.all().filter_by(**kwargs)

    def by_id(self, obj_id: object) -> QuerySet[ModelT]:
        pk_columns = sa_inspect(self.model).primary_key
        if len(pk_columns) != 1:
            msg = f"{self.model.__name__} does not have a single-column primary key"
            raise TypeError(msg)
        return self.filter(pk_columns[0] == obj_id)


class ManagerDescriptor:
    """Class-level descriptor returning a manager for the owning model."""

    def __get__(self, instance: object, owner: type[ModelT]) -> ModelManager[ModelT]:
        return ModelManager(owner)
