"""
Base Repository Pattern

Purpose
-------
Type-safe, generic data access over SQLAlchemy 2.0 async sessions.
Repositories hold query construction; services hold rules and transactions.

Design Notes
------------
- Every method takes the caller's session; repositories never open or
  commit transactions.
- ``for_update=True`` adds ``SELECT ... FOR UPDATE`` for reads that decide
  a write.
- Each call logs one debug line tagged with the model name.

Usage
-----
    class PoemRepository(BaseRepository[Poem]):
        async def find_by_theme(self, session, theme_id: str) -> list[Poem]:
            return await self.find_many_where(session, Poem.theme_id == theme_id)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import select

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Generic repository for one model class.

    Args:
        model_class: The SQLAlchemy model class
        logger: Structured logger instance
    """

    def __init__(self, model_class: Type[T], logger: Logger) -> None:
        self.model_class = model_class
        self.log = logger

    def _trace(self, operation: str, **context: Any) -> None:
        name = self.model_class.__name__
        self.log.debug(
            f"Repository.{operation}: {name}",
            extra={"model": name, **context},
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(
        self,
        session: AsyncSession,
        id_value: Any,
        for_update: bool = False,
    ) -> Optional[T]:
        """Get a single record by primary key."""
        stmt = select(self.model_class).where(self.model_class.id == id_value)  # type: ignore[attr-defined]
        if for_update:
            stmt = stmt.with_for_update()

        result = await session.execute(stmt)
        instance = result.scalar_one_or_none()

        self._trace("get", id=id_value, found=instance is not None, locked=for_update)
        return instance

    async def get_many(self, session: AsyncSession, id_values: Sequence[Any]) -> List[T]:
        """
        Get records by primary keys. Missing ids are skipped.
        """
        if not id_values:
            return []

        stmt = select(self.model_class).where(self.model_class.id.in_(list(id_values)))  # type: ignore[attr-defined]
        result = await session.execute(stmt)
        instances = list(result.scalars().all())

        self._trace("get_many", requested_count=len(id_values), found_count=len(instances))
        return instances

    async def find_one_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        for_update: bool = False,
    ) -> Optional[T]:
        """
        Find a single record matching conditions.

        Args:
            session: Database session
            *conditions: SQLAlchemy filter conditions
            for_update: If True, use SELECT FOR UPDATE
        """
        stmt = select(self.model_class).where(*conditions)
        if for_update:
            stmt = stmt.with_for_update()

        result = await session.execute(stmt)
        instance = result.scalar_one_or_none()

        self._trace("find_one_where", found=instance is not None, locked=for_update)
        return instance

    async def find_many_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        order_by: Optional[Sequence[Any]] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        for_update: bool = False,
    ) -> List[T]:
        """
        Find records matching conditions.

        Args:
            session: Database session
            *conditions: SQLAlchemy filter conditions
            order_by: Optional ORDER BY expressions
            limit: Optional maximum number of results
            offset: Optional number of rows to skip
            for_update: If True, use SELECT FOR UPDATE
        """
        stmt = select(self.model_class).where(*conditions)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        if for_update:
            stmt = stmt.with_for_update()

        result = await session.execute(stmt)
        instances = list(result.scalars().all())

        self._trace(
            "find_many_where",
            found_count=len(instances),
            limit=limit,
            offset=offset,
            locked=for_update,
        )
        return instances

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add(self, session: AsyncSession, instance: T) -> T:
        session.add(instance)
        self._trace("add", id=getattr(instance, "id", None))
        return instance

    async def delete(self, session: AsyncSession, instance: T) -> None:
        await session.delete(instance)
        self._trace("delete", id=getattr(instance, "id", None))

    async def flush(self, session: AsyncSession) -> None:
        """Flush pending changes so constraint violations surface here."""
        await session.flush()
        self._trace("flush")
