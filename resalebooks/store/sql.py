"""
SQLAlchemy Record Store

Implements the record store contract over async SQLAlchemy sessions. Driver
failures are translated into the engine's error taxonomy:

- IntegrityError -> Conflict
- any other SQLAlchemyError / OSError -> StoreUnavailable
- missing or foreign row on update/delete -> NotFound
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, List, Optional, Type
import uuid

import structlog
from sqlalchemy import Date, Uuid, func, inspect as sa_inspect, literal, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from resalebooks.database.connection import session_scope
from resalebooks.database.models import Base, DATE_COLUMNS, OwnerScope, TABLES
from resalebooks.errors import (
    BooksError,
    Conflict,
    InvalidInput,
    NotFound,
    StoreUnavailable,
)
from resalebooks.store.base import Query, RecordStore, Row, coerce_date

logger = structlog.get_logger(__name__)

# Columns callers may never write directly
PROTECTED_COLUMNS = {"id", "owner_id", "scope", "created_at"}


class SqlRecordStore(RecordStore):
    """
    Record store backed by a SQL database.

    Example:
        store = SqlRecordStore(get_session_factory(), actor_id="user-1")
        rows = await store.select("sales", Query(date_range=window, limit=5000))
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], actor_id: str):
        super().__init__(actor_id)
        self._session_factory = session_factory

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncGenerator[AsyncSession, None]:
        try:
            async with session_scope(self._session_factory) as session:
                yield session
        except BooksError:
            raise
        except IntegrityError as e:
            logger.info("Store rejected write", operation=operation, error=str(e.orig))
            raise Conflict(str(e.orig), operation=operation) from e
        except (SQLAlchemyError, OSError) as e:
            logger.error("Store call failed", operation=operation, error=str(e), error_type=type(e).__name__)
            raise StoreUnavailable(f"Record store unavailable ({type(e).__name__})", operation=operation) from e

    @staticmethod
    def _model(table: str) -> Type[Base]:
        model = TABLES.get(table)
        if model is None:
            raise InvalidInput(f"Unknown table '{table}'")
        return model

    @staticmethod
    def _column(model: Type[Base], name: str):
        column = model.__table__.columns.get(name)
        if column is None:
            raise InvalidInput(f"Unknown column '{name}' on {model.__tablename__}")
        return column

    def _coerce(self, column, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(column.type, Uuid) and not isinstance(value, uuid.UUID):
            try:
                return uuid.UUID(str(value))
            except ValueError as e:
                raise InvalidInput(f"Invalid id for {column.name}: {value!r}") from e
        if isinstance(column.type, Date):
            return coerce_date(value, column.name)
        return value

    def _visible(self, model: Type[Base]):
        if "scope" in model.__table__.columns:
            return or_(model.scope == OwnerScope.SHARED, model.owner_id == self.actor_id)
        return model.owner_id == self.actor_id

    def _values(self, model: Type[Base], row: Row) -> Dict[str, Any]:
        values = {}
        for key, value in row.items():
            if key in PROTECTED_COLUMNS:
                continue
            values[key] = self._coerce(self._column(model, key), value)
        return values

    @staticmethod
    def _to_dict(obj: Base) -> Row:
        return {attr.key: getattr(obj, attr.key) for attr in sa_inspect(type(obj)).column_attrs}

    async def _owned(self, session: AsyncSession, model: Type[Base], row_id: Any, operation: str) -> Base:
        obj = await session.get(model, self._coerce(self._column(model, "id"), row_id))
        if obj is None or obj.owner_id != self.actor_id:
            raise NotFound(f"No {model.__tablename__} row with id {row_id}", operation=operation)
        return obj

    # ------------------------------------------------------------------
    # contract
    # ------------------------------------------------------------------

    async def select(self, table: str, query: Optional[Query] = None) -> List[Row]:
        query = query or Query()
        model = self._model(table)
        stmt = select(model).where(self._visible(model))

        if query.date_range is not None:
            date_column_name = DATE_COLUMNS.get(table)
            if date_column_name is None:
                raise InvalidInput(f"Table '{table}' has no date column")
            date_column = self._column(model, date_column_name)
            stmt = stmt.where(
                date_column >= query.date_range.start,
                date_column <= query.date_range.end,
            )

        for name, value in query.equality.items():
            column = self._column(model, name)
            if value is None:
                stmt = stmt.where(column.is_(None))
            else:
                stmt = stmt.where(column == self._coerce(column, value))

        for name, value in query.ilike.items():
            column = self._column(model, name)
            # Both sides folded by the backend, same as the lower(name) unique indexes
            # Fold both sides in SQL so lookups agree with the lower(name) unique indexes
            stmt = stmt.where(func.lower(column) == func.lower(literal(str(value))))

        for name, ascending in query.order:
            column = self._column(model, name)
            stmt = stmt.order_by(column.asc() if ascending else column.desc())

        if query.limit is not None:
            stmt = stmt.limit(query.limit)

        async with self._session(f"select {table}") as session:
            result = await session.execute(stmt)
            rows = [self._to_dict(obj) for obj in result.scalars().all()]

        logger.debug("Store select", table=table, rows=len(rows))
        return rows

    async def insert(self, table: str, row: Row) -> Row:
        model = self._model(table)
        values = self._values(model, row)
        values["owner_id"] = self.actor_id
        if "scope" in model.__table__.columns:
            values["scope"] = OwnerScope.PERSONAL

        async with self._session(f"insert {table}") as session:
            obj = model(**values)
            session.add(obj)
            await session.flush()
            await session.refresh(obj)
            stored = self._to_dict(obj)

        logger.debug("Store insert", table=table, id=str(stored["id"]))
        return stored

    async def update(self, table: str, row_id: Any, patch: Row) -> Row:
        model = self._model(table)
        values = self._values(model, patch)
        operation = f"update {table}"

        async with self._session(operation) as session:
            obj = await self._owned(session, model, row_id, operation)
            for key, value in values.items():
                setattr(obj, key, value)
            await session.flush()
            await session.refresh(obj)
            stored = self._to_dict(obj)

        logger.debug("Store update", table=table, id=str(row_id), fields=sorted(values))
        return stored

    async def delete(self, table: str, row_id: Any) -> None:
        model = self._model(table)
        operation = f"delete {table}"

        async with self._session(operation) as session:
            obj = await self._owned(session, model, row_id, operation)
            await session.delete(obj)

        logger.debug("Store delete", table=table, id=str(row_id))
