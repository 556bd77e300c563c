"""
SQLModel-backed data gateway.

Stands in for the hosted backend: tables live in the configured database and
every committed insert or update is published on the in-process channel
registry, the same way the hosted service pushes row changes to subscribers.
Session work runs in worker threads; publishing stays on the event loop.
"""

import asyncio
import logging
import threading
from contextlib import nullcontext
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Type, TypeVar

from sqlalchemy import func
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, select

from agrimarket.errors import PersistenceError
from agrimarket.gateway.base import DataGateway, ModelT, TableQuery
from agrimarket.gateway.realtime import ChannelRegistry, Subscription, INSERT, UPDATE
from agrimarket.utils.metrics import metrics_collector

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _table_name(model: Type[SQLModel]) -> str:
    return model.__tablename__


def _primary_key_names(model: Type[SQLModel]) -> List[str]:
    return [column.name for column in model.__table__.primary_key.columns]


class SQLGateway(DataGateway):
    """Data gateway over a SQLAlchemy engine plus a realtime channel registry."""

    def __init__(self, engine: Engine, channels: Optional[ChannelRegistry] = None):
        self.engine = engine
        self.channels = channels or ChannelRegistry()
        # SQLite connections are not safe for concurrent sessions from worker threads
        self._lock = threading.Lock() if engine.dialect.name == "sqlite" else nullcontext()

    def _session(self) -> Session:
        return Session(self.engine, expire_on_commit=False)

    def _fail(self, action: str, model: Type[SQLModel], error: Exception) -> PersistenceError:
        metrics_collector.persistence_error()
        logger.error(f"Gateway {action} on {_table_name(model)} failed: {str(error)}")
        return PersistenceError(f"Could not {action} {_table_name(model)}")

    def _publish(self, kind: str, row: SQLModel):
        self.channels.publish(_table_name(type(row)), kind, row.model_dump())

    def _build_statement(self, query: TableQuery):
        model = query.model
        statement = select(model)

        for op, column_name, value in query.filters:
            column = getattr(model, column_name)
            if op == "eq":
                statement = statement.where(column == value)
            elif op == "neq":
                statement = statement.where(column != value)
            elif op == "gt":
                statement = statement.where(column > value)
            elif op == "gte":
                statement = statement.where(column >= value)
            elif op == "lt":
                statement = statement.where(column < value)
            elif op == "lte":
                statement = statement.where(column <= value)
            elif op == "ilike":
                statement = statement.where(func.lower(column).like(value.lower()))
            else:
                raise ValueError(f"Unsupported filter operator: {op}")

        for column_name, descending in query.ordering:
            column = getattr(model, column_name)
            statement = statement.order_by(column.desc() if descending else column)

        if query.row_limit is not None:
            statement = statement.limit(query.row_limit)

        return statement

    def _in_session(self, work: Callable[[Session], T]) -> T:
        with self._lock:
            with self._session() as session:
                return work(session)

    async def _run(self, work: Callable[[Session], T]) -> T:
        """Run a session block in a worker thread so the event loop keeps serving."""
        return await asyncio.to_thread(self._in_session, work)

    async def fetch(self, query: TableQuery) -> List[Any]:
        statement = self._build_statement(query)
        try:
            return await self._run(lambda session: list(session.exec(statement).all()))
        except SQLAlchemyError as e:
            raise self._fail("read", query.model, e) from e

    async def get(self, model: Type[ModelT], row_id: Any) -> Optional[ModelT]:
        try:
            return await self._run(lambda session: session.get(model, row_id))
        except SQLAlchemyError as e:
            raise self._fail("read", model, e) from e

    async def insert(self, row: ModelT) -> ModelT:
        def work(session: Session) -> ModelT:
            session.add(row)
            session.commit()
            session.refresh(row)
            return row

        try:
            await self._run(work)
        except SQLAlchemyError as e:
            raise self._fail("insert into", type(row), e) from e

        self._publish(INSERT, row)
        return row

    async def update(self, model: Type[ModelT], row_id: Any, values: Dict[str, Any]) -> ModelT:
        def work(session: Session) -> ModelT:
            row = session.get(model, row_id)
            if row is None:
                raise PersistenceError(f"{_table_name(model)} row {row_id} not found")
            for key, value in values.items():
                setattr(row, key, value)
            session.add(row)
            session.commit()
            session.refresh(row)
            return row

        try:
            row = await self._run(work)
        except SQLAlchemyError as e:
            raise self._fail("update", model, e) from e

        self._publish(UPDATE, row)
        return row

    async def upsert(self, row: ModelT, on_conflict: Sequence[str]) -> ModelT:
        model = type(row)
        primary_keys = _primary_key_names(model)
        statement = select(model)
        for column_name in on_conflict:
            statement = statement.where(getattr(model, column_name) == getattr(row, column_name))

        def work(session: Session) -> Tuple[str, ModelT]:
            existing = session.exec(statement).first()
            if existing is None:
                session.add(row)
                kind, stored = INSERT, row
            else:
                for key, value in row.model_dump().items():
                    if key not in primary_keys and value is not None:
                        setattr(existing, key, value)
                session.add(existing)
                kind, stored = UPDATE, existing
            session.commit()
            session.refresh(stored)
            return kind, stored

        try:
            kind, stored = await self._run(work)
        except SQLAlchemyError as e:
            raise self._fail("upsert into", model, e) from e

        self._publish(kind, stored)
        return stored

    def subscribe(self, model: Type[SQLModel], **filters: Any) -> Subscription:
        return self.channels.subscribe(_table_name(model), **filters)
