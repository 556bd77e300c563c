"""
Data Gateway contract.

The gateway owns every table, the row-level change notifications and the
auth sessions. Views only hold a read/subscribe handle plus permission to
insert and update the rows they touch. Every read and write is awaited, and
every failure surfaces as PersistenceError.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type, TypeVar

from sqlmodel import SQLModel

from agrimarket.gateway.realtime import Subscription

ModelT = TypeVar("ModelT", bound=SQLModel)

FILTER_OPERATORS = ("eq", "neq", "gt", "gte", "lt", "lte", "ilike")


@dataclass
class TableQuery:
    """Fluent row query, executed by the gateway it was created from."""
    gateway: "DataGateway"
    model: Type[SQLModel]
    filters: List[Tuple[str, str, Any]] = field(default_factory=list)
    ordering: List[Tuple[str, bool]] = field(default_factory=list)
    row_limit: Optional[int] = None

    def _add(self, op: str, column: str, value: Any) -> "TableQuery":
        self.filters.append((op, column, value))
        return self

    def eq(self, column: str, value: Any) -> "TableQuery":
        return self._add("eq", column, value)

    def neq(self, column: str, value: Any) -> "TableQuery":
        return self._add("neq", column, value)

    def gt(self, column: str, value: Any) -> "TableQuery":
        return self._add("gt", column, value)

    def gte(self, column: str, value: Any) -> "TableQuery":
        return self._add("gte", column, value)

    def lt(self, column: str, value: Any) -> "TableQuery":
        return self._add("lt", column, value)

    def lte(self, column: str, value: Any) -> "TableQuery":
        return self._add("lte", column, value)

    def ilike(self, column: str, pattern: str) -> "TableQuery":
        return self._add("ilike", column, pattern)

    def order(self, column: str, descending: bool = False) -> "TableQuery":
        self.ordering.append((column, descending))
        return self

    def limit(self, count: int) -> "TableQuery":
        self.row_limit = count
        return self

    async def all(self) -> List[Any]:
        return await self.gateway.fetch(self)

    async def first(self) -> Optional[Any]:
        self.row_limit = 1
        rows = await self.gateway.fetch(self)
        return rows[0] if rows else None


class DataGateway(ABC):
    """Remote data gateway: row queries, writes and realtime subscriptions."""

    def table(self, model: Type[ModelT]) -> TableQuery:
        """Start a query against the table backing ``model``."""
        return TableQuery(gateway=self, model=model)

    @abstractmethod
    async def fetch(self, query: TableQuery) -> List[Any]:
        """Execute a query built with :meth:`table`."""

    @abstractmethod
    async def get(self, model: Type[ModelT], row_id: Any) -> Optional[ModelT]:
        """Fetch one row by primary key."""

    @abstractmethod
    async def insert(self, row: ModelT) -> ModelT:
        """Insert a row and return it as stored."""

    @abstractmethod
    async def update(self, model: Type[ModelT], row_id: Any, values: Dict[str, Any]) -> ModelT:
        """Patch the row with primary key ``row_id``."""

    @abstractmethod
    async def upsert(self, row: ModelT, on_conflict: Sequence[str]) -> ModelT:
        """Insert, or update the row sharing the ``on_conflict`` natural key."""

    @abstractmethod
    def subscribe(self, model: Type[SQLModel], **filters: Any) -> Subscription:
        """Open a realtime subscription on a table, filtered by equality."""
