"""
Realtime change channels.

Every subscriber owns exactly one Subscription handle, scoped to a table and
an equality filter. Writers publish ChangeEvents through the registry; each
matching open subscription receives its own copy, in publish order.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from agrimarket.utils.logger import realtime_logger

logger = logging.getLogger(__name__)

INSERT = "insert"
UPDATE = "update"


def _same(left: Any, right: Any) -> bool:
    # UUID columns may be compared against their string form
    return left == right or (left is not None and right is not None and str(left) == str(right))


@dataclass
class ChangeEvent:
    """A row-level change notification."""
    kind: str  # "insert" or "update"
    table: str
    record: Dict[str, Any]
    timestamp: datetime = field(default_factory=datetime.utcnow)


class Subscription:
    """
    Handle for one live subscription.

    Iterate it with ``async for`` to receive events; iteration ends once the
    handle is closed. Closing is idempotent and must happen when the owning
    view goes away.
    """

    def __init__(self, registry: "ChannelRegistry", table: str, filters: Dict[str, Any]):
        self.registry = registry
        self.table = table
        self.filters = filters
        self.closed = False
        self._queue: asyncio.Queue = asyncio.Queue()

    def matches(self, table: str, record: Dict[str, Any]) -> bool:
        if self.closed or table != self.table:
            return False
        return all(_same(record.get(key), value) for key, value in self.filters.items())

    def deliver(self, event: ChangeEvent):
        if not self.closed:
            self._queue.put_nowait(event)

    def pending(self) -> int:
        return self._queue.qsize()

    async def get(self) -> Optional[ChangeEvent]:
        """Next event, or None once the subscription is closed."""
        if self.closed and self._queue.empty():
            return None
        event = await self._queue.get()
        return event

    def close(self):
        if self.closed:
            return
        self.closed = True
        self.registry.remove(self)
        # Wake up a consumer blocked in get()
        self._queue.put_nowait(None)

    def __aiter__(self):
        return self

    async def __anext__(self) -> ChangeEvent:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.close()


class ChannelRegistry:
    """Registry of open subscriptions, grouped by table."""

    def __init__(self):
        self.subscriptions: Dict[str, List[Subscription]] = {}

    def subscribe(self, table: str, **filters: Any) -> Subscription:
        subscription = Subscription(self, table, filters)
        self.subscriptions.setdefault(table, []).append(subscription)
        realtime_logger.debug(
            "Subscription opened", table=table, filters=filters, open=self.count(table)
        )
        return subscription

    def remove(self, subscription: Subscription):
        table_subs = self.subscriptions.get(subscription.table, [])
        if subscription in table_subs:
            table_subs.remove(subscription)
        if not table_subs:
            self.subscriptions.pop(subscription.table, None)
        realtime_logger.debug(
            "Subscription closed", table=subscription.table, open=self.count(subscription.table)
        )

    def count(self, table: Optional[str] = None) -> int:
        if table is not None:
            return len(self.subscriptions.get(table, []))
        return sum(len(subs) for subs in self.subscriptions.values())

    def publish(self, table: str, kind: str, record: Dict[str, Any]) -> int:
        """Fan an event out to matching subscriptions. Returns the delivery count."""
        delivered = 0
        for subscription in list(self.subscriptions.get(table, [])):
            if subscription.matches(table, record):
                subscription.deliver(ChangeEvent(kind=kind, table=table, record=dict(record)))
                delivered += 1
        if delivered:
            logger.debug("Published %s on %s to %d subscriber(s)", kind, table, delivered)
        return delivered
