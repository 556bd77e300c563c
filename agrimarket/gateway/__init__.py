"""Data gateway: row queries, writes and realtime change channels."""

from .base import DataGateway, TableQuery
from .realtime import ChannelRegistry, ChangeEvent, Subscription, INSERT, UPDATE
from .sql_gateway import SQLGateway

__all__ = [
    "DataGateway",
    "TableQuery",
    "ChannelRegistry",
    "ChangeEvent",
    "Subscription",
    "INSERT",
    "UPDATE",
    "SQLGateway",
]
