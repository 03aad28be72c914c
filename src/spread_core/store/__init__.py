"""Position stores — keyed persistence with optimistic concurrency."""

from spread_core.store.base import PositionStore
from spread_core.store.memory import InMemoryStore
from spread_core.store.sql import SqlStore

__all__ = ["InMemoryStore", "PositionStore", "SqlStore"]
