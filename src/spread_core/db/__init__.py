"""Database layer — engine, session factory, ORM base."""

from spread_core.db.base import Base
from spread_core.db.engine import dispose_engine, get_sessionmaker, init_engine

__all__ = ["Base", "dispose_engine", "get_sessionmaker", "init_engine"]
