"""Database package: shared engine, session factory, Redis client."""

from app.db.base import Base, close_db, create_tables, get_session_factory, init_db, make_session_factory
from app.db.redis import close_redis, get_redis, init_redis

__all__ = [
    "Base",
    "close_db",
    "close_redis",
    "create_tables",
    "get_redis",
    "get_session_factory",
    "init_db",
    "init_redis",
    "make_session_factory",
]
