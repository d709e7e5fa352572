"""Database package: engine, RLS-scoped sessions and the Redis client."""

from stratix.db.base import Base, close_db, get_engine, get_session_factory, init_db
from stratix.db.redis import close_redis, get_redis, init_redis
from stratix.db.rls import set_user_context, with_user_context

__all__ = [
    "Base",
    "close_db",
    "close_redis",
    "get_engine",
    "get_redis",
    "get_session_factory",
    "init_db",
    "init_redis",
    "set_user_context",
    "with_user_context",
]
