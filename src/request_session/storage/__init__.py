"""Storage driver subpackage.

All drivers implement the ``Driver`` ABC.  Optional drivers guard their
third-party imports so that the package remains installable without
those extras.

Public surface
--------------
- Driver          — abstract base class
- InMemoryDriver  — in-process dict with per-session asyncio locks
- SQLiteDriver    — cross-process driver over one SQLite file (requires aiosqlite)
- RedisDriver     — distributed driver (requires redis>=5)
"""
from __future__ import annotations

from request_session.storage.base import Driver
from request_session.storage.memory import InMemoryDriver

__all__ = [
    "Driver",
    "InMemoryDriver",
]

# SQLiteDriver — guarded by the aiosqlite dependency
try:
    import aiosqlite as _aiosqlite  # noqa: F401

    from request_session.storage.sqlite import SQLiteDriver

    __all__ = [*__all__, "SQLiteDriver"]
except ImportError:
    pass

# RedisDriver — guarded by the redis[asyncio] dependency
try:
    import redis.asyncio as _redis_asyncio  # noqa: F401

    from request_session.storage.redis import RedisDriver

    __all__ = [*__all__, "RedisDriver"]
except ImportError:
    pass
