"""Redis session storage driver — requires redis[asyncio] (guarded import).

Each session is stored as a JSON string under ``<key_prefix><session_id>``
and locked through a companion key ``<key_prefix><session_id>:lock`` that
holds a random ownership token.  Releasing, saving and renaming run as Lua
scripts so that a driver never deletes or moves a lock it does not own.

Classes
-------
- RedisDriver  — redis.asyncio-backed distributed driver
"""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
import time
from typing import Any

from request_session.errors import DriverError, LockTimeoutError
from request_session.storage.base import Driver

logger = logging.getLogger(__name__)

_REDIS_IMPORT_ERROR = (
    "RedisDriver requires the 'redis' package with asyncio support. "
    "Install it with: pip install redis  or  pip install 'request-session[redis]'"
)

_POLL_INTERVAL_SECONDS: float = 0.05

LOCK_SUFFIX = ":lock"

# KEYS[1] = lock key; ARGV[1] = token
RELEASE_LOCK_SCRIPT = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
end
return 0
"""

# KEYS[1] = data key, KEYS[2] = lock key; ARGV[1] = payload, ARGV[2] = ttl, ARGV[3] = token
SAVE_SCRIPT = """
redis.call('SET', KEYS[1], ARGV[1], 'EX', ARGV[2])
if ARGV[3] ~= '' and redis.call('GET', KEYS[2]) == ARGV[3] then
    redis.call('DEL', KEYS[2])
end
return 1
"""

# KEYS[1] = old data key, KEYS[2] = new data key,
# KEYS[3] = old lock key, KEYS[4] = new lock key; ARGV[1] = token
REGENERATE_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 1 then
    redis.call('RENAME', KEYS[1], KEYS[2])
end
if ARGV[1] ~= '' and redis.call('GET', KEYS[3]) == ARGV[1] then
    redis.call('RENAME', KEYS[3], KEYS[4])
end
return 1
"""


class RedisDriver(Driver):
    """Persists and locks sessions in a Redis instance.

    Parameters
    ----------
    url:
        Redis connection URL, e.g. ``"redis://localhost:6379/0"``.
    key_prefix:
        String prepended to all session keys.  Defaults to ``"session:"``.
    lock_timeout:
        Seconds ``open()`` waits for a held lock before raising
        ``LockTimeoutError``.
    lock_ttl:
        Seconds after which Redis expires an unreleased lock key.
    client:
        Pre-built ``redis.asyncio.Redis`` client.  When given, ``url`` is
        ignored and the ``redis`` package is not imported.
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        key_prefix: str = "session:",
        lock_timeout: float = 10.0,
        lock_ttl: float = 30.0,
        client: Any | None = None,
    ) -> None:
        if client is None:
            try:
                import redis.asyncio as redis_asyncio
            except ImportError as exc:
                raise ImportError(_REDIS_IMPORT_ERROR) from exc
            client = redis_asyncio.Redis.from_url(url, decode_responses=True)
        self._client = client
        self._key_prefix = key_prefix
        self._lock_timeout = lock_timeout
        self._lock_ttl_ms = int(lock_ttl * 1000)
        self._tokens: dict[str, str] = {}

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _key(self, session_id: str) -> str:
        """Return the full Redis key for ``session_id``."""
        return f"{self._key_prefix}{session_id}"

    def _lock_key(self, session_id: str) -> str:
        return f"{self._key_prefix}{session_id}{LOCK_SUFFIX}"

    async def _get(self, session_id: str) -> dict[str, Any]:
        raw = await self._client.get(self._key(session_id))
        if raw is None:
            return {}
        data = json.loads(raw)
        return data if isinstance(data, dict) else {}

    # ------------------------------------------------------------------
    # Driver interface
    # ------------------------------------------------------------------

    async def open(self, session_id: str) -> dict[str, Any]:
        """Acquire the lock key with ``SET NX PX`` (polling), then read.

        Raises
        ------
        LockTimeoutError
            If the lock is still held by someone else after ``lock_timeout``.
        DriverError
            On any Redis failure.
        """
        from redis.exceptions import RedisError

        lock_key = self._lock_key(session_id)
        token = secrets.token_hex(16)
        deadline = time.monotonic() + self._lock_timeout
        try:
            while not await self._client.set(lock_key, token, nx=True, px=self._lock_ttl_ms):
                if time.monotonic() >= deadline:
                    raise LockTimeoutError(session_id, self._lock_timeout)
                await asyncio.sleep(_POLL_INTERVAL_SECONDS)
            data = await self._get(session_id)
            if data:
                self._tokens[session_id] = token
            else:
                await self._client.eval(RELEASE_LOCK_SCRIPT, 1, lock_key, token)
        except (RedisError, ValueError) as exc:
            raise DriverError(f"RedisDriver: open {session_id!r} failed: {exc}") from exc
        logger.debug("RedisDriver: opened %r (empty=%s)", session_id, not data)
        return data

    async def read(self, session_id: str) -> dict[str, Any]:
        """Return the stored data for ``session_id`` without locking."""
        from redis.exceptions import RedisError

        try:
            return await self._get(session_id)
        except (RedisError, ValueError) as exc:
            raise DriverError(f"RedisDriver: read {session_id!r} failed: {exc}") from exc

    async def save(self, session_id: str, data: dict[str, Any], ttl: int) -> None:
        """Write ``data`` with ``EX ttl`` and release this driver's lock atomically."""
        from redis.exceptions import RedisError

        token = self._tokens.get(session_id, "")
        try:
            await self._client.eval(
                SAVE_SCRIPT,
                2,
                self._key(session_id),
                self._lock_key(session_id),
                json.dumps(data, default=str),
                ttl,
                token,
            )
        except RedisError as exc:
            raise DriverError(f"RedisDriver: save {session_id!r} failed: {exc}") from exc
        self._tokens.pop(session_id, None)

    async def unlock(self, session_id: str) -> None:
        """Delete the lock key if it still carries this driver's token."""
        from redis.exceptions import RedisError

        token = self._tokens.get(session_id)
        if token is None:
            return
        try:
            await self._client.eval(RELEASE_LOCK_SCRIPT, 1, self._lock_key(session_id), token)
        except RedisError as exc:
            raise DriverError(f"RedisDriver: unlock {session_id!r} failed: {exc}") from exc
        del self._tokens[session_id]

    async def regenerate(self, old_id: str, new_id: str) -> None:
        """Rename the data key and this driver's lock key in one script."""
        from redis.exceptions import RedisError

        token = self._tokens.get(old_id, "")
        try:
            await self._client.eval(
                REGENERATE_SCRIPT,
                4,
                self._key(old_id),
                self._key(new_id),
                self._lock_key(old_id),
                self._lock_key(new_id),
                token,
            )
        except RedisError as exc:
            raise DriverError(
                f"RedisDriver: regenerate {old_id!r} -> {new_id!r} failed: {exc}"
            ) from exc
        if token:
            self._tokens[new_id] = self._tokens.pop(old_id)

    def __repr__(self) -> str:
        return f"RedisDriver(key_prefix={self._key_prefix!r})"


__all__ = ["RedisDriver"]
