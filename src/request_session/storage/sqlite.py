"""SQLite session storage driver — requires aiosqlite (guarded import).

Session data and lock ownership both live in one SQLite file, so several
processes pointed at the same file exclude each other.  A lock is a row in
``session_locks``; rows older than ``lock_ttl`` are reclaimed so a crashed
holder cannot block a session forever.

Classes
-------
- SQLiteDriver  — aiosqlite-backed cross-process driver
"""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
import sqlite3
import time
from pathlib import Path
from typing import Any, Callable

from request_session.errors import DriverError, LockTimeoutError
from request_session.storage.base import Driver

logger = logging.getLogger(__name__)

_AIOSQLITE_IMPORT_ERROR = (
    "SQLiteDriver requires the 'aiosqlite' package. "
    "Install it with: pip install aiosqlite  or  pip install 'request-session[sqlite]'"
)

_DEFAULT_DB_PATH: Path = Path.home() / ".request-session" / "sessions.db"

_POLL_INTERVAL_SECONDS: float = 0.05

_CREATE_SESSIONS_SQL = """
CREATE TABLE IF NOT EXISTS sessions (
    session_id TEXT PRIMARY KEY,
    payload    TEXT NOT NULL,
    expires_at REAL NOT NULL
)
"""

_CREATE_LOCKS_SQL = """
CREATE TABLE IF NOT EXISTS session_locks (
    session_id TEXT PRIMARY KEY,
    token      TEXT NOT NULL,
    expires_at REAL NOT NULL
)
"""

_UPSERT_SQL = """
INSERT INTO sessions (session_id, payload, expires_at)
VALUES (?, ?, ?)
ON CONFLICT(session_id) DO UPDATE SET
    payload    = excluded.payload,
    expires_at = excluded.expires_at
"""


class SQLiteDriver(Driver):
    """Persists sessions and their locks in a local SQLite database.

    Parameters
    ----------
    db_path:
        Path to the SQLite file.  Defaults to
        ``~/.request-session/sessions.db``.  The parent directory and tables
        are created automatically on first use.
    lock_timeout:
        Seconds ``open()`` waits for a held lock before raising
        ``LockTimeoutError``.
    lock_ttl:
        Seconds after which an unreleased lock is considered abandoned.
    clock:
        Wall-clock source used for record and lock expiry.
    """

    def __init__(
        self,
        db_path: str | Path | None = None,
        lock_timeout: float = 10.0,
        lock_ttl: float = 30.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        try:
            import aiosqlite as _aiosqlite  # noqa: F401
        except ImportError as exc:
            raise ImportError(_AIOSQLITE_IMPORT_ERROR) from exc

        self._db_path: Path = Path(db_path) if db_path is not None else _DEFAULT_DB_PATH
        self._lock_timeout = lock_timeout
        self._lock_ttl = lock_ttl
        self._clock = clock
        self._tokens: dict[str, str] = {}
        self._schema_initialised = False

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _ensure_schema(self) -> None:
        """Create both tables on first use."""
        if self._schema_initialised:
            return
        import aiosqlite

        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as conn:
            await conn.execute("PRAGMA journal_mode=WAL")
            await conn.execute(_CREATE_SESSIONS_SQL)
            await conn.execute(_CREATE_LOCKS_SQL)
            await conn.commit()
        self._schema_initialised = True

    async def _try_lock(self, conn: Any, session_id: str, token: str) -> bool:
        now = self._clock()
        await conn.execute(
            "DELETE FROM session_locks WHERE session_id = ? AND expires_at <= ?",
            (session_id, now),
        )
        cursor = await conn.execute(
            "INSERT OR IGNORE INTO session_locks (session_id, token, expires_at) "
            "VALUES (?, ?, ?)",
            (session_id, token, now + self._lock_ttl),
        )
        await conn.commit()
        return cursor.rowcount == 1

    async def _select(self, conn: Any, session_id: str) -> dict[str, Any]:
        async with conn.execute(
            "SELECT payload FROM sessions WHERE session_id = ? AND expires_at > ?",
            (session_id, self._clock()),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return {}
        data = json.loads(row[0])
        return data if isinstance(data, dict) else {}

    # ------------------------------------------------------------------
    # Driver interface
    # ------------------------------------------------------------------

    async def open(self, session_id: str) -> dict[str, Any]:
        """Insert a lock row for ``session_id`` (polling), then read its data.

        Raises
        ------
        LockTimeoutError
            If another holder keeps the lock for longer than ``lock_timeout``.
        DriverError
            On any SQLite failure.
        """
        import aiosqlite

        token = secrets.token_hex(16)
        deadline = time.monotonic() + self._lock_timeout
        try:
            await self._ensure_schema()
            async with aiosqlite.connect(str(self._db_path)) as conn:
                while not await self._try_lock(conn, session_id, token):
                    if time.monotonic() >= deadline:
                        raise LockTimeoutError(session_id, self._lock_timeout)
                    await asyncio.sleep(_POLL_INTERVAL_SECONDS)
                data = await self._select(conn, session_id)
                if data:
                    self._tokens[session_id] = token
                else:
                    await conn.execute(
                        "DELETE FROM session_locks WHERE session_id = ? AND token = ?",
                        (session_id, token),
                    )
                    await conn.commit()
        except (sqlite3.Error, ValueError) as exc:
            raise DriverError(f"SQLiteDriver: open {session_id!r} failed: {exc}") from exc
        logger.debug("SQLiteDriver: opened %r (empty=%s)", session_id, not data)
        return data

    async def read(self, session_id: str) -> dict[str, Any]:
        """Return the stored data for ``session_id`` without locking."""
        import aiosqlite

        try:
            await self._ensure_schema()
            async with aiosqlite.connect(str(self._db_path)) as conn:
                return await self._select(conn, session_id)
        except (sqlite3.Error, ValueError) as exc:
            raise DriverError(f"SQLiteDriver: read {session_id!r} failed: {exc}") from exc

    async def save(self, session_id: str, data: dict[str, Any], ttl: int) -> None:
        """Upsert ``data`` and drop this driver's lock row in one transaction."""
        import aiosqlite

        payload = json.dumps(data, default=str)
        token = self._tokens.get(session_id)
        try:
            await self._ensure_schema()
            async with aiosqlite.connect(str(self._db_path)) as conn:
                await conn.execute(_UPSERT_SQL, (session_id, payload, self._clock() + ttl))
                if token is not None:
                    await conn.execute(
                        "DELETE FROM session_locks WHERE session_id = ? AND token = ?",
                        (session_id, token),
                    )
                await conn.commit()
        except sqlite3.Error as exc:
            raise DriverError(f"SQLiteDriver: save {session_id!r} failed: {exc}") from exc
        self._tokens.pop(session_id, None)

    async def unlock(self, session_id: str) -> None:
        """Drop this driver's lock row for ``session_id``, if it holds one."""
        import aiosqlite

        token = self._tokens.get(session_id)
        if token is None:
            return
        try:
            async with aiosqlite.connect(str(self._db_path)) as conn:
                await conn.execute(
                    "DELETE FROM session_locks WHERE session_id = ? AND token = ?",
                    (session_id, token),
                )
                await conn.commit()
        except sqlite3.Error as exc:
            raise DriverError(f"SQLiteDriver: unlock {session_id!r} failed: {exc}") from exc
        del self._tokens[session_id]

    async def regenerate(self, old_id: str, new_id: str) -> None:
        """Rename the record and this driver's lock row in one transaction."""
        import aiosqlite

        token = self._tokens.get(old_id)
        try:
            await self._ensure_schema()
            async with aiosqlite.connect(str(self._db_path)) as conn:
                await conn.execute(
                    "UPDATE sessions SET session_id = ? WHERE session_id = ?",
                    (new_id, old_id),
                )
                if token is not None:
                    await conn.execute(
                        "UPDATE session_locks SET session_id = ? "
                        "WHERE session_id = ? AND token = ?",
                        (new_id, old_id, token),
                    )
                await conn.commit()
        except sqlite3.Error as exc:
            raise DriverError(
                f"SQLiteDriver: regenerate {old_id!r} -> {new_id!r} failed: {exc}"
            ) from exc
        if token is not None:
            self._tokens[new_id] = self._tokens.pop(old_id)

    def __repr__(self) -> str:
        return f"SQLiteDriver(db_path={str(self._db_path)!r})"


__all__ = ["SQLiteDriver"]
