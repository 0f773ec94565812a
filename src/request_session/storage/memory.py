"""In-memory session storage driver.

Stores sessions in a plain Python dict and serialises access to each
session with its own ``asyncio.Lock``.  All data is lost when the process
exits, and locking only covers handles running on the same event loop.
This driver is primarily useful for tests and local prototyping.

Classes
-------
- InMemoryDriver  — dict-backed ephemeral driver
"""

from __future__ import annotations

import asyncio
import copy
import logging
import time
from typing import Any, Callable

from request_session.storage.base import Driver

logger = logging.getLogger(__name__)


class _LockSlot:
    """A session lock and the number of handles holding or awaiting it."""

    __slots__ = ("key", "lock", "users")

    def __init__(self, key: str) -> None:
        self.key = key
        self.lock = asyncio.Lock()
        self.users = 0


class InMemoryDriver(Driver):
    """Ephemeral in-process driver backed by a Python dict.

    Parameters
    ----------
    clock:
        Callable returning the current time in seconds.  Defaults to
        ``time.monotonic``; tests inject a fake to exercise expiry.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._records: dict[str, tuple[dict[str, Any], float]] = {}
        self._locks: dict[str, _LockSlot] = {}
        self._clock = clock

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _join(self, session_id: str) -> _LockSlot:
        slot = self._locks.get(session_id)
        if slot is None:
            slot = self._locks[session_id] = _LockSlot(session_id)
        slot.users += 1
        return slot

    def _leave(self, slot: _LockSlot) -> None:
        # the slot is dropped once nobody holds or waits for it
        slot.users -= 1
        if slot.users == 0 and self._locks.get(slot.key) is slot:
            del self._locks[slot.key]

    def _release(self, session_id: str) -> None:
        slot = self._locks.get(session_id)
        if slot is not None and slot.lock.locked():
            slot.lock.release()
            self._leave(slot)

    def _fetch(self, session_id: str) -> dict[str, Any]:
        record = self._records.get(session_id)
        if record is None:
            return {}
        data, expires_at = record
        if expires_at <= self._clock():
            del self._records[session_id]
            return {}
        return copy.deepcopy(data)

    # ------------------------------------------------------------------
    # Driver interface
    # ------------------------------------------------------------------

    async def open(self, session_id: str) -> dict[str, Any]:
        """Wait for the session's lock, then return its data."""
        slot = self._join(session_id)
        try:
            await slot.lock.acquire()
        except BaseException:
            self._leave(slot)
            raise
        # a regenerate() while we waited moves the session away from this id
        data = self._fetch(session_id) if slot.key == session_id else {}
        if not data:
            slot.lock.release()
            self._leave(slot)
        logger.debug("InMemoryDriver: opened %r (empty=%s)", session_id, not data)
        return data

    async def read(self, session_id: str) -> dict[str, Any]:
        """Return the session's data without taking the lock."""
        return self._fetch(session_id)

    async def save(self, session_id: str, data: dict[str, Any], ttl: int) -> None:
        """Store a deep copy of ``data`` and release the session's lock."""
        self._records[session_id] = (copy.deepcopy(data), self._clock() + ttl)
        self._release(session_id)

    async def unlock(self, session_id: str) -> None:
        """Release the session's lock; a no-op when it is not held."""
        self._release(session_id)

    async def regenerate(self, old_id: str, new_id: str) -> None:
        """Move the record and its lock to ``new_id``."""
        record = self._records.pop(old_id, None)
        if record is not None:
            self._records[new_id] = record
        slot = self._locks.pop(old_id, None)
        if slot is not None:
            slot.key = new_id
            self._locks[new_id] = slot

    # ------------------------------------------------------------------
    # Extras
    # ------------------------------------------------------------------

    def is_locked(self, session_id: str) -> bool:
        """Return True if a handle currently holds the lock on ``session_id``."""
        slot = self._locks.get(session_id)
        return slot is not None and slot.lock.locked()

    def clear(self) -> None:
        """Remove all stored sessions and the locks nobody is using."""
        self._records.clear()
        self._locks = {key: slot for key, slot in self._locks.items() if slot.users}

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"InMemoryDriver(sessions={len(self._records)})"


__all__ = ["InMemoryDriver"]
