"""Abstract base class for session storage drivers.

A driver persists session data and provides the backend-level mutual
exclusion that keeps two requests from writing the same session at once.
``SessionHandle`` only ever talks to storage through this contract.

Classes
-------
- Driver  — abstract base for all drivers
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class Driver(ABC):
    """Protocol for locked access to session data.

    All methods are coroutines (``async def``).  Failures must be raised as
    ``DriverError`` (or a subclass) so callers can tell backend trouble apart
    from misuse of the handle.

    Absent records, expired records and records holding ``{}`` are all
    equivalent: each reads back as ``{}``.
    """

    @abstractmethod
    async def open(self, session_id: str) -> dict[str, Any]:
        """Lock ``session_id`` and return its current data.

        Blocks until the backend lock is acquired.  When the record is
        absent or empty the lock is released again before returning ``{}``,
        so no lock is held for sessions without data.

        Parameters
        ----------
        session_id:
            Identifier of the session to lock.

        Returns
        -------
        dict[str, Any]
            The stored data, or ``{}``.
        """

    @abstractmethod
    async def read(self, session_id: str) -> dict[str, Any]:
        """Return the data stored under ``session_id`` without locking.

        Parameters
        ----------
        session_id:
            Identifier of the session to read.

        Returns
        -------
        dict[str, Any]
            The stored data, or ``{}``.
        """

    @abstractmethod
    async def save(self, session_id: str, data: dict[str, Any], ttl: int) -> None:
        """Persist ``data`` under ``session_id`` for ``ttl`` seconds.

        Releases the lock this driver holds for ``session_id``, if any.
        Saving ``{}`` stores an empty record so that stale copies of the
        identifier read back as empty.

        Parameters
        ----------
        session_id:
            Identifier to store the data under.
        data:
            Mapping to persist.
        ttl:
            Expiry in seconds.
        """

    @abstractmethod
    async def unlock(self, session_id: str) -> None:
        """Release the lock on ``session_id`` without touching stored data."""

    @abstractmethod
    async def regenerate(self, old_id: str, new_id: str) -> None:
        """Atomically move the record and its lock from ``old_id`` to ``new_id``.

        Parameters
        ----------
        old_id:
            Identifier currently holding the record.
        new_id:
            Identifier the record is moved to.
        """


__all__ = ["Driver"]
