"""Per-request session handle.

``SessionHandle`` coordinates exclusive, ordered access to one session's
data.  Data may only be written while the handle is ``LOCKED`` and only be
read while no driver call is ``PENDING``.  Every operation that touches
storage suspends exactly once per driver call; a second operation issued
while one is pending is rejected with ``LockStateError`` rather than queued.

Cross-request exclusion is the driver's job: ``open()`` asks the driver for
a backend lock, and ``save()``, ``destroy()`` and ``unlock()`` release it.

Classes
-------
- SessionHandle  — lock state machine over a ``Driver``
"""
from __future__ import annotations

import logging
from types import TracebackType
from typing import Any

from request_session.errors import LockStateError, ResourceLeakError
from request_session.session.config import RequestContext
from request_session.session.ids import generate_id, is_valid_id
from request_session.state import IdState, LockState

logger = logging.getLogger(__name__)

_MISSING: Any = object()


class SessionHandle:
    """The session of a single request.

    A handle is created once per inbound request, driven through
    ``open()``/``save()`` (or ``unlock()``/``destroy()``) and must be back in
    ``LockState.UNLOCKED`` by the time the request completes; ``close()``
    enforces that.

    Parameters
    ----------
    token:
        Session id recovered from the request (usually a cookie), or None.
        Tokens that ``is_valid_id`` rejects are ignored entirely.
    context:
        The request's ``RequestContext``.  The handle reads its config and
        publishes id and ttl changes to it.

    Example
    -------
    >>> handle = SessionHandle(cookies.get(config.name), context)  # doctest: +SKIP
    >>> await handle.open()                                         # doctest: +SKIP
    >>> handle.set("visits", handle.get("visits", 0) + 1)           # doctest: +SKIP
    >>> await handle.save()                                         # doctest: +SKIP
    """

    def __init__(self, token: str | None, context: RequestContext) -> None:
        self._context = context
        self._driver = context.config.driver
        self._id: str | None = None
        self._id_state = IdState.UNSET
        self._data: dict[str, Any] = {}
        self._lock_state = LockState.UNLOCKED
        self._renaming = False

        if is_valid_id(token):
            self._id = token
            self._id_state = IdState.BOUND
            context.bind_id(token, changed=False)
        elif token is not None:
            logger.debug("SessionHandle: ignoring malformed session id")

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def id(self) -> str | None:
        """The bound session id, or None when unset or expired."""
        return self._id if self._id_state is IdState.BOUND else None

    @property
    def id_state(self) -> IdState:
        return self._id_state

    @property
    def lock_state(self) -> LockState:
        return self._lock_state

    @property
    def is_locked(self) -> bool:
        return self._lock_state is LockState.LOCKED

    @property
    def data(self) -> dict[str, Any]:
        """A shallow copy of the session data."""
        self._require_readable("data")
        return dict(self._data)

    @property
    def context(self) -> RequestContext:
        return self._context

    def __repr__(self) -> str:
        return (
            f"SessionHandle(id_state={self._id_state.value!r}, "
            f"lock_state={self._lock_state.value!r}, keys={len(self._data)})"
        )

    # ------------------------------------------------------------------
    # Data access
    # ------------------------------------------------------------------

    def has(self, key: str) -> bool:
        self._require_readable("has")
        return key in self._data

    def get(self, key: str, default: Any = _MISSING) -> Any:
        """Return the value stored under ``key``.

        Raises
        ------
        KeyError
            If ``key`` is absent and no ``default`` was given.
        LockStateError
            While a driver call is pending.
        """
        self._require_readable("get")
        if key in self._data:
            return self._data[key]
        if default is _MISSING:
            raise KeyError(f"Key {key!r} does not exist in session")
        return default

    def set(self, key: str, value: Any) -> None:
        self._require_locked("set")
        self._data[key] = value

    def unset(self, key: str) -> None:
        """Remove ``key`` if present."""
        self._require_locked("unset")
        self._data.pop(key, None)

    def set_ttl(self, ttl: int) -> None:
        """Set the session lifetime for this request.

        Parameters
        ----------
        ttl:
            Seconds, or ``-1`` for a cookie that lasts until the browser
            closes (stored data then expires after ``maxlife``).
        """
        if ttl < -1:
            raise ValueError(f"ttl must be -1 or a non-negative number of seconds, got {ttl}")
        self._context.config.ttl = ttl

    # ------------------------------------------------------------------
    # Lock lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> SessionHandle:
        """Lock the session and load its current data.

        Without a bound id there is nothing to fetch and the handle locks
        immediately with empty data.  Otherwise the driver acquires its
        backend lock and returns the stored data; empty data expires the id.

        Raises
        ------
        LockStateError
            If the handle is already locked or a lock is pending.
        DriverError
            If the driver fails; the handle is left unlocked.
        """
        if self._lock_state is not LockState.UNLOCKED:
            raise LockStateError(
                "open", self._lock_state, "Session already opened, can't open again"
            )

        if self._id_state is not IdState.BOUND:
            self._data = {}
            self._lock_state = LockState.LOCKED
            return self

        self._lock_state = LockState.PENDING
        try:
            data = await self._driver.open(self._id)
        except BaseException:
            self._lock_state = LockState.UNLOCKED
            raise
        self._absorb(data)
        self._lock_state = LockState.LOCKED
        logger.debug("SessionHandle: locked %s session", self._id_state.value)
        return self

    async def read(self) -> SessionHandle:
        """Reload the session data without locking.

        Raises
        ------
        LockStateError
            If the handle is locked; use the data loaded by ``open()`` instead.
        """
        if self._lock_state is not LockState.UNLOCKED:
            raise LockStateError(
                "read",
                self._lock_state,
                "Session is locked, can't read in locked state; "
                "use the data loaded by open()",
            )
        if self._id_state is not IdState.BOUND:
            return self
        data = await self._driver.read(self._id)
        self._absorb(data)
        return self

    async def save(self) -> SessionHandle:
        """Persist the data and release the lock.

        Saving empty data is a ``destroy()``.  The first save of a session
        without a bound id allocates one.  If the driver fails, the data is
        re-read from the driver so that the handle reflects what was actually
        stored, and the save error is raised; if that read fails too, the data
        is cleared and the read error is raised.  Either way the handle ends
        up unlocked.
        """
        self._require_committable("save")
        if not self._data:
            return await self.destroy()

        if self._id_state is not IdState.BOUND:
            self._bind(generate_id())
        session_id = self._id
        ttl = self._context.config.effective_ttl()

        self._lock_state = LockState.PENDING
        try:
            await self._driver.save(session_id, dict(self._data), ttl)
        except Exception as save_error:
            logger.warning(
                "SessionHandle: save failed (%s), re-reading stored data", type(save_error).__name__
            )
            await self._recover(session_id, save_error)
            raise
        except BaseException:
            # cancelled: there is no driver answer to recover from
            self._lock_state = LockState.UNLOCKED
            raise
        self._context.effective_ttl = ttl
        self._lock_state = LockState.UNLOCKED
        logger.debug("SessionHandle: saved session with ttl=%d", ttl)
        return self

    async def destroy(self) -> SessionHandle:
        """Empty the session, expire its id and release the lock.

        An empty record is written under the abandoned id so that any stale
        holder of it reads back nothing.
        """
        self._require_committable("destroy")
        self._data = {}
        if self._id_state is not IdState.BOUND:
            self._lock_state = LockState.UNLOCKED
            return self

        session_id = self._id
        self._expire()
        self._lock_state = LockState.PENDING
        try:
            await self._driver.save(session_id, {}, self._context.config.effective_ttl())
        finally:
            self._lock_state = LockState.UNLOCKED
        logger.debug("SessionHandle: destroyed session")
        return self

    async def unlock(self) -> SessionHandle:
        """Release the lock without saving and reload the stored data.

        Local changes are discarded immediately.  The handle always ends up
        unlocked; if the driver fails, the data stays empty and the error is
        raised.
        """
        self._require_committable("unlock")
        self._data = {}
        if self._id_state is not IdState.BOUND:
            self._lock_state = LockState.UNLOCKED
            return self

        session_id = self._id
        self._lock_state = LockState.PENDING
        try:
            await self._driver.unlock(session_id)
            data = await self._driver.read(session_id)
        finally:
            self._lock_state = LockState.UNLOCKED
        self._absorb(data)
        logger.debug("SessionHandle: unlocked session")
        return self

    async def regenerate(self) -> SessionHandle:
        """Move the session to a fresh id, keeping data and lock.

        The handle is only rebound once the driver has confirmed the move;
        if it fails, the old id stays bound and the error is raised.  While
        the driver works the handle reports ``LOCKED`` but refuses to save,
        destroy, unlock or regenerate again.
        """
        self._require_committable("regenerate")
        if self._id_state is not IdState.BOUND:
            return self

        new_id = generate_id()
        self._renaming = True
        try:
            await self._driver.regenerate(self._id, new_id)
        finally:
            self._renaming = False
        self._bind(new_id)
        logger.debug("SessionHandle: regenerated session id")
        return self

    # ------------------------------------------------------------------
    # Scope
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Check that the handle was released before its request ends.

        Raises
        ------
        ResourceLeakError
            If the handle is still locked or has a driver call pending.
        """
        if self._lock_state is not LockState.UNLOCKED:
            raise ResourceLeakError(self.id, self._lock_state)

    async def __aenter__(self) -> SessionHandle:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if exc_type is None:
            self.close()
        elif self._lock_state is not LockState.UNLOCKED:
            logger.warning(
                "SessionHandle: scope exited with %s while %s",
                exc_type.__name__,
                self._lock_state.value,
            )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_locked(self, operation: str) -> None:
        if self._lock_state is not LockState.LOCKED:
            raise LockStateError(operation, self._lock_state)

    def _require_committable(self, operation: str) -> None:
        self._require_locked(operation)
        if self._renaming:
            # the handle stays LOCKED during a rename but must not commit
            raise LockStateError(
                operation,
                LockState.PENDING,
                "Session id is being regenerated, wait until regenerate() finishes",
            )

    def _require_readable(self, operation: str) -> None:
        if self._lock_state is LockState.PENDING:
            raise LockStateError(operation, self._lock_state)

    def _bind(self, session_id: str) -> None:
        self._id = session_id
        self._id_state = IdState.BOUND
        self._context.bind_id(session_id)

    def _expire(self) -> None:
        # the old id is kept for bookkeeping but never used for writes again
        self._id_state = IdState.EXPIRED
        self._context.expire_id()

    def _absorb(self, data: dict[str, Any]) -> None:
        if not data:
            self._expire()
        self._data = dict(data)

    async def _recover(self, session_id: str, save_error: Exception) -> None:
        try:
            data = await self._driver.read(session_id)
        except Exception as read_error:
            self._data = {}
            raise read_error from save_error
        finally:
            self._lock_state = LockState.UNLOCKED
        self._absorb(data)


__all__ = ["SessionHandle"]
