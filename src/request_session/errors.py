"""Exception hierarchy for request-session.

Classes
-------
- SessionError       — base class for every error raised by this package
- LockStateError     — operation invoked in the wrong lock state
- DriverError        — failure reported by a storage driver
- LockTimeoutError   — a driver could not acquire its backend lock in time
- ResourceLeakError  — a handle went out of scope while still locked
"""
from __future__ import annotations

from request_session.state import LockState


class SessionError(Exception):
    """Base class for all request-session errors."""


class LockStateError(SessionError):
    """Raised when an operation is not permitted in the handle's lock state.

    Parameters
    ----------
    operation:
        Name of the rejected operation, e.g. ``"set"`` or ``"open"``.
    state:
        The lock state the handle was in when the call was rejected.
    message:
        Optional explanation; a default is derived from ``state``.
    """

    def __init__(self, operation: str, state: LockState, message: str | None = None) -> None:
        self.operation = operation
        self.state = state
        if message is None:
            if state is LockState.PENDING:
                message = (
                    "Session has a driver call pending, wait until it has completed"
                )
            elif state is LockState.LOCKED:
                message = "Session is locked"
            else:
                message = "Session is not locked"
        super().__init__(f"{operation}(): {message}")

    @property
    def pending(self) -> bool:
        """True when the rejection was caused by an in-flight driver call."""
        return self.state is LockState.PENDING


class DriverError(SessionError):
    """Raised by storage drivers when the backend fails."""


class LockTimeoutError(DriverError):
    """Raised when a backend lock could not be acquired within the timeout."""

    def __init__(self, session_id: str, timeout: float) -> None:
        self.session_id = session_id
        self.timeout = timeout
        super().__init__(f"Could not lock session {session_id!r} within {timeout}s")


class ResourceLeakError(SessionError):
    """Raised when a handle is closed while it still holds (or awaits) a lock.

    This always indicates a missing ``save()``, ``unlock()`` or ``destroy()``
    in the caller.
    """

    def __init__(self, session_id: str | None, state: LockState) -> None:
        self.session_id = session_id
        self.state = state
        super().__init__(
            f"Session {session_id!r} closed in {state.value} state; "
            "call save(), unlock() or destroy() before the request completes"
        )


__all__ = [
    "DriverError",
    "LockStateError",
    "LockTimeoutError",
    "ResourceLeakError",
    "SessionError",
]
