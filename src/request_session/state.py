"""Lock and identity states of a session handle.

Classes
-------
- LockState  — whether the handle may read or write its data
- IdState    — how the handle's identifier relates to stored data
"""
from __future__ import annotations

from enum import Enum


class LockState(str, Enum):
    """Lock states of a ``SessionHandle``.

    ``PENDING`` only exists while a driver call is in flight; it is never a
    resting state.
    """

    UNLOCKED = "unlocked"
    LOCKED = "locked"
    PENDING = "pending"


class IdState(str, Enum):
    """Identity states of a ``SessionHandle``."""

    UNSET = "unset"
    EXPIRED = "expired"
    BOUND = "bound"


__all__ = ["IdState", "LockState"]
