"""request-session — Locked, per-request session storage over pluggable drivers.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import request_session
>>> request_session.__version__
'0.1.0'
"""
from __future__ import annotations

# States and errors
from request_session.state import IdState, LockState
from request_session.errors import (
    DriverError,
    LockStateError,
    LockTimeoutError,
    ResourceLeakError,
    SessionError,
)

# Session core
from request_session.session.config import (
    RequestContext,
    SessionConfig,
    build_driver,
    load_config,
)
from request_session.session.handle import SessionHandle
from request_session.session.ids import ID_LENGTH, generate_id, is_valid_id

# Storage drivers
from request_session.storage.base import Driver
from request_session.storage.memory import InMemoryDriver

# Middleware
from request_session.middleware.session_middleware import SessionMiddleware

__version__: str = "0.1.0"

__all__ = [
    "__version__",
    # States and errors
    "DriverError",
    "IdState",
    "LockState",
    "LockStateError",
    "LockTimeoutError",
    "ResourceLeakError",
    "SessionError",
    # Session core
    "ID_LENGTH",
    "RequestContext",
    "SessionConfig",
    "SessionHandle",
    "build_driver",
    "generate_id",
    "is_valid_id",
    "load_config",
    # Storage
    "Driver",
    "InMemoryDriver",
    # Middleware
    "SessionMiddleware",
]
