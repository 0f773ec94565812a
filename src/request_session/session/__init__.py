"""Session subpackage: identifiers, configuration and the session handle.

Public surface
--------------
- SessionHandle   — per-request lock state machine
- SessionConfig   — validated session options
- RequestContext  — request-scoped configuration and outputs
- generate_id / is_valid_id — identifier helpers
"""
from __future__ import annotations

from request_session.session.config import (
    RequestContext,
    SessionConfig,
    build_driver,
    load_config,
)
from request_session.session.handle import SessionHandle
from request_session.session.ids import (
    ALLOWED_ID_CHARS,
    ID_BYTES,
    ID_LENGTH,
    generate_id,
    is_valid_id,
)

__all__ = [
    "ALLOWED_ID_CHARS",
    "ID_BYTES",
    "ID_LENGTH",
    "RequestContext",
    "SessionConfig",
    "SessionHandle",
    "build_driver",
    "generate_id",
    "is_valid_id",
    "load_config",
]
