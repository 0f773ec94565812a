"""Middleware subpackage.

Public surface
--------------
- SessionMiddleware  — before/after request hooks around a SessionHandle
"""
from __future__ import annotations

from request_session.middleware.session_middleware import SessionMiddleware

__all__ = ["SessionMiddleware"]
