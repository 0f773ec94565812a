"""Session request/response middleware.

Creates one ``SessionHandle`` per request from the request's cookies and,
once the request has been handled, checks that the handle was released and
works out the ``Set-Cookie`` header the response must carry.

Classes
-------
- SessionMiddleware  — before/after request hooks for session handles
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Mapping

from request_session.session.config import RequestContext, SessionConfig
from request_session.session.handle import SessionHandle

logger = logging.getLogger(__name__)


class RequestScope:
    """Holder for the handle of one ``request_scope`` block.

    ``cookie`` is filled in when the block exits cleanly.
    """

    def __init__(self, handle: SessionHandle) -> None:
        self.handle = handle
        self.cookie: str | None = None


class SessionMiddleware:
    """Open and close session handles around each request cycle.

    It is intentionally framework-agnostic: callers pass in the request's
    cookies and attach the returned header to their own response.

    Parameters
    ----------
    config:
        Session configuration; each request receives a private copy so that
        ``set_ttl`` in one request never leaks into another.
    """

    def __init__(self, config: SessionConfig) -> None:
        self._config = config

    @property
    def config(self) -> SessionConfig:
        return self._config

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def before_request(self, cookies: Mapping[str, str]) -> SessionHandle:
        """Return a handle seeded from the session cookie in ``cookies``.

        Parameters
        ----------
        cookies:
            The request's cookies by name.

        Returns
        -------
        SessionHandle
            An unlocked handle; callers ``open()`` it when they need the data.
        """
        context = RequestContext.for_request(self._config)
        handle = SessionHandle(cookies.get(self._config.name), context)
        logger.debug("SessionMiddleware: created handle %r", handle)
        return handle

    def after_request(self, handle: SessionHandle) -> str | None:
        """Finish the request's session and return its ``Set-Cookie`` value.

        Parameters
        ----------
        handle:
            The handle returned by ``before_request``.

        Returns
        -------
        str | None
            The header value to send, or None when the cookie is unchanged.

        Raises
        ------
        ResourceLeakError
            If the handle was never saved, unlocked or destroyed.
        """
        handle.close()
        return self.cookie_header(handle.context)

    def cookie_header(self, context: RequestContext) -> str | None:
        """Return the ``Set-Cookie`` value implied by ``context``, if any."""
        config = context.config
        if context.expired:
            logger.debug("SessionMiddleware: clearing session cookie")
            return f"{config.name}=; Path={config.path}; Max-Age=0; HttpOnly"
        if context.session_id is None:
            return None
        if not context.id_changed and context.effective_ttl is None:
            return None
        header = f"{config.name}={context.session_id}; Path={config.path}"
        if config.ttl != -1:
            header += f"; Max-Age={config.ttl}"
        return header + "; HttpOnly"

    @asynccontextmanager
    async def request_scope(self, cookies: Mapping[str, str]) -> AsyncIterator[RequestScope]:
        """Run a block with the request's handle and finish it on exit.

        On a clean exit ``after_request`` runs and its result is stored on
        ``scope.cookie``.  When the block raises, the exception propagates
        untouched and no cookie is computed.

        Example
        -------
        >>> async with middleware.request_scope(request.cookies) as scope:  # doctest: +SKIP
        ...     await scope.handle.open()
        ...     scope.handle.set("user", "ada")
        ...     await scope.handle.save()
        >>> response.headers["Set-Cookie"] = scope.cookie                 # doctest: +SKIP
        """
        scope = RequestScope(self.before_request(cookies))
        yield scope
        scope.cookie = self.after_request(scope.handle)


__all__ = ["RequestScope", "SessionMiddleware"]
