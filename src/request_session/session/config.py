"""Session configuration and the per-request context.

``SessionConfig`` holds the options recognised by a session handle.
``RequestContext`` is the explicit object a request owns: it carries a
per-request copy of the configuration in, and the identifier and ttl
decisions the response layer needs out.

Classes
-------
- SessionConfig   — validated session options
- RequestContext  — request-scoped configuration and outputs

Functions
---------
- build_driver  — instantiate a driver from a settings mapping
- load_config   — read a ``SessionConfig`` from a YAML file
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, ConfigDict, Field

from request_session.storage.base import Driver


class SessionConfig(BaseModel):
    """Options recognised by ``SessionHandle``.

    Parameters
    ----------
    name:
        Name of the cookie carrying the session id.
    ttl:
        Session lifetime in seconds, or ``-1`` for a browser-session cookie
        whose stored data is kept for ``maxlife`` seconds.
    maxlife:
        Upper bound on the stored lifetime when ``ttl == -1``.
    path:
        Cookie path.
    driver:
        Storage driver shared by all requests.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, validate_assignment=True)

    name: str = Field(default="SessionId", min_length=1)
    ttl: int = Field(default=-1, ge=-1)
    maxlife: int = Field(default=1440, gt=0)
    path: str = "/"
    driver: Driver

    def effective_ttl(self) -> int:
        """Return the expiry actually sent to the driver.

        ``maxlife`` when ``ttl == -1``; otherwise ``ttl + 1`` so that the
        backend record never expires before the client's cookie does.
        """
        return self.maxlife if self.ttl == -1 else self.ttl + 1


@dataclass
class RequestContext:
    """Request-scoped configuration and session outputs.

    A context belongs to exactly one in-flight request and must not be
    shared between concurrent requests.

    Parameters
    ----------
    config:
        Configuration for this request; mutated by ``SessionHandle.set_ttl``.
    session_id:
        The currently bound session id, or None.
    expired:
        True when the client's identity cookie should be cleared.
    id_changed:
        True when the id was bound, expired or regenerated during this request.
    effective_ttl:
        The ttl chosen by the last successful save, or None.
    """

    config: SessionConfig
    session_id: str | None = None
    expired: bool = False
    id_changed: bool = False
    effective_ttl: int | None = None

    @classmethod
    def for_request(cls, config: SessionConfig) -> RequestContext:
        """Return a context holding a private copy of ``config``."""
        return cls(config=config.model_copy())

    def bind_id(self, session_id: str, *, changed: bool = True) -> None:
        """Publish ``session_id`` as the request's session id."""
        self.session_id = session_id
        self.expired = False
        if changed:
            self.id_changed = True

    def expire_id(self) -> None:
        """Publish that the request's session id must be forgotten."""
        self.session_id = None
        self.expired = True
        self.id_changed = True


def build_driver(settings: Mapping[str, Any]) -> Driver:
    """Instantiate the driver described by ``settings``.

    Parameters
    ----------
    settings:
        Mapping with a ``backend`` key (``"memory"``, ``"sqlite"`` or
        ``"redis"``); the remaining keys are passed to the driver.

    Returns
    -------
    Driver

    Raises
    ------
    ValueError
        If the backend name is unknown.
    """
    options = dict(settings)
    backend = options.pop("backend", "memory")
    if backend == "memory":
        from request_session.storage.memory import InMemoryDriver

        return InMemoryDriver()
    if backend == "sqlite":
        from request_session.storage.sqlite import SQLiteDriver

        return SQLiteDriver(**options)
    if backend == "redis":
        from request_session.storage.redis import RedisDriver

        return RedisDriver(**options)
    raise ValueError(f"Unknown session driver backend: {backend!r}")


def load_config(path: str | Path) -> SessionConfig:
    """Load a ``SessionConfig`` from a YAML file.

    The file's top-level keys are the ``SessionConfig`` fields; ``driver``
    is a mapping handed to ``build_driver`` (defaults to the memory driver).

    Parameters
    ----------
    path:
        Path to the YAML document.

    Returns
    -------
    SessionConfig
    """
    raw = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Session config {str(path)!r} must be a mapping")
    raw["driver"] = build_driver(raw.get("driver") or {})
    return SessionConfig(**raw)


__all__ = ["RequestContext", "SessionConfig", "build_driver", "load_config"]
