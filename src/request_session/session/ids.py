"""Session identifier generation and validation.

Identifiers are random tokens drawn from ``secrets`` and base64 encoded.
``ID_BYTES`` is divisible by three so the encoding never carries ``=``
padding and every token has exactly ``ID_LENGTH`` characters.

Functions
---------
- generate_id  — return a fresh random identifier
- is_valid_id  — check an inbound candidate against length and alphabet
"""
from __future__ import annotations

import base64
import secrets
import string

ALLOWED_ID_CHARS: str = string.ascii_uppercase + string.ascii_lowercase + string.digits + "+/"
ID_BYTES: int = 24
ID_LENGTH: int = ID_BYTES * 4 // 3

_ALLOWED: frozenset[str] = frozenset(ALLOWED_ID_CHARS)


def generate_id() -> str:
    """Return a new identifier of ``ID_LENGTH`` characters.

    Returns
    -------
    str
        Base64 encoding of ``ID_BYTES`` cryptographically secure random bytes.
    """
    return base64.b64encode(secrets.token_bytes(ID_BYTES)).decode("ascii")


def is_valid_id(candidate: object) -> bool:
    """Return True if ``candidate`` could have been produced by ``generate_id``.

    Anything that is not a string of exactly ``ID_LENGTH`` characters from
    ``ALLOWED_ID_CHARS`` is rejected outright; candidates are never trimmed
    or otherwise repaired.

    Parameters
    ----------
    candidate:
        Value recovered from the request, typically a cookie.

    Returns
    -------
    bool
    """
    if not isinstance(candidate, str) or len(candidate) != ID_LENGTH:
        return False
    return all(char in _ALLOWED for char in candidate)


__all__ = ["ALLOWED_ID_CHARS", "ID_BYTES", "ID_LENGTH", "generate_id", "is_valid_id"]
