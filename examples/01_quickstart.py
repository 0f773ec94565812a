#!/usr/bin/env python3
"""Example: Quickstart — request-session

Minimal working example: three simulated requests share one in-memory
driver.  The first creates a session, the second updates it, the third
logs out.

Usage:
    python examples/01_quickstart.py

Requirements:
    pip install request-session
"""
from __future__ import annotations

import asyncio

import request_session
from request_session import InMemoryDriver, SessionConfig, SessionMiddleware


async def main() -> None:
    print(f"request-session version: {request_session.__version__}")

    middleware = SessionMiddleware(SessionConfig(driver=InMemoryDriver(), ttl=600))

    # Request 1: first visit, no cookie yet
    async with middleware.request_scope({}) as scope:
        handle = scope.handle
        await handle.open()
        handle.set("user", "ada")
        await handle.save()
    print(f"Set-Cookie: {scope.cookie}")
    cookies = {middleware.config.name: handle.id}

    # Request 2: returning visitor increments a counter
    async with middleware.request_scope(cookies) as scope:
        handle = scope.handle
        await handle.open()
        handle.set("visits", handle.get("visits", 0) + 1)
        await handle.save()
    print(f"Session data: {handle.data}")

    # Request 3: logout
    async with middleware.request_scope(cookies) as scope:
        await scope.handle.open()
        await scope.handle.destroy()
    print(f"Set-Cookie: {scope.cookie}")


if __name__ == "__main__":
    asyncio.run(main())
