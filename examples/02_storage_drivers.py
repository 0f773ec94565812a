#!/usr/bin/env python3
"""Example: Storage drivers — request-session

Two handles contend for the same session stored in SQLite.  The second
handle waits in the pending state until the first one saves.

Usage:
    python examples/02_storage_drivers.py

Requirements:
    pip install 'request-session[sqlite]'
"""
from __future__ import annotations

import asyncio
import tempfile
from pathlib import Path

from request_session import RequestContext, SessionConfig, SessionHandle
from request_session.storage.sqlite import SQLiteDriver


async def main() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        config = SessionConfig(driver=SQLiteDriver(db_path=Path(tmp) / "sessions.db"))

        creator = SessionHandle(None, RequestContext.for_request(config))
        await creator.open()
        creator.set("balance", 100)
        await creator.save()
        session_id = creator.id
        print(f"Created session {session_id}")

        first = SessionHandle(session_id, RequestContext.for_request(config))
        second = SessionHandle(session_id, RequestContext.for_request(config))

        await first.open()
        waiting = asyncio.create_task(second.open())
        await asyncio.sleep(0.2)
        print(f"second handle while first holds the lock: {second.lock_state.value}")

        first.set("balance", first.get("balance") - 30)
        await first.save()
        await waiting
        print(f"second handle sees balance={second.get('balance')}")
        await second.unlock()


if __name__ == "__main__":
    asyncio.run(main())
