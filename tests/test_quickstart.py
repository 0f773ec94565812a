"""Test that the quickstart API exported from request_session works."""
from __future__ import annotations

import pytest


def test_quickstart_import() -> None:
    import request_session

    assert request_session.__version__ == "0.1.0"
    for name in request_session.__all__:
        assert hasattr(request_session, name)


@pytest.mark.asyncio
async def test_quickstart_request_cycle() -> None:
    from request_session import InMemoryDriver, SessionConfig, SessionMiddleware

    middleware = SessionMiddleware(SessionConfig(driver=InMemoryDriver()))
    async with middleware.request_scope({}) as scope:
        await scope.handle.open()
        scope.handle.set("user", "ada")
        await scope.handle.save()

    cookies = {middleware.config.name: scope.handle.id}
    async with middleware.request_scope(cookies) as scope:
        await scope.handle.read()
    assert scope.handle.get("user") == "ada"
    assert scope.cookie is None
