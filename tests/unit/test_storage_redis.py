"""Unit tests for request_session.storage.redis.RedisDriver.

All tests inject an AsyncMock in place of the real redis client so no
Redis server is required.  The ``redis`` package itself is still needed for
its exception types; the module is skipped when it is not installed.
"""
from __future__ import annotations

import importlib.util
import json
from typing import Any
from unittest.mock import AsyncMock

import pytest

from request_session.errors import DriverError, LockTimeoutError

_redis_available = importlib.util.find_spec("redis") is not None

pytestmark = pytest.mark.skipif(not _redis_available, reason="redis not installed")


def _make_driver(**options: Any) -> Any:
    """Return a RedisDriver whose client is an AsyncMock."""
    from request_session.storage.redis import RedisDriver

    client = AsyncMock()
    client.set.return_value = True
    client.get.return_value = None
    client.eval.return_value = 1
    driver = RedisDriver(client=client, **options)
    driver._mock_client = client  # type: ignore[attr-defined]
    return driver


class TestRedisDriverConstruction:
    def test_keys(self) -> None:
        driver = _make_driver(key_prefix="app:")
        assert driver._key("abc") == "app:abc"
        assert driver._lock_key("abc") == "app:abc:lock"

    def test_repr(self) -> None:
        assert repr(_make_driver()) == "RedisDriver(key_prefix='session:')"

    def test_from_url_without_server(self) -> None:
        from request_session.storage.redis import RedisDriver

        driver = RedisDriver(url="redis://localhost:6399/3")
        assert driver._client is not None


class TestRedisDriverOpen:
    @pytest.mark.asyncio
    async def test_open_acquires_lock_and_reads(self) -> None:
        driver = _make_driver(lock_ttl=30)
        client = driver._mock_client
        client.get.return_value = json.dumps({"a": 1})

        assert await driver.open("s1") == {"a": 1}

        args, kwargs = client.set.call_args
        assert args[0] == "session:s1:lock"
        assert kwargs == {"nx": True, "px": 30000}
        assert driver._tokens["s1"] == args[1]
        client.get.assert_awaited_with("session:s1")
        client.eval.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_open_missing_releases_lock(self) -> None:
        from request_session.storage.redis import RELEASE_LOCK_SCRIPT

        driver = _make_driver()
        client = driver._mock_client

        assert await driver.open("s1") == {}

        token = client.set.call_args.args[1]
        client.eval.assert_awaited_once_with(RELEASE_LOCK_SCRIPT, 1, "session:s1:lock", token)
        assert "s1" not in driver._tokens

    @pytest.mark.asyncio
    async def test_open_polls_until_free(self) -> None:
        driver = _make_driver()
        client = driver._mock_client
        client.set.side_effect = [None, None, True]
        client.get.return_value = json.dumps({"a": 1})

        assert await driver.open("s1") == {"a": 1}
        assert client.set.await_count == 3

    @pytest.mark.asyncio
    async def test_open_times_out(self) -> None:
        driver = _make_driver(lock_timeout=0.1)
        driver._mock_client.set.return_value = None
        with pytest.raises(LockTimeoutError) as exc_info:
            await driver.open("s1")
        assert exc_info.value.session_id == "s1"

    @pytest.mark.asyncio
    async def test_redis_error_wrapped(self) -> None:
        from redis.exceptions import ConnectionError as RedisConnectionError

        driver = _make_driver()
        driver._mock_client.set.side_effect = RedisConnectionError("down")
        with pytest.raises(DriverError, match="down") as exc_info:
            await driver.open("s1")
        assert isinstance(exc_info.value.__cause__, RedisConnectionError)

    @pytest.mark.asyncio
    async def test_corrupt_payload_wrapped(self) -> None:
        driver = _make_driver()
        driver._mock_client.get.return_value = "{not json"
        with pytest.raises(DriverError):
            await driver.read("s1")


class TestRedisDriverWrites:
    @pytest.mark.asyncio
    async def test_save_without_lock_passes_empty_token(self) -> None:
        from request_session.storage.redis import SAVE_SCRIPT

        driver = _make_driver()
        await driver.save("s1", {"a": 1}, 61)
        driver._mock_client.eval.assert_awaited_once_with(
            SAVE_SCRIPT, 2, "session:s1", "session:s1:lock", json.dumps({"a": 1}), 61, ""
        )

    @pytest.mark.asyncio
    async def test_save_after_open_releases_token(self) -> None:
        driver = _make_driver()
        client = driver._mock_client
        client.get.return_value = json.dumps({"a": 1})
        await driver.open("s1")
        token = driver._tokens["s1"]

        await driver.save("s1", {"a": 2}, 61)

        assert client.eval.call_args.args[-1] == token
        assert "s1" not in driver._tokens

    @pytest.mark.asyncio
    async def test_failed_save_keeps_token(self) -> None:
        from redis.exceptions import RedisError

        driver = _make_driver()
        client = driver._mock_client
        client.get.return_value = json.dumps({"a": 1})
        await driver.open("s1")
        client.eval.side_effect = RedisError("boom")

        with pytest.raises(DriverError):
            await driver.save("s1", {"a": 2}, 61)
        assert "s1" in driver._tokens

    @pytest.mark.asyncio
    async def test_unlock_without_lock_is_noop(self) -> None:
        driver = _make_driver()
        await driver.unlock("s1")
        driver._mock_client.eval.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unlock_releases_owned_lock(self) -> None:
        from request_session.storage.redis import RELEASE_LOCK_SCRIPT

        driver = _make_driver()
        client = driver._mock_client
        client.get.return_value = json.dumps({"a": 1})
        await driver.open("s1")
        token = driver._tokens["s1"]

        await driver.unlock("s1")

        client.eval.assert_awaited_once_with(RELEASE_LOCK_SCRIPT, 1, "session:s1:lock", token)
        assert "s1" not in driver._tokens

    @pytest.mark.asyncio
    async def test_regenerate_moves_token(self) -> None:
        from request_session.storage.redis import REGENERATE_SCRIPT

        driver = _make_driver()
        client = driver._mock_client
        client.get.return_value = json.dumps({"a": 1})
        await driver.open("old")
        token = driver._tokens["old"]

        await driver.regenerate("old", "new")

        client.eval.assert_awaited_once_with(
            REGENERATE_SCRIPT,
            4,
            "session:old",
            "session:new",
            "session:old:lock",
            "session:new:lock",
            token,
        )
        assert driver._tokens == {"new": token}

    @pytest.mark.asyncio
    async def test_regenerate_error_wrapped(self) -> None:
        from redis.exceptions import RedisError

        driver = _make_driver()
        driver._mock_client.eval.side_effect = RedisError("nope")
        with pytest.raises(DriverError, match="regenerate"):
            await driver.regenerate("old", "new")
