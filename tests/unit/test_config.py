"""Unit tests for request_session.session.config."""
from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from request_session.session.config import (
    RequestContext,
    SessionConfig,
    build_driver,
    load_config,
)
from request_session.storage.memory import InMemoryDriver


@pytest.fixture()
def config() -> SessionConfig:
    return SessionConfig(driver=InMemoryDriver())


class TestSessionConfig:
    def test_defaults(self, config: SessionConfig) -> None:
        assert config.name == "SessionId"
        assert config.ttl == -1
        assert config.maxlife == 1440
        assert config.path == "/"

    def test_driver_required(self) -> None:
        with pytest.raises(ValidationError):
            SessionConfig()  # type: ignore[call-arg]

    def test_driver_type_checked(self) -> None:
        with pytest.raises(ValidationError):
            SessionConfig(driver="not a driver")  # type: ignore[arg-type]

    def test_ttl_below_minus_one_rejected(self) -> None:
        with pytest.raises(ValidationError):
            SessionConfig(driver=InMemoryDriver(), ttl=-2)

    def test_maxlife_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            SessionConfig(driver=InMemoryDriver(), maxlife=0)

    def test_assignment_validated(self, config: SessionConfig) -> None:
        with pytest.raises(ValidationError):
            config.ttl = -5

    def test_effective_ttl_uses_maxlife_for_browser_session(self) -> None:
        config = SessionConfig(driver=InMemoryDriver(), ttl=-1, maxlife=900)
        assert config.effective_ttl() == 900

    def test_effective_ttl_adds_one_second(self) -> None:
        config = SessionConfig(driver=InMemoryDriver(), ttl=60)
        assert config.effective_ttl() == 61

    def test_effective_ttl_zero(self) -> None:
        config = SessionConfig(driver=InMemoryDriver(), ttl=0)
        assert config.effective_ttl() == 1


class TestRequestContext:
    def test_for_request_copies_config(self, config: SessionConfig) -> None:
        context = RequestContext.for_request(config)
        context.config.ttl = 30
        assert config.ttl == -1
        assert context.config.driver is config.driver

    def test_initial_outputs(self, config: SessionConfig) -> None:
        context = RequestContext.for_request(config)
        assert context.session_id is None
        assert context.expired is False
        assert context.id_changed is False
        assert context.effective_ttl is None

    def test_bind_id(self, config: SessionConfig) -> None:
        context = RequestContext.for_request(config)
        context.bind_id("abc")
        assert context.session_id == "abc"
        assert context.id_changed is True

    def test_bind_inbound_id_is_not_a_change(self, config: SessionConfig) -> None:
        context = RequestContext.for_request(config)
        context.bind_id("abc", changed=False)
        assert context.session_id == "abc"
        assert context.id_changed is False

    def test_expire_then_bind_clears_expired(self, config: SessionConfig) -> None:
        context = RequestContext.for_request(config)
        context.expire_id()
        assert context.expired is True
        assert context.session_id is None
        context.bind_id("new")
        assert context.expired is False


class TestBuildDriver:
    def test_memory_default(self) -> None:
        assert isinstance(build_driver({}), InMemoryDriver)

    def test_memory_explicit(self) -> None:
        assert isinstance(build_driver({"backend": "memory"}), InMemoryDriver)

    def test_sqlite(self, tmp_path: Path) -> None:
        pytest.importorskip("aiosqlite")
        from request_session.storage.sqlite import SQLiteDriver

        driver = build_driver({"backend": "sqlite", "db_path": str(tmp_path / "s.db")})
        assert isinstance(driver, SQLiteDriver)

    def test_unknown_backend(self) -> None:
        with pytest.raises(ValueError, match="Unknown session driver"):
            build_driver({"backend": "tape"})


class TestLoadConfig:
    def test_full_document(self, tmp_path: Path) -> None:
        path = tmp_path / "session.yaml"
        path.write_text(
            "name: sid\n"
            "ttl: 120\n"
            "maxlife: 600\n"
            "path: /app\n"
            "driver:\n"
            "  backend: memory\n",
            encoding="utf-8",
        )
        config = load_config(path)
        assert config.name == "sid"
        assert config.ttl == 120
        assert config.maxlife == 600
        assert config.path == "/app"
        assert isinstance(config.driver, InMemoryDriver)

    def test_empty_document_uses_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        config = load_config(path)
        assert config.ttl == -1
        assert isinstance(config.driver, InMemoryDriver)

    def test_non_mapping_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n", encoding="utf-8")
        with pytest.raises(ValueError, match="must be a mapping"):
            load_config(path)

    def test_invalid_values_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("maxlife: -3\n", encoding="utf-8")
        with pytest.raises(ValidationError):
            load_config(path)
