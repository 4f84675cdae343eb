from __future__ import annotations

import pytest

from pyuistore.config import PersistenceConfig, RemoteCacheConfig
from pyuistore.exceptions import StoreConfigError


def test_persistence_defaults() -> None:
    config = PersistenceConfig(db_path="state.db")

    assert config.db_name == "east_ui"
    assert config.table_name == "ui_state"
    assert config.schema_version == 1
    assert config.debounce_seconds == 0.1


def test_persistence_from_env_with_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("UISTORE_DB_PATH", "/tmp/ui.db")
    monkeypatch.setenv("UISTORE_DB_TABLE", "panel_state")
    monkeypatch.setenv("UISTORE_DB_SCHEMA_VERSION", "3")
    monkeypatch.setenv("UISTORE_DEBOUNCE_SECONDS", "0.25")

    config = PersistenceConfig.from_env(debounce_seconds=0.5)

    assert config.db_path == "/tmp/ui.db"
    assert config.table_name == "panel_state"
    assert config.schema_version == 3
    assert config.debounce_seconds == 0.5


def test_persistence_from_env_requires_path(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("UISTORE_DB_PATH", raising=False)

    with pytest.raises(StoreConfigError, match="db_path is required"):
        PersistenceConfig.from_env()


def test_persistence_from_env_rejects_bad_numbers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("UISTORE_DEBOUNCE_SECONDS", "soon")

    with pytest.raises(StoreConfigError, match="UISTORE_DEBOUNCE_SECONDS"):
        PersistenceConfig.from_env(db_path="state.db")


@pytest.mark.parametrize(
    "kwargs",
    [
        {"db_path": ""},
        {"db_path": "x.db", "table_name": "bad-name"},
        {"db_path": "x.db", "schema_version": 0},
        {"db_path": "x.db", "debounce_seconds": -1},
    ],
)
def test_persistence_validation(kwargs: dict[str, object]) -> None:
    with pytest.raises(StoreConfigError):
        PersistenceConfig(**kwargs)  # type: ignore[arg-type]


def test_remote_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("UISTORE_API_URL", "https://east.example.com")
    monkeypatch.setenv("UISTORE_API_REPO", "analytics")
    monkeypatch.setenv("UISTORE_API_TOKEN", "tok-123")
    monkeypatch.setenv("UISTORE_STALE_TIME", "5")

    config = RemoteCacheConfig.from_env(request_timeout=3.0)

    assert config.api_url == "https://east.example.com"
    assert config.repo == "analytics"
    assert config.token == "tok-123"
    assert config.stale_time == 5.0
    assert config.request_timeout == 3.0
    assert "tok-123" not in repr(config)


def test_remote_from_env_requires_url(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("UISTORE_API_URL", raising=False)

    with pytest.raises(StoreConfigError):
        RemoteCacheConfig.from_env()


@pytest.mark.parametrize(
    "kwargs",
    [
        {"api_url": ""},
        {"api_url": "http://x", "stale_time": -1},
        {"api_url": "http://x", "request_timeout": 0},
    ],
)
def test_remote_validation(kwargs: dict[str, object]) -> None:
    with pytest.raises(StoreConfigError):
        RemoteCacheConfig(**kwargs)  # type: ignore[arg-type]
