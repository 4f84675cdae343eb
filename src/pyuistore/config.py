"""Store configuration for pyuistore."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from typing import Any

from pyuistore._constants import (
    DEFAULT_DB_NAME,
    DEFAULT_DEBOUNCE_SECONDS,
    DEFAULT_REPO,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_SCHEMA_VERSION,
    DEFAULT_STALE_TIME,
    DEFAULT_TABLE_NAME,
)
from pyuistore.exceptions import StoreConfigError


def _env_float(env: Mapping[str, str], name: str) -> float | None:
    raw = env.get(name)
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError as exc:
        raise StoreConfigError(f"{name} must be a number, got {raw!r}") from exc


@dataclasses.dataclass(frozen=True)
class PersistenceConfig:
    """Durable persistence configuration.

    Parameters
    ----------
    db_path : str
        Filesystem path of the SQLite database file (``":memory:"`` is
        accepted for throwaway stores).
    db_name : str
        Logical database name passed to the backend's ``open``.
    table_name : str
        Table holding ``(key, value)`` rows.
    schema_version : int
        Schema version recorded in the database on first open.
    debounce_seconds : float
        Delay between an in-memory write and the durable flush that
        mirrors it.  Writes landing inside one window coalesce.
    """

    db_path: str
    db_name: str = DEFAULT_DB_NAME
    table_name: str = DEFAULT_TABLE_NAME
    schema_version: int = DEFAULT_SCHEMA_VERSION
    debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS

    def __post_init__(self) -> None:
        if not self.db_path:
            raise StoreConfigError("db_path must be non-empty")
        if not self.table_name.isidentifier():
            raise StoreConfigError(f"table_name must be a valid identifier, got {self.table_name!r}")
        if self.schema_version < 1:
            raise StoreConfigError("schema_version must be >= 1")
        if self.debounce_seconds < 0:
            raise StoreConfigError("debounce_seconds must be >= 0")

    @classmethod
    def from_env(cls, **overrides: Any) -> PersistenceConfig:
        """Create configuration from ``UISTORE_DB_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "UISTORE_DB_PATH": "db_path",
            "UISTORE_DB_NAME": "db_name",
            "UISTORE_DB_TABLE": "table_name",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        schema_env = env.get("UISTORE_DB_SCHEMA_VERSION")
        if schema_env is not None and "schema_version" not in overrides:
            try:
                config_kwargs["schema_version"] = int(schema_env)
            except ValueError as exc:
                raise StoreConfigError(f"UISTORE_DB_SCHEMA_VERSION must be an integer, got {schema_env!r}") from exc

        debounce = _env_float(env, "UISTORE_DEBOUNCE_SECONDS")
        if debounce is not None and "debounce_seconds" not in overrides:
            config_kwargs["debounce_seconds"] = debounce

        config_kwargs.update(overrides)
        if "db_path" not in config_kwargs:
            raise StoreConfigError("db_path is required (set UISTORE_DB_PATH or pass db_path)")
        return cls(**config_kwargs)


@dataclasses.dataclass(frozen=True)
class RemoteCacheConfig:
    """Remote dataset cache configuration.

    Parameters
    ----------
    api_url : str
        Base URL of the dataset API server.
    repo : str
        Repository name.
    token : str or None
        Bearer token sent with every request.
    stale_time : float
        Seconds a cached dataset listing stays fresh.
    request_timeout : float
        Total timeout for a single HTTP request, in seconds.
    """

    api_url: str
    repo: str = DEFAULT_REPO
    token: str | None = dataclasses.field(default=None, repr=False)
    stale_time: float = DEFAULT_STALE_TIME
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT

    def __post_init__(self) -> None:
        if not self.api_url:
            raise StoreConfigError("api_url must be non-empty")
        if self.stale_time < 0:
            raise StoreConfigError("stale_time must be >= 0")
        if self.request_timeout <= 0:
            raise StoreConfigError("request_timeout must be > 0")

    @classmethod
    def from_env(cls, **overrides: Any) -> RemoteCacheConfig:
        """Create configuration from ``UISTORE_API_*`` environment variables.

        Reads ``UISTORE_API_URL``, ``UISTORE_API_REPO``, ``UISTORE_API_TOKEN``,
        ``UISTORE_STALE_TIME`` and ``UISTORE_REQUEST_TIMEOUT``. Explicit
        keyword arguments override environment values.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "UISTORE_API_URL": "api_url",
            "UISTORE_API_REPO": "repo",
            "UISTORE_API_TOKEN": "token",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        stale = _env_float(env, "UISTORE_STALE_TIME")
        if stale is not None and "stale_time" not in overrides:
            config_kwargs["stale_time"] = stale

        timeout = _env_float(env, "UISTORE_REQUEST_TIMEOUT")
        if timeout is not None and "request_timeout" not in overrides:
            config_kwargs["request_timeout"] = timeout

        config_kwargs.update(overrides)
        if "api_url" not in config_kwargs:
            raise StoreConfigError("api_url is required (set UISTORE_API_URL or pass api_url)")
        return cls(**config_kwargs)
