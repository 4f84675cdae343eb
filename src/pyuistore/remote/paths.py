"""Dataset paths and cache-key flattening."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator

from pyuistore._constants import CACHE_KEY_SEPARATOR


class PathSegment(BaseModel):
    """One step of a dataset path (currently always a named field)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["field"] = "field"
    value: str

    @field_validator("value")
    @classmethod
    def _check_value(cls, value: str) -> str:
        if not value:
            raise ValueError("path segment must be non-empty")
        if CACHE_KEY_SEPARATOR in value or "/" in value:
            raise ValueError(f"path segment must not contain '{CACHE_KEY_SEPARATOR}' or '/': {value!r}")
        return value


DatasetPath = Sequence[PathSegment]


def field(name: str) -> PathSegment:
    return PathSegment(value=name)


def make_path(*names: str) -> tuple[PathSegment, ...]:
    """Build a path from field names: ``make_path("inputs", "sales")``."""
    return tuple(PathSegment(value=name) for name in names)


def path_to_string(path: DatasetPath) -> str:
    return CACHE_KEY_SEPARATOR.join(segment.value for segment in path)


def string_to_path(path_str: str) -> tuple[PathSegment, ...]:
    if not path_str:
        return ()
    return make_path(*path_str.split(CACHE_KEY_SEPARATOR))


def cache_key(scope: str, path: DatasetPath) -> str:
    """Flatten ``(scope, path)`` into one cache key (``"ws.inputs.sales"``).

    An empty path maps to the bare scope.
    """
    path_str = path_to_string(path)
    return f"{scope}{CACHE_KEY_SEPARATOR}{path_str}" if path_str else scope


def is_within(key: str, prefix: str) -> bool:
    """True if cache key *key* equals *prefix* or lies below it."""
    return key == prefix or key.startswith(prefix + CACHE_KEY_SEPARATOR)
