"""Remote dataset cache layer."""

from pyuistore.remote.api import DatasetApi, DatasetSource
from pyuistore.remote.cache import RemoteCache
from pyuistore.remote.paths import (
    DatasetPath,
    PathSegment,
    cache_key,
    make_path,
    path_to_string,
    string_to_path,
)

__all__ = [
    "DatasetApi",
    "DatasetPath",
    "DatasetSource",
    "PathSegment",
    "RemoteCache",
    "cache_key",
    "make_path",
    "path_to_string",
    "string_to_path",
]
