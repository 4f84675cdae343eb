"""pyuistore - Reactive key-value state store with durable and remote backing."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyuistore")
except PackageNotFoundError:
    __version__ = "0+local"
from pyuistore.backends import DurableBackend, SqliteBackend
from pyuistore.config import PersistenceConfig, RemoteCacheConfig
from pyuistore.exceptions import (
    DatasetNotFoundError,
    DatasetNotLoadedError,
    KeyNotFoundError,
    PersistenceError,
    RemoteApiError,
    RemoteAuthenticationError,
    RemoteTransportError,
    StoreConfigError,
    UiStoreError,
)
from pyuistore.remote import (
    DatasetApi,
    DatasetPath,
    DatasetSource,
    PathSegment,
    RemoteCache,
    cache_key,
    make_path,
)
from pyuistore.scheduling import AsyncioTaskScheduler, DeadlineQueue, TaskScheduler
from pyuistore.store import (
    PersistentStore,
    StoreInterface,
    Subscribable,
    UiStore,
    create_store,
)
from pyuistore.tracking import is_tracking, track_dependencies, track_key
from pyuistore.typed import DatasetAccessor, StateAccessor, decode_value, encode_value

__all__ = [
    "__version__",
    "AsyncioTaskScheduler",
    "DatasetAccessor",
    "DatasetApi",
    "DatasetNotFoundError",
    "DatasetNotLoadedError",
    "DatasetPath",
    "DatasetSource",
    "DeadlineQueue",
    "DurableBackend",
    "KeyNotFoundError",
    "PathSegment",
    "PersistenceConfig",
    "PersistenceError",
    "PersistentStore",
    "RemoteApiError",
    "RemoteAuthenticationError",
    "RemoteCache",
    "RemoteCacheConfig",
    "RemoteTransportError",
    "SqliteBackend",
    "StateAccessor",
    "StoreConfigError",
    "StoreInterface",
    "Subscribable",
    "TaskScheduler",
    "UiStore",
    "UiStoreError",
    "cache_key",
    "create_store",
    "decode_value",
    "encode_value",
    "is_tracking",
    "make_path",
    "track_dependencies",
    "track_key",
]
