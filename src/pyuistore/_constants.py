"""Internal constants shared across the library."""

USER_AGENT = "pyuistore"

#: Debounce quantum (seconds) between an in-memory write and its durable flush.
DEFAULT_DEBOUNCE_SECONDS = 0.1

DEFAULT_DB_NAME = "east_ui"
DEFAULT_TABLE_NAME = "ui_state"
DEFAULT_SCHEMA_VERSION = 1

DEFAULT_REPO = "default"
#: Seconds a cached dataset listing is considered fresh.
DEFAULT_STALE_TIME = 30.0
DEFAULT_REQUEST_TIMEOUT = 30.0

#: Separator used when flattening a ``(scope, path)`` pair into a cache key.
CACHE_KEY_SEPARATOR = "."

OCTET_STREAM = "application/octet-stream"
