"""Custom exception hierarchy for pyuistore."""

from __future__ import annotations


class UiStoreError(Exception):
    """Base exception for all pyuistore errors."""


class StoreConfigError(UiStoreError):
    """Invalid or missing configuration."""


class KeyNotFoundError(UiStoreError, KeyError):
    """A typed read required a key that is absent from the store.

    Plain blob reads never raise; this comes from the typed accessor layer.
    """

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Key not found: {key}")

    def __str__(self) -> str:
        return str(self.args[0])


class DatasetNotLoadedError(UiStoreError, LookupError):
    """A dataset (or listing) was read before being preloaded into the cache."""

    def __init__(self, key: str, *, what: str = "Dataset") -> None:
        self.key = key
        super().__init__(f"{what} not loaded: {key}. Ensure it is preloaded before reading it.")


class PersistenceError(UiStoreError):
    """Durable backing store failure (open, enumerate, or transaction)."""


class RemoteTransportError(UiStoreError):
    """HTTP-level failure (network, unexpected status, invalid body)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class RemoteApiError(RemoteTransportError):
    """The remote dataset API rejected a request."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "",
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.code = code
        super().__init__(message, status_code=status_code, endpoint=endpoint)


class RemoteAuthenticationError(RemoteApiError):
    """Bearer token missing, expired, or not authorized (HTTP 401/403)."""


class DatasetNotFoundError(RemoteApiError):
    """The requested dataset or workspace does not exist (HTTP 404)."""
