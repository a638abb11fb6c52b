"""Remote store interface shared by the HTTP gateway and the SQL repository.

A remote store holds the canonical multi-device copy of one entity type for
a user. Implementations must raise :class:`RemoteStoreUnavailable` (or a
subclass) for connectivity and configuration failures so callers can tell
"try again later" apart from programming errors.

Usage::

    class MyStore(RemoteStore[Note]):
        async def read_all(self, user_id): ...
        async def read_updated_since(self, user_id, timestamp): ...
        async def upsert_many(self, user_id, records): ...
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Generic

from notememo.schemas import R


class RemoteStoreUnavailable(Exception):
    """Raised when the remote store cannot be reached or used.

    Attributes:
        message: A human-readable description of the failure.
    """

    def __init__(self, message: str | None = None) -> None:
        self.message = message or "Remote store unavailable"
        super().__init__(self.message)


class MalformedResponseError(RemoteStoreUnavailable):
    """Raised when the remote answers with a payload that does not validate."""


class RemoteAuthError(Exception):
    """Raised when the remote rejects the access code.

    Attributes:
        status_code: HTTP status returned by the server (401 or 403).
    """

    def __init__(self, status_code: int, message: str | None = None) -> None:
        self.status_code = status_code
        self.message = message or f"Access code rejected (HTTP {status_code})"
        super().__init__(self.message)


class RemoteSyncDisabled(Exception):
    """Raised when the server has multi-device sync switched off."""

    def __init__(self, message: str | None = None) -> None:
        self.message = message or "Sync disabled on server"
        super().__init__(self.message)


class RemoteStore(ABC, Generic[R]):
    """Abstract remote collection of one record type, namespaced per user."""

    @abstractmethod
    async def read_all(self, user_id: str) -> list[R]:
        """Return every record of *user_id*, tombstones included."""
        ...

    @abstractmethod
    async def read_updated_since(self, user_id: str, timestamp: str) -> list[R]:
        """Return records whose ``updatedAt`` is strictly later than *timestamp*."""
        ...

    @abstractmethod
    async def upsert_many(self, user_id: str, records: Sequence[R]) -> str:
        """Upsert *records* by their stable id.

        Returns:
            The server-reported sync time confirming the write.
        """
        ...

    async def delete_not_present_in(self, user_id: str, ids_to_keep: set[str]) -> int:
        """Remove records whose id is absent from *ids_to_keep*.

        Only meaningful for categories. Stores whose upsert already implies
        replace-by-id semantics may keep this default no-op.

        Returns:
            Number of records removed.
        """
        return 0
