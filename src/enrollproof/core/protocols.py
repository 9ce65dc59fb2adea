"""Protocol interfaces for all EnrollProof abstractions.

All inter-layer communication uses these Protocols (structural typing,
no inheritance required), so backends are checked with isinstance().
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Protocol, Sequence, runtime_checkable


# ---------------------------------------------------------------------------
# Persistence: Record Store
# ---------------------------------------------------------------------------

@runtime_checkable
class IRecordStore(Protocol):
    """Hosted relational store reduced to filter, upsert and insert.

    ``where`` maps column -> value. A list/tuple/set value means IN,
    ``None`` means IS NULL. ``upsert`` merges only the supplied columns
    into the row identified by ``on_conflict``.
    """

    def select(self, table: str, where: Mapping[str, Any] | None = None) -> list[dict[str, Any]]: ...

    def get(self, table: str, where: Mapping[str, Any]) -> dict[str, Any] | None: ...

    def upsert(
        self, table: str, rows: Iterable[Mapping[str, Any]], on_conflict: Sequence[str]
    ) -> list[dict[str, Any]]: ...

    def insert(self, table: str, rows: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]: ...

    def update(self, table: str, where: Mapping[str, Any], values: Mapping[str, Any]) -> int: ...


# ---------------------------------------------------------------------------
# Persistence: Cache Backend
# ---------------------------------------------------------------------------

@runtime_checkable
class ICacheBackend(Protocol):
    """Redis-compatible cache interface."""

    def get(self, key: str) -> str | None: ...

    def setex(self, key: str, ttl: int, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


# ---------------------------------------------------------------------------
# Persistence: File Store
# ---------------------------------------------------------------------------

@runtime_checkable
class IFileStore(Protocol):
    """S3-compatible file storage interface."""

    def read(self, path: str) -> bytes: ...

    def write(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> str: ...

    def list_files(self, prefix: str) -> list[str]: ...


# ---------------------------------------------------------------------------
# Notification: Mail Transport
# ---------------------------------------------------------------------------

@runtime_checkable
class IMailTransport(Protocol):
    """One provider-specific outbound send call."""

    def send(
        self, *, access_token: str, sender: str, to: str, subject: str, text: str
    ) -> str | None: ...
