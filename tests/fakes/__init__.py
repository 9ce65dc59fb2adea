"""Shared test doubles: memory backends plus mail and store fakes."""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Sequence

from enrollproof.core.exceptions import EmailSendError, RecordStoreError
from enrollproof.models.notification import SenderAccount
from enrollproof.persistence.memory_backend import (
    MemoryCacheBackend,
    MemoryFileStore,
    MemoryRecordStore,
)

__all__ = [
    "FailingRecordStore",
    "MemoryCacheBackend",
    "MemoryFileStore",
    "MemoryRecordStore",
    "RecordingTransport",
    "StaticTokens",
]


class RecordingTransport:
    """IMailTransport that records every send; addresses in ``fail_for`` raise."""

    def __init__(self, fail_for: Iterable[str] = ()) -> None:
        self.sent: list[dict[str, str]] = []
        self._fail_for = {a.lower() for a in fail_for}

    def send(self, *, access_token: str, sender: str, to: str, subject: str, text: str) -> str | None:
        if to.lower() in self._fail_for:
            raise EmailSendError(f"Mailbox rejected {to}")
        self.sent.append({
            "access_token": access_token,
            "sender": sender,
            "to": to,
            "subject": subject,
            "text": text,
        })
        return f"msg-{len(self.sent)}"

    @property
    def recipients(self) -> list[str]:
        return [m["to"] for m in self.sent]


class StaticTokens:
    """Stands in for AccessTokenService: every account gets the same token."""

    def __init__(self, token: str = "test-access-token") -> None:
        self.token = token
        self.requested: list[str] = []

    def get_access_token(self, account: SenderAccount) -> str:
        self.requested.append(account.user_email)
        return self.token


class FailingRecordStore(MemoryRecordStore):
    """MemoryRecordStore whose writes to ``table`` fail from call ``fail_on_call`` on."""

    def __init__(self, table: str, fail_on_call: int = 0) -> None:
        super().__init__()
        self._fail_table = table
        self._fail_on_call = fail_on_call
        self._calls = 0
        self.armed = False

    def _maybe_fail(self, table: str) -> None:
        if not self.armed or table != self._fail_table:
            return
        call = self._calls
        self._calls += 1
        if call >= self._fail_on_call:
            raise RecordStoreError(f"Simulated outage writing {table}")

    def upsert(
        self, table: str, rows: Iterable[Mapping[str, Any]], on_conflict: Sequence[str]
    ) -> list[dict[str, Any]]:
        self._maybe_fail(table)
        return super().upsert(table, rows, on_conflict)

    def insert(self, table: str, rows: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
        self._maybe_fail(table)
        return super().insert(table, rows)
