"""In-memory backends for unit tests: dict-backed fakes."""

from __future__ import annotations

import copy
import uuid
from typing import Any, Iterable, Mapping, Sequence

from enrollproof.core.exceptions import RecordStoreError
from enrollproof.persistence.tables import SURROGATE_ID_TABLES, key_fields


def _matches(row: Mapping[str, Any], where: Mapping[str, Any]) -> bool:
    for field, expected in where.items():
        actual = row.get(field)
        if expected is None:
            if actual is not None:
                return False
        elif isinstance(expected, (list, tuple, set, frozenset)):
            if actual not in expected:
                return False
        elif actual != expected:
            return False
    return True


def _check_conflict(table: str, on_conflict: Sequence[str]) -> tuple[str, ...]:
    keys = key_fields(table)
    if set(on_conflict) != set(keys):
        raise ValueError(f"{table} upserts must conflict on {keys}, got {tuple(on_conflict)}")
    return keys


class MemoryRecordStore:
    """Dict-backed IRecordStore for unit tests and the ``memory`` backend."""

    def __init__(self) -> None:
        self._tables: dict[str, list[dict[str, Any]]] = {}

    def _rows(self, table: str) -> list[dict[str, Any]]:
        key_fields(table)  # validates the name
        return self._tables.get(table, [])

    def _rows_for_write(self, table: str) -> list[dict[str, Any]]:
        key_fields(table)
        return self._tables.setdefault(table, [])

    def _find(self, table: str, key: Mapping[str, Any]) -> dict[str, Any] | None:
        for row in self._rows(table):
            if all(row.get(k) == v for k, v in key.items()):
                return row
        return None

    @staticmethod
    def _with_id(table: str, row: dict[str, Any]) -> dict[str, Any]:
        if table in SURROGATE_ID_TABLES and not row.get("id"):
            row["id"] = uuid.uuid4().hex
        return row

    def snapshot(self) -> dict[str, list[dict[str, Any]]]:
        """Deep copy of every table, for before/after comparisons."""
        return copy.deepcopy(self._tables)

    # ---- IRecordStore methods ----

    def select(self, table: str, where: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        where = where or {}
        return [dict(row) for row in self._rows(table) if _matches(row, where)]

    def get(self, table: str, where: Mapping[str, Any]) -> dict[str, Any] | None:
        rows = self.select(table, where)
        return rows[0] if rows else None

    def upsert(
        self, table: str, rows: Iterable[Mapping[str, Any]], on_conflict: Sequence[str]
    ) -> list[dict[str, Any]]:
        keys = _check_conflict(table, on_conflict)
        out: list[dict[str, Any]] = []
        for incoming in rows:
            incoming = dict(incoming)
            if table in SURROGATE_ID_TABLES and "id" in keys and not incoming.get("id"):
                existing = None
            else:
                missing = [k for k in keys if incoming.get(k) in (None, "")]
                if missing:
                    raise RecordStoreError(f"{table} upsert row missing key fields {missing}")
                existing = self._find(table, {k: incoming[k] for k in keys})
            if existing is not None:
                existing.update({k: v for k, v in incoming.items() if k != "id"})
                out.append(dict(existing))
            else:
                created = self._with_id(table, incoming)
                self._rows_for_write(table).append(created)
                out.append(dict(created))
        return out

    def insert(self, table: str, rows: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
        keys = key_fields(table)
        out: list[dict[str, Any]] = []
        for incoming in rows:
            created = self._with_id(table, dict(incoming))
            if self._find(table, {k: created.get(k) for k in keys}) is not None:
                raise RecordStoreError(f"Duplicate key in {table}: {[created.get(k) for k in keys]}")
            self._rows_for_write(table).append(created)
            out.append(dict(created))
        return out

    def update(self, table: str, where: Mapping[str, Any], values: Mapping[str, Any]) -> int:
        count = 0
        for row in self._rows(table):
            if _matches(row, where):
                row.update(values)
                count += 1
        return count


class MemoryCacheBackend:
    """Dict-backed ICacheBackend for unit tests."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._store.get(key)

    def setex(self, key: str, ttl: int, value: str) -> None:
        self._store[key] = value

    def delete(self, key: str) -> None:
        self._store.pop(key, None)


class MemoryFileStore:
    """Dict-backed IFileStore for unit tests."""

    def __init__(self) -> None:
        self._files: dict[str, bytes] = {}

    def read(self, path: str) -> bytes:
        return self._files[path]

    def write(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        self._files[path] = data
        return path

    def list_files(self, prefix: str) -> list[str]:
        return [k for k in self._files if k.startswith(prefix)]
