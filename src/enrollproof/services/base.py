"""Base service with common dependency wiring."""

from __future__ import annotations

from typing import Any

from enrollproof.core.config import AppSettings
from enrollproof.core.protocols import IRecordStore


class BaseService:
    """Common base for all EnrollProof services.

    Settings and the record store are injected at construction time; no
    service reads the process environment on its own.
    """

    def __init__(self, *, settings: AppSettings, store: IRecordStore) -> None:
        self._settings = settings
        self._store = store

    def health_check(self) -> dict[str, Any]:
        """Return service health status."""
        return {
            "service": self.__class__.__name__,
            "status": "healthy",
            "environment": self._settings.environment,
        }
