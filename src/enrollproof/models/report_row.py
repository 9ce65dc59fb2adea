"""Normalized vendor compliance-report row.

Every spreadsheet row, regardless of column labels, is reduced to this shape
before reconciliation.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel


class NormalizedReportRow(BaseModel):
    """Canonical (email, names, login date, portal URL) tuple for one row."""

    email: str = ""  # trimmed + lower-cased; "" means the row is skipped
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    login_date: Optional[date] = None
    portal_url: Optional[str] = None

    @property
    def has_email(self) -> bool:
        return bool(self.email)

    @property
    def has_name(self) -> bool:
        return bool(self.first_name or self.last_name)
