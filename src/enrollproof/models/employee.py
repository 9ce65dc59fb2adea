"""Employer and employee records, the identity anchors every import resolves to.

Employees are unique per employer by lower-cased email. Names are only ever
backfilled by imports, never overwritten; ``opted_out_at`` is only changed by
the employee's own notice actions.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel


class Election(StrEnum):
    OPT_IN = "opt_in"
    OPT_OUT = "opt_out"


class InsuranceSelection(StrEnum):
    YES = "yes"
    NO = "no"


class Employer(BaseModel):
    """Employer profile; only the fields the services read."""

    id: str
    name: str = ""
    support_email: str = ""
    sender_email: str = ""
    effective_date: Optional[date] = None
    opt_out_deadline: Optional[date] = None


class Employee(BaseModel):
    """One person at one employer."""

    id: str
    employer_id: str
    email: str
    token: str = ""
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    employee_ref: Optional[str] = None
    eligible: bool = True
    annual_savings_cents: Optional[int] = None

    # --- Notice engagement ---
    opted_out_at: Optional[datetime] = None
    election: Optional[Election] = None
    insurance_selection: Optional[InsuranceSelection] = None
    insurance_selected_at: Optional[datetime] = None
    notice_sent_at: Optional[datetime] = None
    notice_viewed_at: Optional[datetime] = None
    learn_more_viewed_at: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def is_opted_out(self) -> bool:
        return self.opted_out_at is not None
