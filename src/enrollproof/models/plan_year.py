"""Plan years and per-employee plan-year compliance records."""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel


class PlanYearStatus(StrEnum):
    ACTIVE = "active"
    CLOSED = "closed"


class ComplianceStatus(StrEnum):
    COMPLIANT = "compliant"
    NONCOMPLIANT = "noncompliant"
    OPTED_OUT = "opted_out"


class PlanYear(BaseModel):
    """Employer-scoped date window that portal logins are measured against."""

    id: str
    employer_id: str
    name: str = ""
    start_date: date
    end_date: date
    status: PlanYearStatus = PlanYearStatus.ACTIVE

    @property
    def window_start(self) -> datetime:
        return datetime.combine(self.start_date, time(0, 0, 0), tzinfo=timezone.utc)

    @property
    def window_end(self) -> datetime:
        return datetime.combine(self.end_date, time(23, 59, 59), tzinfo=timezone.utc)

    def contains(self, moment: datetime) -> bool:
        """Inclusive on both ends."""
        return self.window_start <= moment <= self.window_end


class EmployeePlanYear(BaseModel):
    """Compliance state for one (employee, plan year)."""

    employee_id: str
    plan_year_id: str
    compliance_status: Optional[ComplianceStatus] = None
    override_flag: bool = False
    last_portal_login_at: Optional[datetime] = None
    portal_invitation_url: Optional[str] = None
    compliant_at: Optional[datetime] = None
    last_reminder_at: Optional[datetime] = None
