"""Compliance table view models consumed by operators and reminder sends."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, Field

from enrollproof.models.import_run import ImportRun
from enrollproof.models.plan_year import ComplianceStatus, PlanYear


class RosterStatus(StrEnum):
    """Display status; ``overridden`` wins over the stored status."""

    COMPLIANT = "compliant"
    NONCOMPLIANT = "noncompliant"
    OPTED_OUT = "opted_out"
    OVERRIDDEN = "overridden"


class ComplianceRow(BaseModel):
    employee_id: str
    name: str
    email: str
    compliance_status: Optional[ComplianceStatus] = None
    override_flag: bool = False
    status: RosterStatus = RosterStatus.NONCOMPLIANT
    last_login_at: Optional[datetime] = None
    portal_url: Optional[str] = None
    last_reminder_at: Optional[datetime] = None


class ComplianceSummary(BaseModel):
    in_scope: int = 0
    compliant: int = 0
    noncompliant: int = 0
    overridden: int = 0
    opted_out: int = 0

    @property
    def compliance_pct(self) -> float:
        if not self.in_scope:
            return 0.0
        return round(100.0 * self.compliant / self.in_scope, 1)


class ComplianceTable(BaseModel):
    employer_id: str
    plan_year: Optional[PlanYear] = None
    latest_run: Optional[ImportRun] = None
    rows: list[ComplianceRow] = Field(default_factory=list)
    summary: ComplianceSummary = ComplianceSummary()


class ReminderSelection(BaseModel):
    """Outcome of the reminder-eligibility filter."""

    recipients: list[ComplianceRow] = Field(default_factory=list)
    missing_link: list[ComplianceRow] = Field(default_factory=list)

    @property
    def missing_link_count(self) -> int:
        return len(self.missing_link)

    @property
    def recipient_ids(self) -> list[str]:
        return [r.employee_id for r in self.recipients]
