"""Compliance table view: the latest import run's frozen roster, joined."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from enrollproof.core.exceptions import EmployerNotFound
from enrollproof.core.timeutil import parse_iso
from enrollproof.models.compliance import ComplianceRow, ComplianceSummary, ComplianceTable, RosterStatus
from enrollproof.models.events import EventType
from enrollproof.models.import_run import ImportRun
from enrollproof.models.plan_year import ComplianceStatus, PlanYear
from enrollproof.persistence.tables import (
    EMPLOYEE_PLAN_YEAR,
    EMPLOYEES,
    EMPLOYERS,
    EVENTS,
    IMPORT_RUN_MEMBERS,
    IMPORT_RUNS,
)
from enrollproof.services.base import BaseService
from enrollproof.services.roster.plan_year import get_active_plan_year, get_plan_year

NO_NAME = "(No name)"
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def display_status(record: dict[str, Any] | None) -> RosterStatus:
    if record is None:
        return RosterStatus.NONCOMPLIANT
    if record.get("override_flag"):
        return RosterStatus.OVERRIDDEN
    stored = record.get("compliance_status")
    if stored == ComplianceStatus.COMPLIANT.value:
        return RosterStatus.COMPLIANT
    if stored == ComplianceStatus.OPTED_OUT.value:
        return RosterStatus.OPTED_OUT
    return RosterStatus.NONCOMPLIANT


class ComplianceTableService(BaseService):
    """Builds the per-employee compliance table an operator reviews."""

    def latest_run(self, employer_id: str, plan_year_id: str) -> ImportRun | None:
        runs = self._store.select(IMPORT_RUNS, {"employer_id": employer_id, "plan_year_id": plan_year_id})
        if not runs:
            return None
        latest = max(runs, key=lambda r: parse_iso(r.get("imported_at")) or _EPOCH)
        return ImportRun.model_validate(latest)

    def build(self, employer_id: str, plan_year_id: str | None = None) -> ComplianceTable:
        if self._store.get(EMPLOYERS, {"id": employer_id}) is None:
            raise EmployerNotFound(employer_id)

        plan_year: PlanYear | None
        if plan_year_id:
            plan_year = get_plan_year(self._store, employer_id, plan_year_id)
        else:
            plan_year = get_active_plan_year(self._store, employer_id)
        if plan_year is None:
            return ComplianceTable(employer_id=employer_id)

        run = self.latest_run(employer_id, plan_year.id)
        if run is None:
            return ComplianceTable(employer_id=employer_id, plan_year=plan_year)

        member_ids = list(dict.fromkeys(
            m["employee_id"] for m in self._store.select(IMPORT_RUN_MEMBERS, {"run_id": run.id})
        ))
        if not member_ids:
            return ComplianceTable(employer_id=employer_id, plan_year=plan_year, latest_run=run)

        employees = {
            e["id"]: e
            for e in self._store.select(EMPLOYEES, {"employer_id": employer_id, "id": member_ids})
        }
        records = {
            r["employee_id"]: r
            for r in self._store.select(EMPLOYEE_PLAN_YEAR, {"plan_year_id": plan_year.id, "employee_id": member_ids})
        }
        last_reminders = self._last_reminders(employer_id, member_ids)

        rows: list[ComplianceRow] = []
        summary = ComplianceSummary(in_scope=len(member_ids))
        for employee_id in member_ids:
            employee = employees.get(employee_id, {})
            record = records.get(employee_id)
            status = display_status(record)
            name = f"{employee.get('first_name') or ''} {employee.get('last_name') or ''}".strip()

            reminded = last_reminders.get(employee_id)
            stored_reminder = parse_iso((record or {}).get("last_reminder_at"))
            if stored_reminder and (reminded is None or stored_reminder > reminded):
                reminded = stored_reminder

            rows.append(ComplianceRow(
                employee_id=employee_id,
                name=name or NO_NAME,
                email=str(employee.get("email") or ""),
                compliance_status=(record or {}).get("compliance_status"),
                override_flag=bool((record or {}).get("override_flag")),
                status=status,
                last_login_at=parse_iso((record or {}).get("last_portal_login_at")),
                portal_url=(record or {}).get("portal_invitation_url") or None,
                last_reminder_at=reminded,
            ))

            if status is RosterStatus.COMPLIANT:
                summary.compliant += 1
            elif status is RosterStatus.OVERRIDDEN:
                summary.overridden += 1
            elif status is RosterStatus.OPTED_OUT:
                summary.opted_out += 1
            else:
                summary.noncompliant += 1

        rows.sort(key=lambda r: r.email)
        return ComplianceTable(
            employer_id=employer_id, plan_year=plan_year, latest_run=run, rows=rows, summary=summary
        )

    def _last_reminders(self, employer_id: str, employee_ids: list[str]) -> dict[str, Any]:
        events = self._store.select(EVENTS, {
            "employer_id": employer_id,
            "employee_id": employee_ids,
            "event_type": EventType.REMINDER_SENT.value,
        })
        latest: dict[str, Any] = {}
        for event in events:
            at = parse_iso(event.get("created_at"))
            if at is None:
                continue
            current = latest.get(event["employee_id"])
            if current is None or at > current:
                latest[event["employee_id"]] = at
        return latest
