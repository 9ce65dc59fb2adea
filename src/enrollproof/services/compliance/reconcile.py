"""Compliance import reconciliation.

Matches vendor report rows to the employer's roster, backfills missing
names, decides each employee's plan-year compliance status and freezes the
in-scope roster of the run. A dry run performs the same reads and decisions
but writes nothing.

Writes are chunked; chunk boundaries carry no transactional guarantee, so a
failed real import can leave earlier batches applied. Re-running the same
file is safe because every write is an upsert on a natural key.
"""

from __future__ import annotations

import logging
import secrets
from typing import Any, Sequence

from enrollproof.core.config import AppSettings
from enrollproof.core.exceptions import EmployerNotFound, NoActivePlanYear, RecordStoreError, StorageWriteFailed
from enrollproof.core.protocols import IRecordStore
from enrollproof.core.timeutil import to_iso, utc_midnight, utc_now
from enrollproof.models.import_run import ImportCounts, ImportResult
from enrollproof.models.plan_year import ComplianceStatus, PlanYear
from enrollproof.models.report_row import NormalizedReportRow
from enrollproof.persistence.tables import (
    EMPLOYEE_PLAN_YEAR,
    EMPLOYEES,
    EMPLOYERS,
    IMPORT_RUN_MEMBERS,
    IMPORT_RUNS,
)
from enrollproof.services.base import BaseService
from enrollproof.services.batching import chunked, write_batches
from enrollproof.services.ingest.normalize import guess_name_from_email, normalize_row
from enrollproof.services.ingest.spreadsheet import parse_spreadsheet
from enrollproof.services.roster.plan_year import get_active_plan_year, get_plan_year

logger = logging.getLogger(__name__)

Name = tuple[str | None, str | None]


def new_employee_token() -> str:
    """Opaque 32-hex-character notice token."""
    return secrets.token_hex(16)


def _blank(value: Any) -> bool:
    return value is None or not str(value).strip()


def decide_status(row: NormalizedReportRow, opted_out: bool, plan_year: PlanYear) -> tuple[ComplianceStatus, str | None, str | None]:
    """Return (status, login timestamp, compliant-at) for a non-overridden employee."""
    login_at = utc_midnight(row.login_date) if row.login_date else None
    if opted_out:
        return ComplianceStatus.OPTED_OUT, to_iso(login_at), None
    if login_at is not None and plan_year.contains(login_at):
        return ComplianceStatus.COMPLIANT, to_iso(login_at), to_iso(login_at)
    return ComplianceStatus.NONCOMPLIANT, to_iso(login_at), None


class ComplianceImportService(BaseService):
    """Reconciles one vendor compliance report against an employer's roster."""

    def __init__(self, *, settings: AppSettings, store: IRecordStore) -> None:
        super().__init__(settings=settings, store=store)
        self._batches = settings.imports

    # ---- public ----

    def run(
        self,
        employer_id: str,
        file_bytes: bytes,
        file_name: str = "",
        plan_year_id: str | None = None,
        dry_run: bool = False,
    ) -> ImportResult:
        if self._store.get(EMPLOYERS, {"id": employer_id}) is None:
            raise EmployerNotFound(employer_id)
        plan_year = self._resolve_plan_year(employer_id, plan_year_id)

        rows = [normalize_row(raw) for raw in parse_spreadsheet(file_bytes, file_name)]
        counts = ImportCounts(scanned=len(rows))

        emails: list[str] = []
        name_hints: dict[str, Name] = {}
        for row in rows:
            if not row.has_email:
                counts.skipped_no_email += 1
                continue
            emails.append(row.email)
            if row.has_name:
                name_hints.setdefault(row.email, (row.first_name, row.last_name))
        unique_emails = list(dict.fromkeys(emails))
        counts.in_scope = len(unique_emails)

        existing = self._load_employees(employer_id, unique_emails)
        employee_upserts = self._stage_employee_upserts(employer_id, unique_emails, existing, name_hints)
        counts.created_employees = sum(1 for e in unique_emails if e not in existing)

        if dry_run:
            # Staged creations are not resolvable without writing them.
            resolved = existing
        else:
            write_batches(
                "employees",
                employee_upserts,
                self._batches.employee_batch_size,
                lambda part: self._store.upsert(EMPLOYEES, part, on_conflict=("employer_id", "email")),
            )
            resolved = self._load_employees(employer_id, unique_emails)

        overrides = self._load_overrides(plan_year.id)

        staged: dict[str, dict[str, Any]] = {}
        scope_ids: list[str] = []
        for row in rows:
            if not row.has_email:
                continue
            employee = resolved.get(row.email)
            if employee is None:
                counts.skipped_no_employee_match += 1
                continue

            employee_id = employee["id"]
            scope_ids.append(employee_id)
            counts.matched_employees += 1

            if employee_id in overrides:
                login_at = utc_midnight(row.login_date) if row.login_date else None
                staged[employee_id] = {
                    "employee_id": employee_id,
                    "plan_year_id": plan_year.id,
                    "last_portal_login_at": to_iso(login_at),
                    "portal_invitation_url": row.portal_url,
                }
                counts.skipped_override += 1
                continue

            status, login_at_iso, compliant_at = decide_status(
                row, opted_out=not _blank(employee.get("opted_out_at")), plan_year=plan_year
            )
            if status is ComplianceStatus.COMPLIANT:
                counts.compliant_set += 1
            elif status is ComplianceStatus.NONCOMPLIANT:
                counts.noncompliant_set += 1
            else:
                counts.opted_out_set += 1

            # Later rows for the same employee replace earlier ones.
            staged[employee_id] = {
                "employee_id": employee_id,
                "plan_year_id": plan_year.id,
                "compliance_status": status.value,
                "last_portal_login_at": login_at_iso,
                "compliant_at": compliant_at,
                "portal_invitation_url": row.portal_url,
            }

        member_ids = list(dict.fromkeys(scope_ids))

        if dry_run:
            logger.info(
                "Dry-run compliance import for employer %s plan year %s: scanned=%d in_scope=%d "
                "created=%d compliant=%d noncompliant=%d",
                employer_id, plan_year.id, counts.scanned, counts.in_scope,
                counts.created_employees, counts.compliant_set, counts.noncompliant_set,
            )
            return ImportResult(dry_run=True, employer_id=employer_id, plan_year_id=plan_year.id, counts=counts)

        compliance_rows = list(staged.values())
        write_batches(
            "compliance",
            compliance_rows,
            self._batches.compliance_batch_size,
            lambda part: self._store.upsert(EMPLOYEE_PLAN_YEAR, part, on_conflict=("employee_id", "plan_year_id")),
        )

        try:
            run = self._store.insert(IMPORT_RUNS, [{
                "employer_id": employer_id,
                "plan_year_id": plan_year.id,
                "imported_at": to_iso(utc_now()),
                "source_filename": file_name or None,
            }])[0]
        except RecordStoreError as exc:
            raise StorageWriteFailed("import_run", 0, str(exc)) from exc

        members = [{"run_id": run["id"], "employee_id": eid} for eid in member_ids]
        write_batches(
            "members",
            members,
            self._batches.member_batch_size,
            lambda part: self._store.insert(IMPORT_RUN_MEMBERS, part),
        )

        counts.upserts = len(compliance_rows)
        counts.run_id = run["id"]
        counts.members = len(member_ids)

        logger.info(
            "Compliance import %s for employer %s plan year %s: scanned=%d in_scope=%d created=%d "
            "compliant=%d noncompliant=%d opted_out=%d overridden=%d members=%d",
            run["id"], employer_id, plan_year.id, counts.scanned, counts.in_scope,
            counts.created_employees, counts.compliant_set, counts.noncompliant_set,
            counts.opted_out_set, counts.skipped_override, counts.members,
        )
        return ImportResult(dry_run=False, employer_id=employer_id, plan_year_id=plan_year.id, counts=counts)

    # ---- internals ----

    def _resolve_plan_year(self, employer_id: str, plan_year_id: str | None) -> PlanYear:
        if plan_year_id:
            return get_plan_year(self._store, employer_id, plan_year_id)
        plan_year = get_active_plan_year(self._store, employer_id)
        if plan_year is None:
            raise NoActivePlanYear(employer_id)
        return plan_year

    def _load_employees(self, employer_id: str, emails: Sequence[str]) -> dict[str, dict[str, Any]]:
        by_email: dict[str, dict[str, Any]] = {}
        for part in chunked(emails, self._batches.employee_batch_size):
            for row in self._store.select(EMPLOYEES, {"employer_id": employer_id, "email": list(part)}):
                by_email[str(row["email"]).strip().lower()] = row
        return by_email

    def _load_overrides(self, plan_year_id: str) -> set[str]:
        rows = self._store.select(EMPLOYEE_PLAN_YEAR, {"plan_year_id": plan_year_id, "override_flag": True})
        return {r["employee_id"] for r in rows}

    @staticmethod
    def _stage_employee_upserts(
        employer_id: str,
        emails: Sequence[str],
        existing: dict[str, dict[str, Any]],
        name_hints: dict[str, Name],
    ) -> list[dict[str, Any]]:
        """New employees, plus name backfills that never overwrite a non-blank name."""
        upserts: list[dict[str, Any]] = []
        for email in emails:
            hint = name_hints.get(email)
            current = existing.get(email)

            if current is None:
                first, last = hint or guess_name_from_email(email)
                upserts.append({
                    "employer_id": employer_id,
                    "email": email,
                    "eligible": True,
                    "token": new_employee_token(),
                    "first_name": first,
                    "last_name": last,
                })
                continue

            has_first = not _blank(current.get("first_name"))
            has_last = not _blank(current.get("last_name"))
            if has_first and has_last:
                continue
            if hint is not None:
                first, last = hint
            elif not has_first and not has_last:
                first, last = guess_name_from_email(email)
            else:
                continue

            fill: dict[str, Any] = {}
            if not has_first and first:
                fill["first_name"] = first
            if not has_last and last:
                fill["last_name"] = last
            if fill:
                upserts.append({"employer_id": employer_id, "email": email, **fill})
        return upserts

