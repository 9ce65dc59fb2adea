"""Employee roster (CSV) import and notice-link generation."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Mapping

from enrollproof.core.exceptions import EmployerNotFound, EnrollProofError, InvalidRequest
from enrollproof.models.roster import NoticeLink, RosterImportCounts, RosterImportResult
from enrollproof.persistence.tables import EMPLOYEES, EMPLOYERS
from enrollproof.services.base import BaseService
from enrollproof.services.batching import chunked, write_batches
from enrollproof.services.compliance.reconcile import new_employee_token
from enrollproof.services.ingest.normalize import normalize_email, pick_text
from enrollproof.services.ingest.spreadsheet import parse_csv
from enrollproof.services.roster.plan_year import ensure_active_plan_year, ensure_employee_plan_year_rows

logger = logging.getLogger(__name__)

EMAIL_COLUMNS = ("email", "email address", "email_address")
FIRST_NAME_COLUMNS = ("first_name", "firstname", "first", "first name")
LAST_NAME_COLUMNS = ("last_name", "lastname", "last", "last name")
PHONE_COLUMNS = ("phone", "mobile")
EMPLOYEE_REF_COLUMNS = ("employee_ref", "employee_id", "employeeid", "employee id")
SAVINGS_CENTS_COLUMNS = ("annual_savings_cents",)
SAVINGS_DOLLAR_COLUMNS = ("annual_savings_dollars", "annual_savings", "annual savings")

_TRUTHY = frozenset({"true", "1", "yes", "y"})

# Sentinel: the CSV did not supply a savings value, keep whatever is stored.
KEEP = object()


def parse_eligible(value: str) -> bool:
    text = value.strip().lower()
    return True if not text else text in _TRUTHY


def parse_savings_cents(cents: str, dollars: str) -> Any:
    """Cents column wins; dollars accept ``$`` and ``,``. Blank or invalid -> KEEP."""
    if cents.strip():
        try:
            return round(float(cents.strip()))
        except ValueError:
            return KEEP
    cleaned = dollars.replace("$", "").replace(",", "").strip()
    if not cleaned:
        return KEEP
    try:
        return round(float(cleaned) * 100)
    except ValueError:
        return KEEP


def _fold(row: Mapping[str, Any]) -> dict[str, Any]:
    return {str(k).strip().lower(): v for k, v in row.items()}


def notice_link(base_url: str, token: str) -> str:
    return f"{base_url.rstrip('/')}/notice/{token}" if token else ""


class RosterImportService(BaseService):
    """Upserts a roster CSV by employer + email; tokens and opt-outs are preserved."""

    def run(self, employer_id: str, csv_text: str, dry_run: bool = False) -> RosterImportResult:
        if not csv_text or len(csv_text.strip()) < 5:
            raise InvalidRequest("Missing csvText")
        employer = self._store.get(EMPLOYERS, {"id": employer_id})
        if employer is None:
            raise EmployerNotFound(employer_id)

        counts = RosterImportCounts()
        seen: set[str] = set()
        inputs: list[dict[str, Any]] = []
        for raw in parse_csv(csv_text):
            row = _fold(raw)
            email = normalize_email(pick_text(row, EMAIL_COLUMNS))
            if not email:
                counts.skipped += 1
                continue
            if email in seen:
                counts.skipped_duplicates += 1
                continue
            seen.add(email)
            inputs.append({
                "email": email,
                "first_name": pick_text(row, FIRST_NAME_COLUMNS) or None,
                "last_name": pick_text(row, LAST_NAME_COLUMNS) or None,
                "phone": pick_text(row, PHONE_COLUMNS) or None,
                "employee_ref": pick_text(row, EMPLOYEE_REF_COLUMNS) or None,
                "eligible": parse_eligible(pick_text(row, ("eligible",))),
                "annual_savings_cents": parse_savings_cents(
                    pick_text(row, SAVINGS_CENTS_COLUMNS), pick_text(row, SAVINGS_DOLLAR_COLUMNS)
                ),
            })

        existing: dict[str, dict[str, Any]] = {}
        emails = [i["email"] for i in inputs]
        for part in chunked(emails, self._settings.imports.employee_batch_size):
            for e in self._store.select(EMPLOYEES, {"employer_id": employer_id, "email": list(part)}):
                existing[normalize_email(e["email"])] = e

        upserts: list[dict[str, Any]] = []
        for item in inputs:
            current = existing.get(item["email"])
            savings = item.pop("annual_savings_cents")
            row = {"employer_id": employer_id, **item}
            if savings is not KEEP:
                row["annual_savings_cents"] = savings

            if current is None:
                counts.inserted += 1
                row["token"] = "" if dry_run else new_employee_token()
            else:
                if not current.get("token"):
                    row["token"] = "" if dry_run else new_employee_token()
                if self._changed(current, item, savings):
                    counts.updated += 1
                else:
                    counts.unchanged += 1
            upserts.append(row)

        result = RosterImportResult(
            dry_run=dry_run,
            employer_id=employer_id,
            employer_name=str(employer.get("name") or ""),
            counts=counts,
        )
        if dry_run:
            return result

        written: list[dict[str, Any]] = []
        write_batches(
            "roster",
            upserts,
            self._settings.imports.employee_batch_size,
            lambda part: written.extend(self._store.upsert(EMPLOYEES, part, on_conflict=("employer_id", "email"))),
        )

        result.plan_year_sync_error = self._sync_plan_year(employer, [w["id"] for w in written])

        base_url = self._settings.notify.app_base_url
        result.links = [
            NoticeLink(
                email=w["email"],
                first_name=w.get("first_name") or "",
                last_name=w.get("last_name") or "",
                eligible=w.get("eligible") is not False,
                token=str(w.get("token") or ""),
                notice_link=notice_link(base_url, str(w.get("token") or "")),
            )
            for w in written
        ]
        logger.info(
            "Roster import for employer %s: inserted=%d updated=%d unchanged=%d skipped=%d duplicates=%d",
            employer_id, counts.inserted, counts.updated, counts.unchanged, counts.skipped,
            counts.skipped_duplicates,
        )
        return result

    @staticmethod
    def _changed(current: Mapping[str, Any], item: Mapping[str, Any], savings: Any) -> bool:
        for field in ("first_name", "last_name", "phone", "employee_ref"):
            if (current.get(field) or None) != item[field]:
                return True
        if (current.get("eligible") is not False) != item["eligible"]:
            return True
        return savings is not KEEP and current.get("annual_savings_cents") != savings

    def _sync_plan_year(self, employer: Mapping[str, Any], employee_ids: list[str]) -> str | None:
        """Provision the active plan year and key-only compliance records; failure is reported, not raised."""
        if not employee_ids:
            return None
        try:
            effective = employer.get("effective_date")
            if isinstance(effective, str) and effective.strip():
                effective = date.fromisoformat(effective.strip()[:10])
            plan_year = ensure_active_plan_year(self._store, employer["id"], effective or None)
            ensure_employee_plan_year_rows(self._store, plan_year.id, employee_ids)
        except (EnrollProofError, ValueError) as exc:
            logger.warning("Plan year sync failed for employer %s: %s", employer["id"], exc)
            return str(exc) or "Plan year sync failed."
        return None
