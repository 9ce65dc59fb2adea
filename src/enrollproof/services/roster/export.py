"""Employee status CSV export."""

from __future__ import annotations

import csv
import io
import re

from enrollproof.core.exceptions import EmployerNotFound
from enrollproof.core.protocols import IRecordStore
from enrollproof.models.events import EventType
from enrollproof.persistence.tables import EMPLOYEES, EMPLOYERS, EVENTS
from enrollproof.services.roster.roster_import import notice_link

EXPORT_COLUMNS = (
    "employee_ref",
    "first_name",
    "last_name",
    "email",
    "phone",
    "eligible",
    "viewed",
    "opted_out_at",
    "status",
    "notice_link",
)


def export_file_name(employer_name: str) -> str:
    safe = re.sub(r"[^a-z0-9]+", "_", (employer_name or "employer"), flags=re.IGNORECASE).strip("_").lower()
    return f"{safe or 'employer'}_employee_status_export.csv"


def engagement_status(opted_out: bool, viewed: bool) -> str:
    if opted_out:
        return "Opted out"
    return "Active" if viewed else "Pending"


def export_employee_status_csv(store: IRecordStore, employer_id: str, base_url: str) -> tuple[str, str]:
    """Return ``(file_name, csv_text)`` for every employee of the employer, by last name."""
    employer = store.get(EMPLOYERS, {"id": employer_id})
    if employer is None:
        raise EmployerNotFound(employer_id)

    employees = store.select(EMPLOYEES, {"employer_id": employer_id})
    employees.sort(key=lambda e: (e.get("last_name") is None, (e.get("last_name") or "").lower()))
    viewed_ids = {
        ev["employee_id"]
        for ev in store.select(EVENTS, {"employer_id": employer_id, "event_type": EventType.PAGE_VIEW.value})
    }

    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(EXPORT_COLUMNS)
    for e in employees:
        viewed = e["id"] in viewed_ids
        token = str(e.get("token") or "")
        writer.writerow([
            e.get("employee_ref") or "",
            e.get("first_name") or "",
            e.get("last_name") or "",
            e.get("email") or "",
            e.get("phone") or "",
            "true" if e.get("eligible") is not False else "false",
            "true" if viewed else "false",
            e.get("opted_out_at") or "",
            engagement_status(bool(e.get("opted_out_at")), viewed),
            notice_link(base_url, token),
        ])
    return export_file_name(str(employer.get("name") or "")), buf.getvalue()
