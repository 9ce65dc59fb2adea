"""Admin endpoints: compliance imports, reminders, rosters, notices."""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, ConfigDict, Field

from enrollproof.api.deps import (
    get_compliance_import,
    get_compliance_table,
    get_file_store,
    get_notice_send,
    get_reminders,
    get_roster_import,
    get_settings,
    get_store,
)
from enrollproof.core.config import AppSettings
from enrollproof.core.exceptions import EmployerNotFound, FileStoreError, InvalidRequest
from enrollproof.core.protocols import IFileStore, IRecordStore
from enrollproof.models.notification import SenderMode
from enrollproof.persistence.s3_backend import XLSX_CONTENT_TYPE, report_archive_key
from enrollproof.persistence.tables import EMPLOYERS
from enrollproof.services.compliance.reconcile import ComplianceImportService
from enrollproof.services.compliance.send_reminders import ReminderSendService
from enrollproof.services.compliance.table import ComplianceTableService
from enrollproof.services.notify.senders import get_sender_status, resolve_employer_sender, resolve_sender
from enrollproof.services.roster.export import export_employee_status_csv
from enrollproof.services.roster.notice_send import NoticeSendService
from enrollproof.services.roster.roster_import import RosterImportService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["admin"])


class ComplianceImportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_base64: str = Field("", alias="fileBase64")
    file_name: str = Field("", alias="fileName")
    plan_year_id: Optional[str] = None
    dry_run: bool = Field(False, alias="dryRun")


class ReminderRequest(BaseModel):
    plan_year_id: Optional[str] = None
    employee_id: Optional[str] = None
    employee_ids: list[str] = Field(default_factory=list)
    all_noncompliant: bool = False
    mode: SenderMode = SenderMode.ADMIN
    hr_user_id: Optional[str] = None


class RosterImportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    csv_text: str = Field("", alias="csvText")
    dry_run: bool = Field(False, alias="dryRun")


class NoticeSendRequest(BaseModel):
    template_id: str = ""
    employee_id: Optional[str] = None
    employee_ids: list[str] = Field(default_factory=list)
    subject_override: Optional[str] = None
    body_override: Optional[str] = None


def decode_upload(file_base64: str) -> bytes:
    """Base64 body, optionally as a ``data:...;base64,`` URL."""
    payload = file_base64.split(",", 1)[1] if file_base64.startswith("data:") else file_base64
    if not payload.strip():
        raise InvalidRequest("Missing fileBase64")
    try:
        return base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError) as exc:
        raise InvalidRequest(f"fileBase64 is not valid base64: {exc}") from exc


def _requested_ids(employee_id: str | None, employee_ids: list[str]) -> list[str]:
    ids = list(employee_ids)
    if employee_id:
        ids.insert(0, employee_id)
    return [i for i in dict.fromkeys(ids) if i]


@router.post("/employers/{employer_id}/compliance/import")
def import_compliance_report(
    employer_id: str,
    body: ComplianceImportRequest,
    service: ComplianceImportService = Depends(get_compliance_import),
    file_store: IFileStore | None = Depends(get_file_store),
) -> dict[str, Any]:
    file_bytes = decode_upload(body.file_base64)
    result = service.run(
        employer_id,
        file_bytes,
        file_name=body.file_name,
        plan_year_id=body.plan_year_id,
        dry_run=body.dry_run,
    )

    archived_to = None
    if not result.dry_run and file_store is not None and result.counts.run_id:
        key = report_archive_key(employer_id, result.counts.run_id, body.file_name)
        try:
            archived_to = file_store.write(key, file_bytes, XLSX_CONTENT_TYPE)
        except FileStoreError as exc:
            # The import itself is committed; only the archive copy is missing.
            logger.warning("Archiving compliance report for run %s failed: %s", result.counts.run_id, exc)

    return {"ok": True, **result.model_dump(), "archived_to": archived_to}


@router.get("/employers/{employer_id}/compliance")
def compliance_table(
    employer_id: str,
    plan_year_id: Optional[str] = None,
    service: ComplianceTableService = Depends(get_compliance_table),
) -> dict[str, Any]:
    table = service.build(employer_id, plan_year_id)
    return {
        **table.model_dump(mode="json"),
        "compliance_pct": table.summary.compliance_pct,
    }


@router.post("/employers/{employer_id}/compliance/send-reminders")
def send_compliance_reminders(
    employer_id: str,
    body: ReminderRequest,
    service: ReminderSendService = Depends(get_reminders),
    store: IRecordStore = Depends(get_store),
    settings: AppSettings = Depends(get_settings),
) -> dict[str, Any]:
    sender = resolve_sender(store, settings.notify, body.mode, employer_id, body.hr_user_id)
    if body.all_noncompliant:
        result = service.send_to_noncompliant(employer_id, sender, body.plan_year_id)
    else:
        result = service.send(
            employer_id,
            body.plan_year_id or "",
            _requested_ids(body.employee_id, body.employee_ids),
            sender,
        )
    return {"ok": True, **result.model_dump()}


@router.post("/employers/{employer_id}/import")
def import_roster(
    employer_id: str,
    body: RosterImportRequest,
    service: RosterImportService = Depends(get_roster_import),
) -> dict[str, Any]:
    result = service.run(employer_id, body.csv_text, dry_run=body.dry_run)
    return {"ok": True, **result.model_dump()}


@router.get("/employers/{employer_id}/export")
def export_roster(
    employer_id: str,
    store: IRecordStore = Depends(get_store),
    settings: AppSettings = Depends(get_settings),
) -> Response:
    file_name, text = export_employee_status_csv(store, employer_id, settings.notify.app_base_url)
    return Response(
        content=text,
        media_type="text/csv; charset=utf-8",
        headers={
            "content-disposition": f'attachment; filename="{file_name}"',
            "cache-control": "no-store",
        },
    )


@router.post("/employers/{employer_id}/enrollment/send")
def send_enrollment_notices(
    employer_id: str,
    body: NoticeSendRequest,
    service: NoticeSendService = Depends(get_notice_send),
    store: IRecordStore = Depends(get_store),
) -> dict[str, Any]:
    employer = store.get(EMPLOYERS, {"id": employer_id})
    if employer is None:
        raise EmployerNotFound(employer_id)
    sender = resolve_employer_sender(store, employer)
    result = service.send(
        employer_id,
        body.template_id,
        _requested_ids(body.employee_id, body.employee_ids),
        sender,
        subject_override=body.subject_override,
        body_override=body.body_override,
    )
    return {"ok": True, **result.model_dump(), "failed_count": result.failed_count}


@router.get("/sender-status")
def sender_status(
    mode: SenderMode = SenderMode.ADMIN,
    employer_id: Optional[str] = None,
    hr_user_id: Optional[str] = None,
    store: IRecordStore = Depends(get_store),
    settings: AppSettings = Depends(get_settings),
) -> dict[str, Any]:
    return get_sender_status(store, settings.notify, mode, employer_id, hr_user_id).model_dump()
