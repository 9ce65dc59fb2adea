"""Enrollment notice sends from stored email templates."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from enrollproof.core.config import AppSettings
from enrollproof.core.exceptions import (
    EmailSendError,
    EmployerNotFound,
    InvalidRequest,
    TokenRefreshError,
)
from enrollproof.core.protocols import IRecordStore
from enrollproof.core.timeutil import to_iso, utc_now
from enrollproof.models.events import EventType
from enrollproof.models.notification import (
    EmailTemplate,
    NoticeSendFailure,
    NoticeSendResult,
    RenderedEmail,
    SenderAccount,
)
from enrollproof.persistence.tables import EMAIL_TEMPLATES, EMPLOYEES, EMPLOYERS, EVENTS
from enrollproof.services.base import BaseService
from enrollproof.services.notify.dispatcher import NotificationDispatcher
from enrollproof.services.notify.templates import format_long_date, render_template
from enrollproof.services.roster.roster_import import notice_link

logger = logging.getLogger(__name__)

DEFAULT_SUBJECT = "Benefits Notice"


def notice_variables(employee: Mapping[str, Any], employer: Mapping[str, Any], base_url: str) -> dict[str, str]:
    token = str(employee.get("token") or "").strip()
    link = notice_link(base_url, token)
    return {
        "employee.first_name": str(employee.get("first_name") or ""),
        "employee.last_name": str(employee.get("last_name") or ""),
        "employee.email": str(employee.get("email") or "").strip(),
        "employer.name": str(employer.get("name") or ""),
        "employer.support_email": str(employer.get("support_email") or ""),
        "program.effective_date": format_long_date(employer.get("effective_date")),
        "program.opt_out_deadline": format_long_date(employer.get("opt_out_deadline")),
        "links.notice": link,
        "links.learn_more": f"{link}/learn-more" if link else "",
    }


def skip_reason(employee: Mapping[str, Any]) -> str | None:
    if "@" not in str(employee.get("email") or ""):
        return "Missing/invalid employee email"
    if not str(employee.get("token") or "").strip():
        return "Missing employee token"
    if employee.get("eligible") is False:
        return "Employee marked ineligible"
    if employee.get("opted_out_at"):
        return "Employee opted out"
    return None


class NoticeSendService(BaseService):
    def __init__(self, *, settings: AppSettings, store: IRecordStore, dispatcher: NotificationDispatcher) -> None:
        super().__init__(settings=settings, store=store)
        self._dispatcher = dispatcher

    def load_template(self, template_id: str) -> EmailTemplate:
        row = self._store.get(EMAIL_TEMPLATES, {"id": template_id})
        if row is None:
            raise InvalidRequest(f"Template not found: {template_id}")
        template = EmailTemplate.model_validate(row)
        if not template.is_active:
            raise InvalidRequest("Template is archived")
        return template

    def send(
        self,
        employer_id: str,
        template_id: str,
        employee_ids: Sequence[str],
        sender: SenderAccount,
        subject_override: str | None = None,
        body_override: str | None = None,
    ) -> NoticeSendResult:
        ids = [i for i in dict.fromkeys(employee_ids) if i]
        if not ids:
            raise InvalidRequest("Missing employee_id or employee_ids")
        if not template_id:
            raise InvalidRequest("Missing template_id")

        employer = self._store.get(EMPLOYERS, {"id": employer_id})
        if employer is None:
            raise EmployerNotFound(employer_id)
        template = self.load_template(template_id)
        employees = self._store.select(EMPLOYEES, {"employer_id": employer_id, "id": ids})

        result = NoticeSendResult(sender_email_used=sender.user_email)
        for employee in employees:
            result.attempted += 1
            reason = skip_reason(employee)
            if reason:
                result.failed.append(NoticeSendFailure(employee_id=employee["id"], error=reason))
                continue

            variables = notice_variables(employee, employer, self._settings.notify.app_base_url)
            email = RenderedEmail(
                subject=render_template(subject_override or template.subject, variables) or DEFAULT_SUBJECT,
                text=render_template(body_override or template.body, variables),
            )
            now = to_iso(utc_now())
            try:
                self._dispatcher.dispatch(sender, variables["employee.email"], email)
            except (EmailSendError, TokenRefreshError) as exc:
                logger.warning("Enrollment notice to employee %s failed: %s", employee["id"], exc)
                result.failed.append(NoticeSendFailure(employee_id=employee["id"], error=str(exc) or "Send failed"))
                self._log_event(employer_id, employee["id"], EventType.ENROLLMENT_NOTICE_FAILED, now)
                continue

            result.sent += 1
            self._log_event(employer_id, employee["id"], EventType.ENROLLMENT_NOTICE_SENT, now)
            if not employee.get("notice_sent_at"):
                self._store.update(
                    EMPLOYEES,
                    {"employer_id": employer_id, "id": employee["id"], "notice_sent_at": None},
                    {"notice_sent_at": now},
                )

        logger.info(
            "Enrollment notices for employer %s: attempted=%d sent=%d failed=%d",
            employer_id, result.attempted, result.sent, result.failed_count,
        )
        return result

    def _log_event(self, employer_id: str, employee_id: str, event_type: EventType, at: str | None) -> None:
        self._store.insert(EVENTS, [{
            "employer_id": employer_id,
            "employee_id": employee_id,
            "event_type": event_type.value,
            "created_at": at,
        }])
