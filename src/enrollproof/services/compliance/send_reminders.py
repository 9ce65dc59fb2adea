"""Compliance reminder sends.

Reminders only ever carry the employee's personal portal link from the
latest import; there is no fallback link.
"""

from __future__ import annotations

import logging
from typing import Sequence

from enrollproof.core.config import AppSettings
from enrollproof.core.exceptions import (
    EmailSendError,
    EmployerNotFound,
    InvalidRequest,
    RecordStoreError,
    SenderNotConnected,
    TokenRefreshError,
)
from enrollproof.core.protocols import IRecordStore
from enrollproof.core.timeutil import to_iso, utc_now
from enrollproof.models.events import EventType
from enrollproof.models.notification import ReminderSendResult, SenderAccount
from enrollproof.persistence.tables import EMPLOYEE_PLAN_YEAR, EMPLOYEES, EMPLOYERS, EVENTS
from enrollproof.services.base import BaseService
from enrollproof.services.compliance.reminders import select_reminder_recipients
from enrollproof.services.compliance.table import ComplianceTableService
from enrollproof.services.notify.dispatcher import NotificationDispatcher
from enrollproof.services.notify.templates import build_compliance_reminder_email
from enrollproof.services.roster.plan_year import get_plan_year

logger = logging.getLogger(__name__)


class ReminderSendService(BaseService):
    def __init__(
        self,
        *,
        settings: AppSettings,
        store: IRecordStore,
        dispatcher: NotificationDispatcher,
        table: ComplianceTableService | None = None,
    ) -> None:
        super().__init__(settings=settings, store=store)
        self._dispatcher = dispatcher
        self._table = table or ComplianceTableService(settings=settings, store=store)

    def _log_event(self, employer_id: str, employee_id: str, event_type: EventType) -> None:
        self._store.insert(EVENTS, [{
            "employer_id": employer_id,
            "employee_id": employee_id,
            "event_type": event_type.value,
            "created_at": to_iso(utc_now()),
            "user_agent": None,
            "ip": None,
        }])

    def send(
        self,
        employer_id: str,
        plan_year_id: str,
        employee_ids: Sequence[str],
        sender: SenderAccount,
    ) -> ReminderSendResult:
        if not plan_year_id:
            raise InvalidRequest("Missing plan_year_id")
        ids = [i for i in dict.fromkeys(employee_ids) if i]
        if not ids:
            raise InvalidRequest("Missing employee_id(s)")

        employer = self._store.get(EMPLOYERS, {"id": employer_id})
        if employer is None:
            raise EmployerNotFound(employer_id)
        get_plan_year(self._store, employer_id, plan_year_id)

        employees = {e["id"]: e for e in self._store.select(EMPLOYEES, {"employer_id": employer_id, "id": ids})}
        links = {
            r["employee_id"]: str(r.get("portal_invitation_url") or "").strip()
            for r in self._store.select(EMPLOYEE_PLAN_YEAR, {"plan_year_id": plan_year_id, "employee_id": ids})
        }

        result = ReminderSendResult(from_email=sender.user_email)
        for employee_id in ids:
            employee = employees.get(employee_id)
            if employee is None:
                continue
            to = str(employee.get("email") or "").strip()
            if not to:
                continue
            result.attempted += 1

            portal_link = links.get(employee_id, "")
            if not portal_link:
                result.skipped_missing_link += 1
                self._log_event(employer_id, employee_id, EventType.REMINDER_SKIPPED_MISSING_LINK)
                continue

            name = f"{employee.get('first_name') or ''} {employee.get('last_name') or ''}".strip()
            email = build_compliance_reminder_email(
                name=name,
                portal_link=portal_link,
                employer_name=str(employer.get("name") or ""),
                support_email=str(employer.get("support_email") or ""),
            )
            try:
                self._dispatcher.dispatch(sender, to, email)
            except (EmailSendError, TokenRefreshError, SenderNotConnected) as exc:
                result.failed += 1
                logger.warning("Compliance reminder to employee %s failed: %s", employee_id, exc)
                self._log_event(employer_id, employee_id, EventType.REMINDER_FAILED)
                continue

            result.sent += 1
            try:
                self._store.update(
                    EMPLOYEE_PLAN_YEAR,
                    {"plan_year_id": plan_year_id, "employee_id": employee_id},
                    {"last_reminder_at": to_iso(utc_now())},
                )
                self._log_event(employer_id, employee_id, EventType.REMINDER_SENT)
            except RecordStoreError as exc:
                result.unrecorded += 1
                logger.error("Compliance reminder to employee %s was sent but not recorded: %s", employee_id, exc)

        logger.info(
            "Compliance reminders for employer %s: attempted=%d sent=%d skipped_missing_link=%d failed=%d unrecorded=%d",
            employer_id, result.attempted, result.sent, result.skipped_missing_link, result.failed, result.unrecorded,
        )
        return result

    def send_to_noncompliant(
        self, employer_id: str, sender: SenderAccount, plan_year_id: str | None = None
    ) -> ReminderSendResult:
        """Remind every noncompliant employee of the latest run who has a portal link."""
        table = self._table.build(employer_id, plan_year_id)
        if table.plan_year is None:
            raise InvalidRequest(f"Employer {employer_id} has no active plan year")
        selection = select_reminder_recipients(table.rows)
        if not selection.recipients:
            return ReminderSendResult(from_email=sender.user_email, missing_link_count=selection.missing_link_count)

        result = self.send(employer_id, table.plan_year.id, selection.recipient_ids, sender)
        result.missing_link_count = selection.missing_link_count
        return result
