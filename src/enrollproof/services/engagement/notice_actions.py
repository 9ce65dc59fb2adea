"""Token-addressed employee actions from the notice page."""

from __future__ import annotations

import logging
from typing import Any

from enrollproof.core.exceptions import EmployeeNotFound, InvalidRequest
from enrollproof.core.protocols import IRecordStore
from enrollproof.core.timeutil import to_iso, utc_now
from enrollproof.models.employee import Election, Employee, InsuranceSelection
from enrollproof.models.events import EventType
from enrollproof.persistence.tables import EMPLOYEES, EVENTS

logger = logging.getLogger(__name__)

# Event type -> employee column stamped the first time that event is seen.
FIRST_SEEN_COLUMNS = {
    EventType.PAGE_VIEW.value: "notice_viewed_at",
    EventType.LEARN_MORE_VIEW.value: "learn_more_viewed_at",
    EventType.ENROLLMENT_NOTICE_SENT.value: "notice_sent_at",
}


class NoticeActionService:
    def __init__(self, *, store: IRecordStore) -> None:
        self._store = store

    def employee_for_token(self, token: str | None) -> Employee:
        token = (token or "").strip()
        if not token:
            raise InvalidRequest("Missing token")
        row = self._store.get(EMPLOYEES, {"token": token})
        if row is None:
            raise EmployeeNotFound("Invalid token")
        return Employee.model_validate(row)

    def _key(self, employee: Employee) -> dict[str, Any]:
        return {"employer_id": employee.employer_id, "id": employee.id}

    def _event(self, employee: Employee, event_type: str, at: str | None,
               user_agent: str | None = None, ip: str | None = None) -> None:
        self._store.insert(EVENTS, [{
            "employer_id": employee.employer_id,
            "employee_id": employee.id,
            "event_type": event_type,
            "created_at": at,
            "user_agent": user_agent,
            "ip": ip,
        }])

    def record_event(self, token: str, event_type: str, user_agent: str | None = None, ip: str | None = None) -> None:
        event_type = (event_type or "").strip()
        if not event_type:
            raise InvalidRequest("Missing token or event_type")
        employee = self.employee_for_token(token)
        now = to_iso(utc_now())
        self._event(employee, event_type, now, user_agent, ip)

        column = FIRST_SEEN_COLUMNS.get(event_type)
        if column and getattr(employee, column) is None:
            self._store.update(EMPLOYEES, {**self._key(employee), column: None}, {column: now})

    def opt_out(self, token: str) -> None:
        employee = self.employee_for_token(token)
        now = to_iso(utc_now())
        if not employee.is_opted_out:
            self._store.update(EMPLOYEES, self._key(employee), {"opted_out_at": now})
        self._event(employee, EventType.OPT_OUT.value, now)
        logger.info("Employee %s opted out", employee.id)

    def opt_in(self, token: str) -> None:
        employee = self.employee_for_token(token)
        self._store.update(
            EMPLOYEES, self._key(employee), {"opted_out_at": None, "election": Election.OPT_IN.value}
        )
        self._event(employee, EventType.OPT_IN.value, to_iso(utc_now()))
        logger.info("Employee %s opted in", employee.id)

    def select_insurance(self, token: str, selection: str) -> InsuranceSelection:
        if not selection:
            raise InvalidRequest("Missing token/selection")
        try:
            choice = InsuranceSelection(selection)
        except ValueError:
            raise InvalidRequest("Invalid selection") from None
        employee = self.employee_for_token(token)
        now = to_iso(utc_now())
        self._store.update(
            EMPLOYEES, self._key(employee), {"insurance_selection": choice.value, "insurance_selected_at": now}
        )
        event = EventType.INSURANCE_YES if choice is InsuranceSelection.YES else EventType.INSURANCE_NO
        self._event(employee, event.value, now)
        return choice
