"""Activity events: an append-only audit trail per employee."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel


class EventType(StrEnum):
    PAGE_VIEW = "page_view"
    LEARN_MORE_VIEW = "learn_more_view"
    OPT_OUT = "opt_out"
    OPT_IN = "opt_in"
    INSURANCE_YES = "insurance_yes"
    INSURANCE_NO = "insurance_no"
    ENROLLMENT_NOTICE_SENT = "enrollment_notice_sent"
    ENROLLMENT_NOTICE_FAILED = "enrollment_notice_failed"
    REMINDER_SENT = "compliance_email_reminder_sent"
    REMINDER_FAILED = "compliance_email_reminder_failed"
    REMINDER_SKIPPED_MISSING_LINK = "compliance_email_skipped_missing_portal_link"


class Event(BaseModel):
    id: str
    employer_id: str
    employee_id: str
    event_type: str  # free-form; EventType covers the ones services emit
    created_at: datetime
    user_agent: Optional[str] = None
    ip: Optional[str] = None
