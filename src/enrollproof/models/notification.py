"""Sender accounts, templates, and send results."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, Field


class SenderProvider(StrEnum):
    GMAIL = "gmail"
    MICROSOFT = "microsoft"


class SenderAccountStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class SenderMode(StrEnum):
    ADMIN = "admin"
    HR = "hr"


class SenderAccount(BaseModel):
    """A connected mailbox that sends on behalf of an admin or an HR user.

    ``employer_id`` is None for the system (admin) sender.
    """

    provider: SenderProvider
    user_email: str
    status: SenderAccountStatus = SenderAccountStatus.PENDING
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    scope: Optional[str] = None
    employer_id: Optional[str] = None
    connected_by_hr_user_id: Optional[str] = None
    created_at: Optional[datetime] = None


class SenderStatus(BaseModel):
    connected: bool
    email: Optional[str] = None
    provider: Optional[SenderProvider] = None
    reason: Optional[str] = None


class EmailTemplate(BaseModel):
    id: str
    name: str = ""
    category: str = ""
    subject: str = ""
    body: str = ""
    is_active: bool = True


class RenderedEmail(BaseModel):
    subject: str
    text: str


class ReminderSendResult(BaseModel):
    attempted: int = 0
    sent: int = 0
    skipped_missing_link: int = 0
    failed: int = 0
    unrecorded: int = 0  # sent, but the last_reminder_at stamp or event write failed
    from_email: str = ""
    missing_link_count: Optional[int] = None  # bulk sends only: noncompliant rows left unsent


class NoticeSendFailure(BaseModel):
    employee_id: str
    error: str


class NoticeSendResult(BaseModel):
    attempted: int = 0
    sent: int = 0
    failed: list[NoticeSendFailure] = Field(default_factory=list)
    sender_email_used: str = ""

    @property
    def failed_count(self) -> int:
        return len(self.failed)
