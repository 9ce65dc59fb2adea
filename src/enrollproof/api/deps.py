"""Route dependencies resolved from ``app.state``."""

from __future__ import annotations

from fastapi import Request

from enrollproof.core.config import AppSettings
from enrollproof.core.protocols import IFileStore, IRecordStore
from enrollproof.services.compliance.reconcile import ComplianceImportService
from enrollproof.services.compliance.send_reminders import ReminderSendService
from enrollproof.services.compliance.table import ComplianceTableService
from enrollproof.services.engagement.notice_actions import NoticeActionService
from enrollproof.services.roster.notice_send import NoticeSendService
from enrollproof.services.roster.roster_import import RosterImportService


def get_settings(request: Request) -> AppSettings:
    return request.app.state.settings


def get_store(request: Request) -> IRecordStore:
    return request.app.state.store


def get_file_store(request: Request) -> IFileStore | None:
    return request.app.state.file_store


def get_compliance_import(request: Request) -> ComplianceImportService:
    return request.app.state.compliance_import


def get_compliance_table(request: Request) -> ComplianceTableService:
    return request.app.state.compliance_table


def get_reminders(request: Request) -> ReminderSendService:
    return request.app.state.reminders


def get_roster_import(request: Request) -> RosterImportService:
    return request.app.state.roster_import


def get_notice_send(request: Request) -> NoticeSendService:
    return request.app.state.notice_send


def get_notice_actions(request: Request) -> NoticeActionService:
    return request.app.state.notice_actions
