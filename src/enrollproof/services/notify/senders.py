"""Sender selection: which connected mailbox an email goes out from."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from enrollproof.core.config import NotificationConfig
from enrollproof.core.exceptions import SenderNotConnected
from enrollproof.core.protocols import IRecordStore
from enrollproof.core.timeutil import parse_iso
from enrollproof.models.notification import (
    SenderAccount,
    SenderAccountStatus,
    SenderMode,
    SenderProvider,
    SenderStatus,
)
from enrollproof.persistence.tables import SENDER_ACCOUNTS

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)

# Preference order for HR-connected senders.
HR_PROVIDER_ORDER = (SenderProvider.GMAIL, SenderProvider.MICROSOFT)


def _newest(rows: list[dict[str, Any]]) -> dict[str, Any] | None:
    if not rows:
        return None
    return max(rows, key=lambda r: parse_iso(r.get("created_at")) or _OLDEST)


def _usable(row: dict[str, Any]) -> bool:
    return row.get("status") == SenderAccountStatus.APPROVED.value and bool(row.get("refresh_token"))


def _admin_account(store: IRecordStore, config: NotificationConfig) -> tuple[SenderAccount | None, str | None]:
    admin_email = config.admin_sender_email.strip().lower()
    if not admin_email:
        return None, "Admin sender email is not configured"

    rows = store.select(SENDER_ACCOUNTS, {
        "provider": SenderProvider.GMAIL.value,
        "user_email": admin_email,
        "employer_id": None,
    })
    if not rows:
        return None, "Admin sender not connected"
    if not any(r.get("status") == SenderAccountStatus.APPROVED.value for r in rows):
        return None, "Admin sender not approved"
    row = _newest([r for r in rows if _usable(r)])
    if row is None:
        return None, "Admin sender missing refresh token"
    return SenderAccount.model_validate(row), None


def _hr_account(
    store: IRecordStore, employer_id: str | None, hr_user_id: str | None
) -> tuple[SenderAccount | None, str | None]:
    employer_id = (employer_id or "").strip()
    hr_user_id = (hr_user_id or "").strip()
    if not employer_id:
        return None, "Missing employer id"
    if not hr_user_id:
        return None, "Missing HR user id"

    for provider in HR_PROVIDER_ORDER:
        rows = store.select(SENDER_ACCOUNTS, {
            "provider": provider.value,
            "employer_id": employer_id,
            "connected_by_hr_user_id": hr_user_id,
            "status": SenderAccountStatus.APPROVED.value,
        })
        row = _newest([r for r in rows if _usable(r) and r.get("user_email")])
        if row is not None:
            return SenderAccount.model_validate(row), None
    return None, "No approved HR sender connected for this employer"


def find_sender(
    store: IRecordStore,
    config: NotificationConfig,
    mode: SenderMode,
    employer_id: str | None = None,
    hr_user_id: str | None = None,
) -> tuple[SenderAccount | None, str | None]:
    if mode is SenderMode.ADMIN:
        return _admin_account(store, config)
    return _hr_account(store, employer_id, hr_user_id)


def get_sender_status(
    store: IRecordStore,
    config: NotificationConfig,
    mode: SenderMode,
    employer_id: str | None = None,
    hr_user_id: str | None = None,
) -> SenderStatus:
    """Never raises for a missing sender; the reason says what to fix."""
    account, reason = find_sender(store, config, mode, employer_id, hr_user_id)
    if account is None:
        return SenderStatus(connected=False, reason=reason)
    return SenderStatus(connected=True, email=account.user_email, provider=account.provider)


def resolve_sender(
    store: IRecordStore,
    config: NotificationConfig,
    mode: SenderMode,
    employer_id: str | None = None,
    hr_user_id: str | None = None,
) -> SenderAccount:
    account, reason = find_sender(store, config, mode, employer_id, hr_user_id)
    if account is None:
        raise SenderNotConnected(reason or "No sender connected")
    return account


def resolve_employer_sender(store: IRecordStore, employer: dict[str, Any]) -> SenderAccount:
    """The mailbox configured as the employer's enrollment-notice sender.

    It must be approved and connected for that same employer.
    """
    sender_email = str(employer.get("sender_email") or "").strip().lower()
    if not sender_email:
        raise SenderNotConnected("No sender email connected for this employer yet.")

    rows = [
        r for r in store.select(SENDER_ACCOUNTS, {"user_email": sender_email})
        if r.get("employer_id") == employer["id"]
    ]
    if not rows:
        raise SenderNotConnected(f"Sender {sender_email} is not connected for this employer.")
    row = _newest([r for r in rows if r.get("status") == SenderAccountStatus.APPROVED.value])
    if row is None:
        raise SenderNotConnected(f"Sender {sender_email} is pending approval.")
    if not row.get("refresh_token"):
        raise SenderNotConnected(f"Sender {sender_email} is missing a refresh token. Reconnect it.")
    return SenderAccount.model_validate(row)
