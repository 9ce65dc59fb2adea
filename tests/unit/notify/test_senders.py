"""Tests for sender selection."""

from __future__ import annotations

import pytest

from enrollproof.core.config import NotificationConfig
from enrollproof.core.exceptions import SenderNotConnected
from enrollproof.models.notification import SenderMode, SenderProvider
from enrollproof.persistence.tables import SENDER_ACCOUNTS
from enrollproof.services.notify.senders import get_sender_status, resolve_employer_sender, resolve_sender
from tests.fakes import MemoryRecordStore

CONFIG = NotificationConfig(admin_sender_email="Admin@EnrollProof.example")


def _account(store, **fields) -> None:
    row = {
        "provider": "gmail",
        "user_email": "admin@enrollproof.example",
        "status": "approved",
        "refresh_token": "r",
        "employer_id": None,
        "created_at": "2026-01-01T00:00:00+00:00",
    }
    row.update(fields)
    store.insert(SENDER_ACCOUNTS, [row])


@pytest.fixture
def store():
    return MemoryRecordStore()


class TestAdminMode:
    def test_connected(self, store):
        _account(store)
        status = get_sender_status(store, CONFIG, SenderMode.ADMIN)
        assert status.connected is True
        assert status.email == "admin@enrollproof.example"
        assert status.provider is SenderProvider.GMAIL

    def test_not_configured(self, store):
        status = get_sender_status(store, NotificationConfig(admin_sender_email=""), SenderMode.ADMIN)
        assert status.connected is False
        assert status.reason == "Admin sender email is not configured"

    def test_not_connected(self, store):
        assert get_sender_status(store, CONFIG, SenderMode.ADMIN).reason == "Admin sender not connected"

    def test_pending_is_not_approved(self, store):
        _account(store, status="pending")
        assert get_sender_status(store, CONFIG, SenderMode.ADMIN).reason == "Admin sender not approved"

    def test_missing_refresh_token(self, store):
        _account(store, refresh_token=None)
        assert get_sender_status(store, CONFIG, SenderMode.ADMIN).reason == "Admin sender missing refresh token"

    def test_employer_scoped_account_is_not_admin(self, store):
        _account(store, employer_id="emp-acme")
        with pytest.raises(SenderNotConnected):
            resolve_sender(store, CONFIG, SenderMode.ADMIN)


class TestHrMode:
    def test_prefers_gmail_then_microsoft(self, store):
        _account(store, provider="microsoft", user_email="hr@acme.example", employer_id="emp-acme",
                 connected_by_hr_user_id="hr-1")
        assert resolve_sender(store, CONFIG, SenderMode.HR, "emp-acme", "hr-1").provider is SenderProvider.MICROSOFT

        _account(store, provider="gmail", user_email="hr@acme.example", employer_id="emp-acme",
                 connected_by_hr_user_id="hr-1")
        assert resolve_sender(store, CONFIG, SenderMode.HR, "emp-acme", "hr-1").provider is SenderProvider.GMAIL

    def test_newest_approved_account_wins(self, store):
        _account(store, user_email="old@acme.example", employer_id="emp-acme", connected_by_hr_user_id="hr-1",
                 created_at="2026-01-01T00:00:00+00:00")
        _account(store, user_email="new@acme.example", employer_id="emp-acme", connected_by_hr_user_id="hr-1",
                 created_at="2026-02-01T00:00:00+00:00")
        assert resolve_sender(store, CONFIG, SenderMode.HR, "emp-acme", "hr-1").user_email == "new@acme.example"

    def test_other_hr_user_not_used(self, store):
        _account(store, user_email="hr@acme.example", employer_id="emp-acme", connected_by_hr_user_id="hr-2")
        status = get_sender_status(store, CONFIG, SenderMode.HR, "emp-acme", "hr-1")
        assert status.connected is False
        assert status.reason == "No approved HR sender connected for this employer"

    def test_missing_ids(self, store):
        assert get_sender_status(store, CONFIG, SenderMode.HR, None, "hr-1").reason == "Missing employer id"
        assert get_sender_status(store, CONFIG, SenderMode.HR, "emp-acme", " ").reason == "Missing HR user id"


class TestEmployerSender:
    EMPLOYER = {"id": "emp-acme", "sender_email": "HR@acme.example"}

    def test_resolves_configured_mailbox(self, store):
        _account(store, user_email="hr@acme.example", employer_id="emp-acme")
        assert resolve_employer_sender(store, self.EMPLOYER).user_email == "hr@acme.example"

    def test_no_sender_email(self, store):
        with pytest.raises(SenderNotConnected, match="No sender email"):
            resolve_employer_sender(store, {"id": "emp-acme", "sender_email": ""})

    def test_connected_for_another_employer(self, store):
        _account(store, user_email="hr@acme.example", employer_id="emp-other")
        with pytest.raises(SenderNotConnected, match="not connected"):
            resolve_employer_sender(store, self.EMPLOYER)

    def test_pending(self, store):
        _account(store, user_email="hr@acme.example", employer_id="emp-acme", status="pending")
        with pytest.raises(SenderNotConnected, match="pending approval"):
            resolve_employer_sender(store, self.EMPLOYER)
