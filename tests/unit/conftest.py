"""Unit test fixtures: memory store seeded with one employer and plan year."""

from __future__ import annotations

import pytest

from enrollproof.core.config import AppSettings, NotificationConfig
from enrollproof.persistence.tables import EMPLOYERS, PLAN_YEARS
from tests.fakes import MemoryRecordStore

EMPLOYER_ID = "emp-acme"
PLAN_YEAR_ID = "py-2026"


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(
        notify=NotificationConfig(
            admin_sender_email="admin@enrollproof.example", app_base_url="https://app.example"
        ),
    )


@pytest.fixture
def store() -> MemoryRecordStore:
    s = MemoryRecordStore()
    s.insert(EMPLOYERS, [{
        "id": EMPLOYER_ID,
        "name": "Acme Corp",
        "support_email": "hr@acme.example",
        "sender_email": "hr@acme.example",
        "effective_date": "2026-01-01",
        "opt_out_deadline": "2026-01-31",
    }])
    s.insert(PLAN_YEARS, [{
        "id": PLAN_YEAR_ID,
        "employer_id": EMPLOYER_ID,
        "name": "2026 Plan Year",
        "start_date": "2026-01-01",
        "end_date": "2026-12-31",
        "status": "active",
    }])
    return s
