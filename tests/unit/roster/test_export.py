"""Tests for the employee status CSV export."""

from __future__ import annotations

import csv
import io

import pytest

from enrollproof.core.exceptions import EmployerNotFound
from enrollproof.persistence.tables import EMPLOYEES, EVENTS
from enrollproof.services.roster.export import (
    EXPORT_COLUMNS,
    engagement_status,
    export_employee_status_csv,
    export_file_name,
)
from tests.unit.conftest import EMPLOYER_ID


@pytest.fixture
def store(store):
    store.insert(EMPLOYEES, [
        {"id": "e1", "employer_id": EMPLOYER_ID, "email": "zed@acme.example", "first_name": "Zed",
         "last_name": "Zulu", "token": "tok-z", "eligible": True, "employee_ref": "Z-1"},
        {"id": "e2", "employer_id": EMPLOYER_ID, "email": "amy@acme.example", "first_name": "Amy",
         "last_name": "adams", "token": "tok-a", "eligible": False,
         "opted_out_at": "2026-01-05T00:00:00+00:00"},
        {"id": "e3", "employer_id": EMPLOYER_ID, "email": "anon@acme.example"},
        {"id": "e4", "employer_id": "emp-other", "email": "other@other.example", "last_name": "Aaron"},
    ])
    store.insert(EVENTS, [
        {"employer_id": EMPLOYER_ID, "employee_id": "e1", "event_type": "page_view"},
        {"employer_id": EMPLOYER_ID, "employee_id": "e2", "event_type": "learn_more_view"},
    ])
    return store


def _rows(text: str) -> list[dict[str, str]]:
    return list(csv.DictReader(io.StringIO(text)))


class TestExport:
    def test_file_name(self, store):
        name, _ = export_employee_status_csv(store, EMPLOYER_ID, "https://app.example")
        assert name == "acme_corp_employee_status_export.csv"

    def test_header_and_order(self, store):
        _, text = export_employee_status_csv(store, EMPLOYER_ID, "https://app.example")
        assert text.splitlines()[0] == ",".join(EXPORT_COLUMNS)
        assert [r["email"] for r in _rows(text)] == ["amy@acme.example", "zed@acme.example", "anon@acme.example"]

    def test_row_values(self, store):
        _, text = export_employee_status_csv(store, EMPLOYER_ID, "https://app.example")
        rows = {r["email"]: r for r in _rows(text)}

        zed = rows["zed@acme.example"]
        assert (zed["viewed"], zed["status"], zed["eligible"]) == ("true", "Active", "true")
        assert zed["notice_link"] == "https://app.example/notice/tok-z"
        assert zed["employee_ref"] == "Z-1"

        amy = rows["amy@acme.example"]
        assert (amy["viewed"], amy["status"], amy["eligible"]) == ("false", "Opted out", "false")
        assert amy["opted_out_at"] == "2026-01-05T00:00:00+00:00"

        anon = rows["anon@acme.example"]
        assert (anon["status"], anon["notice_link"]) == ("Pending", "")

    def test_unknown_employer(self, store):
        with pytest.raises(EmployerNotFound):
            export_employee_status_csv(store, "nope", "https://app.example")


def test_file_name_fallback():
    assert export_file_name("") == "employer_employee_status_export.csv"
    assert export_file_name("  Fish & Chips, Ltd.") == "fish_chips_ltd_employee_status_export.csv"


def test_engagement_status_opt_out_wins():
    assert engagement_status(opted_out=True, viewed=True) == "Opted out"
    assert engagement_status(opted_out=False, viewed=False) == "Pending"
