"""Tests for the compliance table view."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from enrollproof.core.exceptions import EmployerNotFound
from enrollproof.models.compliance import RosterStatus
from enrollproof.models.events import EventType
from enrollproof.persistence.tables import EMPLOYEE_PLAN_YEAR, EMPLOYEES, EMPLOYERS, EVENTS
from enrollproof.services.compliance.reconcile import ComplianceImportService
from enrollproof.services.compliance.table import NO_NAME, ComplianceTableService, display_status
from tests.unit.conftest import EMPLOYER_ID, PLAN_YEAR_ID

REPORT = (
    b"EMAIL,Name,Last Login,Portal Link\n"
    b"zed@acme.example,Zed Zane,03152026,https://portal/zed\n"
    b"amy@acme.example,Amy Adams,,https://portal/amy\n"
    b"12345@acme.example,,,\n"
)


@pytest.fixture
def importer(settings, store):
    return ComplianceImportService(settings=settings, store=store)


@pytest.fixture
def table_service(settings, store):
    return ComplianceTableService(settings=settings, store=store)


def _id(store, email: str) -> str:
    return store.get(EMPLOYEES, {"employer_id": EMPLOYER_ID, "email": email})["id"]


def test_display_status():
    assert display_status(None) is RosterStatus.NONCOMPLIANT
    assert display_status({"compliance_status": "compliant", "override_flag": True}) is RosterStatus.OVERRIDDEN
    assert display_status({"compliance_status": "opted_out"}) is RosterStatus.OPTED_OUT
    assert display_status({"compliance_status": "compliant"}) is RosterStatus.COMPLIANT


class TestBuild:
    def test_rows_joined_and_sorted_by_email(self, importer, table_service, store):
        importer.run(EMPLOYER_ID, REPORT, file_name="r.csv")
        table = table_service.build(EMPLOYER_ID)

        assert [r.email for r in table.rows] == ["12345@acme.example", "amy@acme.example", "zed@acme.example"]
        nameless, amy, zed = table.rows
        assert nameless.name == NO_NAME
        assert nameless.portal_url is None
        assert amy.status is RosterStatus.NONCOMPLIANT
        assert amy.portal_url == "https://portal/amy"
        assert zed.status is RosterStatus.COMPLIANT
        assert zed.name == "Zed Zane"
        assert zed.last_login_at == datetime(2026, 3, 15, tzinfo=timezone.utc)

        assert table.plan_year.id == PLAN_YEAR_ID
        assert table.summary.in_scope == 3
        assert table.summary.compliant == 1
        assert table.summary.noncompliant == 2
        assert table.summary.compliance_pct == 33.3

    def test_override_shown_as_overridden(self, importer, table_service, store):
        importer.run(EMPLOYER_ID, REPORT)
        store.update(
            EMPLOYEE_PLAN_YEAR,
            {"plan_year_id": PLAN_YEAR_ID, "employee_id": _id(store, "amy@acme.example")},
            {"override_flag": True},
        )
        table = table_service.build(EMPLOYER_ID)
        amy = next(r for r in table.rows if r.email == "amy@acme.example")
        assert amy.status is RosterStatus.OVERRIDDEN
        assert table.summary.overridden == 1
        assert table.summary.noncompliant == 1

    def test_latest_run_defines_scope(self, importer, table_service, store):
        importer.run(EMPLOYER_ID, REPORT)
        second = importer.run(EMPLOYER_ID, b"EMAIL\nzed@acme.example\n", file_name="r.csv")
        table = table_service.build(EMPLOYER_ID)
        assert table.latest_run.id == second.counts.run_id
        assert [r.email for r in table.rows] == ["zed@acme.example"]
        assert table.summary.in_scope == 1

    def test_last_reminder_from_events(self, importer, table_service, store):
        importer.run(EMPLOYER_ID, REPORT)
        amy_id = _id(store, "amy@acme.example")
        store.insert(EVENTS, [
            {"employer_id": EMPLOYER_ID, "employee_id": amy_id, "event_type": EventType.REMINDER_SENT.value,
             "created_at": "2026-04-01T10:00:00+00:00"},
            {"employer_id": EMPLOYER_ID, "employee_id": amy_id, "event_type": EventType.REMINDER_SENT.value,
             "created_at": "2026-04-03T10:00:00+00:00"},
            {"employer_id": EMPLOYER_ID, "employee_id": amy_id, "event_type": EventType.PAGE_VIEW.value,
             "created_at": "2026-05-01T10:00:00+00:00"},
        ])
        table = table_service.build(EMPLOYER_ID)
        amy = next(r for r in table.rows if r.email == "amy@acme.example")
        assert amy.last_reminder_at == datetime(2026, 4, 3, 10, 0, tzinfo=timezone.utc)


class TestEmptyStates:
    def test_no_run_yet(self, table_service):
        table = table_service.build(EMPLOYER_ID)
        assert table.plan_year.id == PLAN_YEAR_ID
        assert table.latest_run is None
        assert table.rows == []

    def test_no_plan_year(self, table_service, store):
        store.insert(EMPLOYERS, [{"id": "fresh", "name": "Fresh Co"}])
        table = table_service.build("fresh")
        assert table.plan_year is None
        assert table.summary.in_scope == 0

    def test_unknown_employer(self, table_service):
        with pytest.raises(EmployerNotFound):
            table_service.build("nobody")
