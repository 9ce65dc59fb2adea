"""Tests for plan-year lookup and provisioning."""

from __future__ import annotations

from datetime import date

import pytest

from enrollproof.core.exceptions import InvalidRequest, PlanYearNotFound
from enrollproof.persistence.tables import EMPLOYEE_PLAN_YEAR, PLAN_YEARS
from enrollproof.services.roster.plan_year import (
    ensure_active_plan_year,
    ensure_employee_plan_year_rows,
    get_active_plan_year,
    get_plan_year,
    plan_year_bounds,
)
from tests.fakes import MemoryRecordStore
from tests.unit.conftest import EMPLOYER_ID, PLAN_YEAR_ID


class TestBounds:
    def test_twelve_months_ends_day_before(self):
        assert plan_year_bounds(date(2026, 1, 1)) == (date(2026, 1, 1), date(2026, 12, 31))

    def test_mid_month_start(self):
        assert plan_year_bounds(date(2026, 3, 15)) == (date(2026, 3, 15), date(2027, 3, 14))

    def test_month_end_clamps(self):
        assert plan_year_bounds(date(2026, 1, 31), length_months=1) == (date(2026, 1, 31), date(2026, 2, 27))

    def test_rejects_zero_length(self):
        with pytest.raises(InvalidRequest):
            plan_year_bounds(date(2026, 1, 1), length_months=0)


class TestLookup:
    def test_active_plan_year(self, store):
        assert get_active_plan_year(store, EMPLOYER_ID).id == PLAN_YEAR_ID

    def test_latest_start_wins_when_several_active(self, store):
        store.insert(PLAN_YEARS, [{
            "id": "py-2027", "employer_id": EMPLOYER_ID, "start_date": "2027-01-01",
            "end_date": "2027-12-31", "status": "active",
        }])
        assert get_active_plan_year(store, EMPLOYER_ID).id == "py-2027"

    def test_explicit_id_scoped_to_employer(self, store):
        with pytest.raises(PlanYearNotFound):
            get_plan_year(store, "other-employer", PLAN_YEAR_ID)


class TestEnsure:
    def test_existing_active_plan_year_reused(self, store):
        assert ensure_active_plan_year(store, EMPLOYER_ID, date(2030, 1, 1)).id == PLAN_YEAR_ID
        assert len(store.select(PLAN_YEARS)) == 1

    def test_creates_from_effective_date(self):
        store = MemoryRecordStore()
        created = ensure_active_plan_year(store, "fresh", date(2026, 4, 1))
        assert (created.start_date, created.end_date) == (date(2026, 4, 1), date(2027, 3, 31))
        again = ensure_active_plan_year(store, "fresh", date(2026, 4, 1))
        assert again.id == created.id

    def test_needs_effective_date(self):
        with pytest.raises(InvalidRequest):
            ensure_active_plan_year(MemoryRecordStore(), "fresh", None)

    def test_key_only_rows_never_touch_status(self, store):
        store.upsert(
            EMPLOYEE_PLAN_YEAR,
            [{"plan_year_id": PLAN_YEAR_ID, "employee_id": "e1", "compliance_status": "compliant", "override_flag": True}],
            on_conflict=("plan_year_id", "employee_id"),
        )
        assert ensure_employee_plan_year_rows(store, PLAN_YEAR_ID, ["e1", "e2", "e2"]) == 2
        e1 = store.get(EMPLOYEE_PLAN_YEAR, {"plan_year_id": PLAN_YEAR_ID, "employee_id": "e1"})
        assert e1["compliance_status"] == "compliant"
        assert e1["override_flag"] is True
        assert store.get(EMPLOYEE_PLAN_YEAR, {"plan_year_id": PLAN_YEAR_ID, "employee_id": "e2"}) is not None
