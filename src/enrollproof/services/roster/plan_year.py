"""Plan-year lookup and provisioning.

Exactly one active plan year per employer is expected; provisioning is
idempotent and only ever creates a plan year when none is active.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Iterable

from dateutil.relativedelta import relativedelta

from enrollproof.core.exceptions import InvalidRequest, PlanYearNotFound
from enrollproof.core.protocols import IRecordStore
from enrollproof.models.plan_year import PlanYear, PlanYearStatus
from enrollproof.persistence.tables import EMPLOYEE_PLAN_YEAR, PLAN_YEARS

logger = logging.getLogger(__name__)

DEFAULT_LENGTH_MONTHS = 12


def get_plan_year(store: IRecordStore, employer_id: str, plan_year_id: str) -> PlanYear:
    row = store.get(PLAN_YEARS, {"employer_id": employer_id, "id": plan_year_id})
    if row is None:
        raise PlanYearNotFound(plan_year_id)
    return PlanYear.model_validate(row)


def get_active_plan_year(store: IRecordStore, employer_id: str) -> PlanYear | None:
    rows = store.select(PLAN_YEARS, {"employer_id": employer_id, "status": PlanYearStatus.ACTIVE.value})
    if not rows:
        return None
    if len(rows) > 1:
        logger.warning("Employer %s has %d active plan years; using the latest", employer_id, len(rows))
    years = [PlanYear.model_validate(r) for r in rows]
    return max(years, key=lambda py: py.start_date)


def plan_year_bounds(effective_date: date, length_months: int = DEFAULT_LENGTH_MONTHS) -> tuple[date, date]:
    """Start on the effective date; end the day before the next plan year starts.

    Month arithmetic clamps to month end (Jan 31 + 1 month = Feb 28/29).
    """
    if length_months < 1:
        raise InvalidRequest("Plan year length must be at least one month")
    end = effective_date + relativedelta(months=length_months) - timedelta(days=1)
    return effective_date, end


def ensure_active_plan_year(
    store: IRecordStore,
    employer_id: str,
    effective_date: date | None,
    length_months: int = DEFAULT_LENGTH_MONTHS,
    name: str | None = None,
) -> PlanYear:
    existing = get_active_plan_year(store, employer_id)
    if existing is not None:
        return existing
    if effective_date is None:
        raise InvalidRequest(f"Employer {employer_id} has no effective date to start a plan year from")

    start, end = plan_year_bounds(effective_date, length_months)
    created = store.upsert(
        PLAN_YEARS,
        [{
            "employer_id": employer_id,
            "name": name or f"{start.isoformat()} - {end.isoformat()} Plan Year",
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "status": PlanYearStatus.ACTIVE.value,
        }],
        on_conflict=("employer_id", "id"),
    )
    logger.info("Created plan year %s to %s for employer %s", start, end, employer_id)
    return PlanYear.model_validate(created[0])


def ensure_employee_plan_year_rows(store: IRecordStore, plan_year_id: str, employee_ids: Iterable[str]) -> int:
    """Key-only upsert: creates missing compliance records, never touches status or override."""
    rows = [{"plan_year_id": plan_year_id, "employee_id": eid} for eid in dict.fromkeys(employee_ids)]
    if not rows:
        return 0
    store.upsert(EMPLOYEE_PLAN_YEAR, rows, on_conflict=("plan_year_id", "employee_id"))
    return len(rows)
