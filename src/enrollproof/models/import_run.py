"""Compliance import runs, their frozen rosters, and import result counts."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class ImportRun(BaseModel):
    """Audit record of one completed, non-preview compliance import."""

    id: str
    employer_id: str
    plan_year_id: str
    imported_at: datetime
    source_filename: Optional[str] = None


class ImportRunMember(BaseModel):
    """One in-scope employee of an import run (the compliance denominator)."""

    run_id: str
    employee_id: str


class ImportCounts(BaseModel):
    """Aggregate tallies reported by every import, preview or real."""

    scanned: int = 0
    in_scope: int = 0
    created_employees: int = 0
    matched_employees: int = 0
    compliant_set: int = 0
    noncompliant_set: int = 0
    opted_out_set: int = 0
    skipped_no_email: int = 0
    skipped_no_employee_match: int = 0
    skipped_override: int = 0

    # --- Real runs only ---
    upserts: Optional[int] = None
    run_id: Optional[str] = None
    members: Optional[int] = None


class ImportResult(BaseModel):
    dry_run: bool
    employer_id: str
    plan_year_id: str
    counts: ImportCounts
