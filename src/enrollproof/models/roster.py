"""Roster (CSV) import results and notice links."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class RosterImportCounts(BaseModel):
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    skipped_duplicates: int = 0


class NoticeLink(BaseModel):
    email: str
    first_name: str = ""
    last_name: str = ""
    eligible: bool = True
    token: str
    notice_link: str


class RosterImportResult(BaseModel):
    dry_run: bool
    employer_id: str
    employer_name: str = ""
    counts: RosterImportCounts
    links: list[NoticeLink] = Field(default_factory=list)
    plan_year_sync_error: Optional[str] = None
