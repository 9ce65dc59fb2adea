"""Row normalization for vendor compliance reports.

Column labels vary by vendor and by export (``EMAIL``, ``Email Address``,
``Portal Link`` ...). Labels are matched case-insensitively against fixed
priority lists; the first non-empty match wins.
"""

from __future__ import annotations

import re
from typing import Any, Mapping, Sequence

from enrollproof.models.report_row import NormalizedReportRow
from enrollproof.services.ingest.dates import parse_login_date

EMAIL_COLUMNS = ("email", "email address", "email_address", "e-mail", "work email")
FIRST_NAME_COLUMNS = ("first name", "first_name", "firstname", "first")
LAST_NAME_COLUMNS = ("last name", "last_name", "lastname", "last")
FULL_NAME_COLUMNS = ("name", "employee name", "full name")
LOGIN_DATE_COLUMNS = ("last login date", "last_login_date", "last login", "last login at")
PORTAL_URL_COLUMNS = (
    "invitation url",
    "invitation_url",
    "portal link",
    "portal url",
    "link",
    "attentive link",
)

_EMAIL_LOCAL_SPLIT = re.compile(r"[._\-+]+")


def _fold(row: Mapping[str, Any]) -> dict[str, Any]:
    """Lower-case, trimmed labels; the first spelling of a label wins."""
    folded: dict[str, Any] = {}
    for label, value in row.items():
        key = str(label).strip().lower()
        folded.setdefault(key, value)
    return folded


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def pick_text(folded: Mapping[str, Any], aliases: Sequence[str]) -> str:
    for alias in aliases:
        text = _text(folded.get(alias))
        if text:
            return text
    return ""


def pick_raw(folded: Mapping[str, Any], aliases: Sequence[str]) -> Any:
    for alias in aliases:
        value = folded.get(alias)
        if value is not None and _text(value):
            return value
    return None


def normalize_email(value: Any) -> str:
    return _text(value).lower()


def pick_name(folded: Mapping[str, Any]) -> tuple[str | None, str | None]:
    """Explicit first/last columns, else split a single full-name column."""
    first = pick_text(folded, FIRST_NAME_COLUMNS)
    last = pick_text(folded, LAST_NAME_COLUMNS)
    if first or last:
        return first or None, last or None

    full = pick_text(folded, FULL_NAME_COLUMNS)
    if full:
        parts = full.split()
        return parts[0], (" ".join(parts[1:]) or None)
    return None, None


def _capitalize(token: str) -> str:
    return token[:1].upper() + token[1:].lower()


def guess_name_from_email(email: str) -> tuple[str | None, str | None]:
    """Capitalized name guess from the email local part.

    ``jane.doe@x`` -> ("Jane", "Doe"); ``jsmith@x`` -> ("Jsmith", None);
    a purely numeric first token yields no guess.
    """
    local = email.split("@", 1)[0].strip()
    parts = [p for p in _EMAIL_LOCAL_SPLIT.split(local) if p]
    if not parts or parts[0].isdigit():
        return None, None
    first = _capitalize(parts[0])
    last = _capitalize(parts[-1]) if len(parts) >= 2 else None
    return first or None, last or None


def normalize_row(row: Mapping[str, Any]) -> NormalizedReportRow:
    """Reduce one raw spreadsheet row to its canonical tuple."""
    folded = _fold(row)
    first, last = pick_name(folded)
    return NormalizedReportRow(
        email=normalize_email(pick_text(folded, EMAIL_COLUMNS)),
        first_name=first,
        last_name=last,
        login_date=parse_login_date(pick_raw(folded, LOGIN_DATE_COLUMNS)),
        portal_url=pick_text(folded, PORTAL_URL_COLUMNS) or None,
    )
