"""Login-date parsing for vendor compliance reports.

Vendors export "last login" as native dates, Excel serials, 8-digit
``MMDDYYYY`` numbers/strings, or free-form text. Anything unparseable is
"no login date", never an error.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, timezone
from typing import Any

from dateutil import parser as date_parser
from openpyxl.utils.datetime import from_excel

logger = logging.getLogger(__name__)

MIN_YEAR = 2000
MAX_YEAR = 2100

# Excel serial 100000 is the year 2173; larger integers are packed dates
# whose leading zero was lost (3152026 -> 03152026).
MAX_EXCEL_SERIAL = 100_000


def _build(year: int, month: int, day: int) -> date | None:
    if not (1 <= month <= 12 and 1 <= day <= 31 and MIN_YEAR <= year <= MAX_YEAR):
        return None
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_mmddyyyy(digits: str) -> date | None:
    if len(digits) != 8 or not digits.isdigit():
        return None
    return _build(int(digits[4:8]), int(digits[0:2]), int(digits[2:4]))


def parse_yyyymmdd(digits: str) -> date | None:
    if len(digits) != 8 or not digits.isdigit():
        return None
    return _build(int(digits[0:4]), int(digits[4:6]), int(digits[6:8]))


def parse_eight_digits(digits: str) -> date | None:
    """MMDDYYYY first; YYYYMMDD only when MMDDYYYY fails validation."""
    return parse_mmddyyyy(digits) or parse_yyyymmdd(digits)


def _from_datetime(value: datetime) -> date:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.date()


def parse_login_date(value: Any) -> date | None:
    """Return the calendar date a login cell represents, or None."""
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        return _from_datetime(value)
    if isinstance(value, date):
        return value

    if isinstance(value, (int, float)):
        if value != value or value <= 0:  # NaN or non-positive
            return None
        if value >= MAX_EXCEL_SERIAL:
            return parse_eight_digits(str(int(value)).zfill(8))
        try:
            converted = from_excel(value)
        except (ValueError, OverflowError, TypeError):
            converted = None
        if not isinstance(converted, datetime):  # fractions below 1 come back as a time of day
            logger.debug("Unparseable Excel serial login date %r", value)
            return None
        return _from_datetime(converted)

    text = str(value).strip()
    if not text:
        return None

    digits = re.sub(r"\D", "", text)
    if len(digits) == 8:
        parsed = parse_eight_digits(digits)
        if parsed is not None:
            return parsed

    try:
        # missing month or day fall back to January 1st, never to today
        return _from_datetime(date_parser.parse(text, default=datetime(MIN_YEAR, 1, 1)))
    except (ValueError, OverflowError):
        logger.debug("Unparseable login date %r", text)
        return None
