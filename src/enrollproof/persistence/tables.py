"""Record store table names and natural keys.

Keys are (partition field, sort field or None). Tables listed in
``SURROGATE_ID_TABLES`` get a generated ``id`` on first insert.
"""

from __future__ import annotations

EMPLOYERS = "employers"
EMPLOYEES = "employees"
PLAN_YEARS = "plan_years"
EMPLOYEE_PLAN_YEAR = "employee_plan_year"
IMPORT_RUNS = "compliance_import_runs"
IMPORT_RUN_MEMBERS = "compliance_import_run_members"
EVENTS = "events"
SENDER_ACCOUNTS = "sender_accounts"
EMAIL_TEMPLATES = "email_templates"

TABLE_KEYS: dict[str, tuple[str, str | None]] = {
    EMPLOYERS: ("id", None),
    EMPLOYEES: ("employer_id", "email"),
    PLAN_YEARS: ("employer_id", "id"),
    EMPLOYEE_PLAN_YEAR: ("plan_year_id", "employee_id"),
    IMPORT_RUNS: ("employer_id", "id"),
    IMPORT_RUN_MEMBERS: ("run_id", "employee_id"),
    EVENTS: ("employer_id", "id"),
    SENDER_ACCOUNTS: ("provider", "user_email"),
    EMAIL_TEMPLATES: ("id", None),
}

SURROGATE_ID_TABLES = frozenset({EMPLOYERS, EMPLOYEES, PLAN_YEARS, IMPORT_RUNS, EVENTS, EMAIL_TEMPLATES})


def key_fields(table: str) -> tuple[str, ...]:
    try:
        pk, sk = TABLE_KEYS[table]
    except KeyError:
        raise ValueError(f"Unknown table {table!r}") from None
    return (pk,) if sk is None else (pk, sk)


def physical_name(table: str, suffix: str = "") -> str:
    """Deployed table name, e.g. ``enrollproof-employees-dev``."""
    return f"enrollproof-{table}{suffix}"
