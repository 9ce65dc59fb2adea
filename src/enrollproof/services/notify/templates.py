"""Email bodies: the built-in compliance reminder and stored-template rendering."""

from __future__ import annotations

import re
from datetime import date
from typing import Any, Mapping

from enrollproof.core.exceptions import MissingPortalLink
from enrollproof.models.notification import RenderedEmail

_PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z0-9_.\-]+)\s*\}\}")

_REMINDER_BODY = """\
Hi {first_name},

{employer}'s new plan year is underway, and we're reaching out to remind you to log in to your benefits portal.

Through the portal you already have 24/7 access to telemedicine, an Employee Assistance Program, virtual counseling and more, at no cost to you.

Logging in ensures:
- Your benefits access continues uninterrupted
- You remain compliant for the current plan year
- You can view and use available preventive care benefits

Please complete your login using your personal secure link:

{portal_link}

If you've already completed this step, you can ignore this message.

Questions or need help? Contact:
{support_email}

Best regards,
{employer} Benefits Team"""


def build_compliance_reminder_email(
    name: str, portal_link: str, employer_name: str, support_email: str
) -> RenderedEmail:
    """Plain-text reminder pointing at the employee's personal portal link.

    There is no fallback link: a blank ``portal_link`` raises
    ``MissingPortalLink``.
    """
    if not portal_link or not portal_link.strip():
        raise MissingPortalLink("Missing portal link for compliance reminder email.")
    parts = (name or "").split()
    first_name = parts[0] if parts else "there"
    return RenderedEmail(
        subject=f"Action required: Annual portal login ({employer_name})",
        text=_REMINDER_BODY.format(
            first_name=first_name,
            employer=employer_name,
            portal_link=portal_link.strip(),
            support_email=support_email,
        ),
    )


def render_template(text: str | None, variables: Mapping[str, Any]) -> str:
    """Substitute ``{{ dotted.key }}`` placeholders; unknown keys render empty."""

    def _sub(match: re.Match[str]) -> str:
        value = variables.get(match.group(1))
        return "" if value is None else str(value)

    return _PLACEHOLDER.sub(_sub, text or "")


def format_long_date(value: date | str | None) -> str:
    """``2026-03-01`` -> ``March 1, 2026``; unparseable strings pass through."""
    if value is None or value == "":
        return ""
    if isinstance(value, str):
        try:
            value = date.fromisoformat(value[:10])
        except ValueError:
            return value
    return f"{value.strftime('%B')} {value.day}, {value.year}"
