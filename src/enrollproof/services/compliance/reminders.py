"""Reminder eligibility filter over the compliance table."""

from __future__ import annotations

from typing import Iterable

from enrollproof.models.compliance import ComplianceRow, ReminderSelection, RosterStatus


def select_reminder_recipients(rows: Iterable[ComplianceRow]) -> ReminderSelection:
    """Noncompliant rows with a portal link are recipients.

    Noncompliant rows without a link are reported separately so the operator
    re-runs the import instead of sending a reminder nobody can act on.
    Compliant, overridden and opted-out rows are never selected.
    """
    selection = ReminderSelection()
    for row in rows:
        if row.status is not RosterStatus.NONCOMPLIANT:
            continue
        if row.portal_url and row.portal_url.strip():
            selection.recipients.append(row)
        else:
            selection.missing_link.append(row)
    return selection
