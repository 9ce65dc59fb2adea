"""EnrollProof exception hierarchy."""

from __future__ import annotations


class EnrollProofError(Exception):
    """Base exception for all EnrollProof errors."""


class InvalidRequest(EnrollProofError):
    """Caller supplied input that cannot be processed."""


class EmployerNotFound(EnrollProofError):
    """No employer with the given id."""

    def __init__(self, employer_id: str) -> None:
        self.employer_id = employer_id
        super().__init__(f"Employer not found: {employer_id}")


class EmployeeNotFound(EnrollProofError):
    """No employee matches the given notice token or id."""


class NoActivePlanYear(EnrollProofError):
    """Employer has no active plan year and none was given explicitly."""

    def __init__(self, employer_id: str) -> None:
        self.employer_id = employer_id
        super().__init__(f"No active plan year found for employer {employer_id}. Create one first.")


class PlanYearNotFound(EnrollProofError):
    """Explicit plan year id does not exist."""

    def __init__(self, plan_year_id: str) -> None:
        self.plan_year_id = plan_year_id
        super().__init__(f"Plan year not found: {plan_year_id}")


class SpreadsheetUnreadable(EnrollProofError):
    """Uploaded spreadsheet bytes could not be decoded."""


class RecordStoreError(EnrollProofError):
    """A record store read or write failed."""


class StorageWriteFailed(EnrollProofError):
    """A batched write failed part-way through an import.

    Batches before ``batch_index`` in the same stage remain committed.
    """

    def __init__(self, stage: str, batch_index: int, message: str) -> None:
        self.stage = stage
        self.batch_index = batch_index
        super().__init__(f"Write failed at {stage} batch {batch_index}: {message}")


class CacheError(EnrollProofError):
    """Redis cache operation failed."""


class FileStoreError(EnrollProofError):
    """Report archive operation failed."""


class SenderNotConnected(EnrollProofError):
    """No approved sender account is available."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class TokenRefreshError(EnrollProofError):
    """OAuth refresh-token exchange failed."""


class EmailSendError(EnrollProofError):
    """Mail provider rejected or failed an outbound send."""


class MissingPortalLink(EnrollProofError):
    """Reminder cannot be built without the employee's personal portal link."""
