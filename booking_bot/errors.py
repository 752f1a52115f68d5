"""Error kinds raised by the booking workflow.

None of these is fatal: handlers catch them, tell the user what happened
and leave the draft as it was.
"""

from __future__ import annotations


class BookingError(Exception):
    """Base class for every recoverable booking failure."""


class ValidationError(BookingError):
    """One or more fields of the current step failed their rules."""

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = dict(errors)
        super().__init__(", ".join(f"{k}: {v}" for k, v in self.errors.items()))


class LookupFailure(BookingError):
    """Postal-code or phone lookup failed; manual entry stays available."""


class UploadFailure(BookingError):
    """A file was rejected locally or by the upload endpoint."""


class SubmissionError(BookingError):
    """Booking endpoint rejected the draft or broke the response contract."""


class SubmissionInProgress(SubmissionError):
    """A submit for the same draft is already in flight."""


class CapacityExhausted(BookingError):
    """No consignment numbers left for this account."""

    def __init__(self, message: str = "All consignment numbers have been used") -> None:
        super().__init__(message)


class WorkflowDisabled(BookingError):
    """The account has no consignment assignment; the workflow is read-only."""
