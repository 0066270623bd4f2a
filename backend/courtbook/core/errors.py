"""Domain error taxonomy surfaced by the booking services.

Each error carries a stable machine-readable ``code``, the HTTP status the API
layer maps it to, and whether the caller may safely retry the whole call.
Messages are meant for end users; internal detail (SQL, stack traces) never
goes into them.
"""

from __future__ import annotations

from fastapi import status


class BookingError(Exception):
    """Base class for failures reported to booking clients."""

    code = "booking_error"
    status_code = status.HTTP_400_BAD_REQUEST
    retryable = False
    default_message = "The booking operation failed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class BookingValidationError(BookingError):
    """Missing or malformed input; nothing was persisted."""

    code = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "The request is missing required fields or has invalid values."


class SlotConflict(BookingError):
    """Granting the window would overlap an active booking or blocked window."""

    code = "slot_conflict"
    status_code = status.HTTP_409_CONFLICT
    default_message = "The court is already booked or unavailable for that time window."

    def __init__(
        self,
        message: str | None = None,
        *,
        conflict_kind: str | None = None,
        conflict_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.conflict_kind = conflict_kind
        self.conflict_id = conflict_id


class NotFoundError(BookingError):
    """Referenced entity is absent or in the wrong state for the operation."""

    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "The requested record was not found."


class ForbiddenError(BookingError):
    """Caller is not the principal allowed to perform the operation."""

    code = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You are not allowed to decide this request."


class TransientStoreFault(BookingError):
    """Lock wait or I/O fault; the whole operation may be retried."""

    code = "transient_store_fault"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True
    default_message = "The court is busy with another booking. Please try again."


class InternalFault(BookingError):
    """Unexpected failure; the transaction was rolled back in full."""

    code = "internal_fault"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error while processing the booking."
