"""Booking domain errors.

Every error carries a stable, user-facing message plus the HTTP status the API
layer answers with. None of them are retried inside the domain.
"""

from typing import Optional


class BookingError(Exception):
    """Base class for booking domain errors"""

    status_code = 500
    code = "BOOKING_ERROR"
    default_message = "Something went wrong with this booking"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class BookingValidationError(BookingError):
    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Invalid booking request"


class NotFoundError(BookingError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource"):
        self.resource = resource
        super().__init__(f"{resource} not found")


class ServiceInactiveError(BookingError):
    status_code = 422
    code = "SERVICE_INACTIVE"
    default_message = "This service is not currently offered"


class PermissionDeniedError(BookingError):
    status_code = 403
    code = "PERMISSION_DENIED"
    default_message = (
        "You do not have permission to perform this action. "
        "Contact support if you believe this is a mistake."
    )


class InvalidTransitionError(BookingError):
    status_code = 400
    code = "INVALID_TRANSITION"

    def __init__(self, current_status: str, requested_status: str):
        self.current_status = current_status
        self.requested_status = requested_status
        super().__init__(
            f"Cannot change booking status from {current_status} to {requested_status}"
        )


class NoUpdatableFieldsError(BookingError):
    status_code = 400
    code = "NO_UPDATABLE_FIELDS"
    default_message = "No valid fields to update"


class ConflictError(BookingError):
    """A write was rejected by a storage-level constraint"""

    status_code = 409
    code = "CONFLICT"
    default_message = "The booking could not be saved because of a conflicting change."


class SlotConflictError(ConflictError):
    code = "SLOT_CONFLICT"
    default_message = "Time slot is not available. Please choose another time."


class StaleBookingError(ConflictError):
    code = "STALE_BOOKING"
    default_message = "This booking was modified by someone else. Reload and try again."


class RepositoryError(BookingError):
    status_code = 503
    code = "REPOSITORY_ERROR"
    default_message = "Database temporarily unavailable. Please try again later."
