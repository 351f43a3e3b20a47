"""Who may touch a booking, and which fields they may write"""

import logging

from ...auth import Identity
from ...constants import BookingStatus, Role
from ...models import Booking
from .exceptions import NoUpdatableFieldsError, PermissionDeniedError

logger = logging.getLogger(__name__)

ADMIN_FIELDS = frozenset(
    {"status", "notes", "clinical_notes", "price", "payment_status", "starts_at"}
)
DENTIST_FIELDS = frozenset({"status", "clinical_notes", "notes"})
PATIENT_FIELDS = frozenset({"symptoms", "notes"})


def writable_fields(role: Role, current_status: BookingStatus) -> frozenset[str]:
    if role == Role.ADMIN:
        return ADMIN_FIELDS
    if role == Role.DENTIST:
        return DENTIST_FIELDS
    # Patients may only edit their own request while it awaits confirmation
    if role == Role.PATIENT and BookingStatus(current_status) == BookingStatus.PENDING:
        return PATIENT_FIELDS
    return frozenset()


def filter_allowed_fields(role: Role, current_status: BookingStatus, requested_fields: dict) -> dict:
    """
    Keep only the fields `role` may write in `current_status`.

    Disallowed fields are dropped silently; if nothing survives,
    NoUpdatableFieldsError is raised.
    """
    allowed = writable_fields(role, current_status)
    filtered = {key: value for key, value in requested_fields.items() if key in allowed}

    dropped = set(requested_fields) - set(filtered)
    if dropped:
        logger.debug(f"Dropped fields {sorted(dropped)} for role {role.value} in {current_status}")

    if not filtered:
        raise NoUpdatableFieldsError()
    return filtered


def resolve_actor(identity: Identity, booking: Booking) -> Role:
    """
    Decide the role a caller acts in for this booking.

    Admins act as ADMIN on any booking. A dentist acts as DENTIST only on bookings
    assigned to them. Anyone acts as PATIENT on their own booking.
    """
    if identity.role == Role.ADMIN:
        return Role.ADMIN

    if identity.role == Role.DENTIST and booking.dentist is not None:
        if booking.dentist.user_id == identity.user_id:
            return Role.DENTIST

    if booking.patient_id == identity.user_id:
        return Role.PATIENT

    logger.warning(f"⚠️ User {identity.user_id} denied access to booking {booking.id}")
    raise PermissionDeniedError()
