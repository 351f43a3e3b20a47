"""Roles and booking status vocabularies shared across the booking domain"""

from enum import Enum


class Role(str, Enum):
    PATIENT = "PATIENT"
    DENTIST = "DENTIST"
    ADMIN = "ADMIN"


# Role strings older clients put in the token
ROLE_ALIASES = {
    "USER": Role.PATIENT,
    "patient": Role.PATIENT,
    "dentist": Role.DENTIST,
    "admin": Role.ADMIN,
}


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    REFUNDED = "REFUNDED"


# Only active bookings hold a slot
ACTIVE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})
TERMINAL_STATUSES = frozenset(
    {BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW}
)


def parse_role(value) -> Role:
    """Normalize a role claim to a Role, raising ValueError for unknown roles"""
    if isinstance(value, Role):
        return value
    if value in ROLE_ALIASES:
        return ROLE_ALIASES[value]
    return Role(str(value).upper())
