"""Booking lifecycle state machine.

PENDING → CONFIRMED → COMPLETED
PENDING/CONFIRMED → CANCELLED | COMPLETED | NO_SHOW

The table below is the only place that decides which role may move a booking
along which edge. Terminal states have no outgoing edges.
"""

import logging
from datetime import datetime

from ...constants import TERMINAL_STATUSES, BookingStatus, Role
from .exceptions import InvalidTransitionError

logger = logging.getLogger(__name__)

_STAFF = frozenset({Role.DENTIST, Role.ADMIN})
_PATIENT_OR_ADMIN = frozenset({Role.PATIENT, Role.ADMIN})

TRANSITIONS: dict[tuple[BookingStatus, BookingStatus], frozenset[Role]] = {
    (BookingStatus.PENDING, BookingStatus.CONFIRMED): _STAFF,
    (BookingStatus.PENDING, BookingStatus.CANCELLED): _PATIENT_OR_ADMIN,
    (BookingStatus.CONFIRMED, BookingStatus.CANCELLED): _PATIENT_OR_ADMIN,
    (BookingStatus.PENDING, BookingStatus.COMPLETED): _STAFF,
    (BookingStatus.CONFIRMED, BookingStatus.COMPLETED): _STAFF,
    (BookingStatus.PENDING, BookingStatus.NO_SHOW): _STAFF,
    (BookingStatus.CONFIRMED, BookingStatus.NO_SHOW): _STAFF,
}


def allowed_targets(current: BookingStatus, role: Role) -> frozenset[BookingStatus]:
    """Statuses `role` may move a booking to from `current`"""
    current = BookingStatus(current)
    return frozenset(
        target
        for (source, target), roles in TRANSITIONS.items()
        if source == current and role in roles
    )


def is_terminal(status) -> bool:
    return BookingStatus(status) in TERMINAL_STATUSES


class BookingStateMachine:
    """Validates a requested status change and produces the audit fields to write"""

    def validate(
        self,
        current: BookingStatus,
        requested: BookingStatus,
        role: Role,
        starts_at: datetime,
        now: datetime,
    ) -> None:
        current = BookingStatus(current)
        requested = BookingStatus(requested)

        if requested not in allowed_targets(current, role):
            logger.warning(
                f"⚠️ Rejected transition {current.value} → {requested.value} for role {role.value}"
            )
            raise InvalidTransitionError(current.value, requested.value)

        # A patient can only be marked absent once the appointment has begun
        if requested == BookingStatus.NO_SHOW and now < starts_at:
            logger.warning(f"⚠️ Rejected NO_SHOW before appointment start ({starts_at.isoformat()})")
            raise InvalidTransitionError(current.value, requested.value)

    def audit_fields(self, requested: BookingStatus, now: datetime) -> dict:
        """Audit timestamps written together with the new status"""
        fields = {"updated_at": now}
        if BookingStatus(requested) == BookingStatus.CANCELLED:
            fields["cancelled_at"] = now
        return fields
