"""Slot conflict detection for a dentist's calendar.

Slots are half-open intervals [starts_at, ends_at): a booking ending at 10:30
and one starting at 10:30 do not overlap. Only PENDING and CONFIRMED bookings
hold a slot.

This read-time check rejects most clashes early. It is not the guarantee: two
requests can both pass it, which is why BookingRepository.create also enforces
the rule at write time.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from .exceptions import BookingValidationError
from .repository import BookingRepository

logger = logging.getLogger(__name__)


def intervals_overlap(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime
) -> bool:
    """True if [a_start, a_end) and [b_start, b_end) share at least one instant"""
    return a_start < b_end and b_start < a_end


class SlotConflictChecker:
    def __init__(self, db: Session, repo: Optional[BookingRepository] = None):
        self.db = db
        self.repo = repo or BookingRepository()

    def check_conflict(
        self,
        dentist_id: int,
        starts_at: datetime,
        ends_at: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> bool:
        """
        Return True if an active booking for `dentist_id` overlaps the interval.

        Repository failures propagate as RepositoryError; a failed query is
        never reported as "no conflict".
        """
        if not starts_at < ends_at:
            raise BookingValidationError("Appointment must end after it starts")

        overlapping = self.repo.find_overlapping(
            self.db, dentist_id, starts_at, ends_at, exclude_booking_id=exclude_booking_id
        )
        if overlapping:
            logger.info(
                f"📅 Dentist {dentist_id} busy {starts_at:%Y-%m-%d %H:%M}-{ends_at:%H:%M} "
                f"({len(overlapping)} overlapping booking(s))"
            )
            return True
        return False
