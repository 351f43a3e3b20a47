"""Booking repository - Database operations for bookings and their slot claims"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ...constants import ACTIVE_STATUSES, BookingStatus
from ...models import Booking, BookingSlotClaim, Dentist, Service
from .exceptions import ConflictError, NotFoundError, RepositoryError, StaleBookingError

logger = logging.getLogger(__name__)

_ACTIVE_VALUES = [status.value for status in ACTIVE_STATUSES]


def slot_minutes(starts_at: datetime, ends_at: datetime) -> list[datetime]:
    """Every minute start covered by [starts_at, ends_at)"""
    minutes = []
    current = starts_at
    while current < ends_at:
        minutes.append(current)
        current += timedelta(minutes=1)
    return minutes


class BookingRepository:
    """Repository for booking database operations.

    The repository is the only code that writes booking rows. Every write bumps
    `version` and keeps the slot claims of active bookings in step with their
    interval inside the same transaction.
    """

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def find_by_id(db: Session, booking_id: str) -> Optional[Booking]:
        """Get a booking by ID with its dentist loaded"""
        try:
            return (
                db.query(Booking)
                .options(joinedload(Booking.dentist))
                .filter(Booking.id == booking_id)
                .first()
            )
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to load booking {booking_id}: {e}")
            raise RepositoryError() from e

    @staticmethod
    def find_overlapping(
        db: Session,
        dentist_id: int,
        starts_at: datetime,
        ends_at: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> list[Booking]:
        """Active bookings for a dentist whose interval overlaps [starts_at, ends_at)"""
        try:
            query = db.query(Booking).filter(
                Booking.dentist_id == dentist_id,
                Booking.status.in_(_ACTIVE_VALUES),
                Booking.starts_at < ends_at,
                Booking.ends_at > starts_at,
            )
            if exclude_booking_id:
                query = query.filter(Booking.id != exclude_booking_id)
            return query.order_by(Booking.starts_at).all()
        except SQLAlchemyError as e:
            logger.error(f"❌ Overlap query failed for dentist {dentist_id}: {e}")
            raise RepositoryError() from e

    @staticmethod
    def list_bookings(
        db: Session,
        patient_id: Optional[int] = None,
        dentist_id: Optional[int] = None,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Booking], int]:
        """Filtered, newest-first page of bookings plus the total match count"""
        try:
            query = db.query(Booking)
            if patient_id is not None:
                query = query.filter(Booking.patient_id == patient_id)
            if dentist_id is not None:
                query = query.filter(Booking.dentist_id == dentist_id)
            if status:
                query = query.filter(Booking.status == status)

            total = query.count()
            items = (
                query.order_by(Booking.starts_at.desc())
                .offset((page - 1) * limit)
                .limit(limit)
                .all()
            )
            return items, total
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to list bookings: {e}")
            raise RepositoryError() from e

    @staticmethod
    def get_dentist(db: Session, dentist_id: int) -> Optional[Dentist]:
        """Get an active, non-deleted dentist"""
        try:
            return (
                db.query(Dentist)
                .filter(
                    Dentist.id == dentist_id,
                    Dentist.is_active.is_(True),
                    Dentist.deleted_at.is_(None),
                )
                .first()
            )
        except SQLAlchemyError as e:
            raise RepositoryError() from e

    @staticmethod
    def get_dentist_by_user(db: Session, user_id: int) -> Optional[Dentist]:
        """Get the dentist profile belonging to a user account"""
        try:
            return db.query(Dentist).filter(Dentist.user_id == user_id).first()
        except SQLAlchemyError as e:
            raise RepositoryError() from e

    @staticmethod
    def get_service(db: Session, service_id: int) -> Optional[Service]:
        try:
            return db.query(Service).filter(Service.id == service_id).first()
        except SQLAlchemyError as e:
            raise RepositoryError() from e

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    def create(db: Session, **booking_data) -> Booking:
        """
        Insert a booking and claim its slot minutes in one transaction.

        The overlap is re-checked with the dentist row locked (FOR UPDATE on
        databases that support it); the unique slot-claim constraint rejects
        whatever still slips through. Either way the caller gets ConflictError.
        """
        dentist_id = booking_data["dentist_id"]
        starts_at = booking_data["starts_at"]
        ends_at = booking_data["ends_at"]

        try:
            db.query(Dentist.id).filter(Dentist.id == dentist_id).with_for_update().first()

            clash = (
                db.query(Booking.id)
                .filter(
                    Booking.dentist_id == dentist_id,
                    Booking.status.in_(_ACTIVE_VALUES),
                    Booking.starts_at < ends_at,
                    Booking.ends_at > starts_at,
                )
                .first()
            )
            if clash:
                db.rollback()
                raise ConflictError()

            booking = Booking(**booking_data)
            db.add(booking)
            db.flush()
            BookingRepository._claim_slots(db, booking)
            db.commit()
        except IntegrityError as e:
            db.rollback()
            logger.warning(f"⚠️ Slot claim rejected for dentist {dentist_id} at {starts_at}")
            raise ConflictError() from e
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"❌ Failed to create booking: {e}")
            raise RepositoryError() from e

        db.refresh(booking)
        return booking

    @staticmethod
    def update_status(
        db: Session,
        booking_id: str,
        new_status: BookingStatus,
        audit_fields: dict,
        expected_version: int,
        extra_fields: Optional[dict] = None,
    ) -> Booking:
        """
        Move a booking to `new_status` if nobody changed it since `expected_version`.

        Slot claims are released in the same transaction when the booking
        leaves the active set.
        """
        values = {**(extra_fields or {}), **audit_fields, "status": BookingStatus(new_status).value}
        return BookingRepository.update_fields(db, booking_id, values, expected_version)

    @staticmethod
    def update_fields(
        db: Session,
        booking_id: str,
        updates: dict,
        expected_version: int,
        reschedule: bool = False,
    ) -> Booking:
        """
        Write booking fields in one guarded transaction.

        A booking that ends up outside the active set loses its slot claims.
        With `reschedule`, an active booking's claims are replaced to match its
        new interval; a clash raises ConflictError and nothing is written.
        """
        try:
            BookingRepository._guarded_update(db, booking_id, updates, expected_version)
            booking = db.get(Booking, booking_id)
            db.refresh(booking)
            if BookingStatus(booking.status) not in ACTIVE_STATUSES:
                BookingRepository._release_slots(db, booking_id)
            elif reschedule:
                BookingRepository._release_slots(db, booking_id)
                BookingRepository._claim_slots(db, booking)
            db.commit()
        except IntegrityError as e:
            db.rollback()
            logger.warning(f"⚠️ Reschedule of booking {booking_id} clashes with another booking")
            raise ConflictError() from e
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"❌ Failed to update booking {booking_id}: {e}")
            raise RepositoryError() from e

        return BookingRepository._reload(db, booking_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _guarded_update(db: Session, booking_id: str, values: dict, expected_version: int) -> None:
        """UPDATE ... WHERE id = ? AND version = ?, distinguishing missing from stale rows"""
        updated = (
            db.query(Booking)
            .filter(Booking.id == booking_id, Booking.version == expected_version)
            .update({**values, "version": Booking.version + 1}, synchronize_session=False)
        )
        if updated:
            return

        db.rollback()
        exists = db.query(Booking.id).filter(Booking.id == booking_id).first()
        if not exists:
            raise NotFoundError("Booking")
        logger.warning(f"⚠️ Booking {booking_id} changed since version {expected_version}")
        raise StaleBookingError()

    @staticmethod
    def _claim_slots(db: Session, booking: Booking) -> None:
        db.add_all(
            BookingSlotClaim(dentist_id=booking.dentist_id, slot_start=minute, booking_id=booking.id)
            for minute in slot_minutes(booking.starts_at, booking.ends_at)
        )
        db.flush()

    @staticmethod
    def _release_slots(db: Session, booking_id: str) -> None:
        db.query(BookingSlotClaim).filter(BookingSlotClaim.booking_id == booking_id).delete(
            synchronize_session=False
        )

    @staticmethod
    def _reload(db: Session, booking_id: str) -> Booking:
        booking = db.get(Booking, booking_id)
        if booking is None:
            raise NotFoundError("Booking")
        db.refresh(booking)
        return booking
