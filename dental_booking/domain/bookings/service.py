"""Booking service - Business logic for booking operations"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ...auth import Identity
from ...config import BOOKINGS_MAX_PAGE_SIZE
from ...constants import ACTIVE_STATUSES, BookingStatus, PaymentStatus, Role
from ...models import Booking, generate_booking_id
from ...utils.sanitization import validate_and_sanitize_input
from ...utils.timeutils import to_utc_naive, truncate_to_minute, utcnow
from . import events
from .conflicts import SlotConflictChecker
from .exceptions import (
    BookingValidationError,
    ConflictError,
    NotFoundError,
    NoUpdatableFieldsError,
    ServiceInactiveError,
    SlotConflictError,
    StaleBookingError,
)
from .policy import filter_allowed_fields, resolve_actor
from .repository import BookingRepository
from .schemas import CLINICAL_NOTES_MAX_LENGTH, NOTES_MAX_LENGTH, SYMPTOMS_MAX_LENGTH
from .state_machine import BookingStateMachine

logger = logging.getLogger(__name__)

TEXT_FIELD_LIMITS = {
    "symptoms": SYMPTOMS_MAX_LENGTH,
    "notes": NOTES_MAX_LENGTH,
    "clinical_notes": CLINICAL_NOTES_MAX_LENGTH,
}


def _parse_status(value) -> BookingStatus:
    try:
        return BookingStatus(value)
    except ValueError as e:
        raise BookingValidationError(f"Unknown booking status: {value}") from e


def _sanitize_text(field: str, value: Optional[str]) -> Optional[str]:
    try:
        return validate_and_sanitize_input(value, TEXT_FIELD_LIMITS[field])
    except ValueError as e:
        raise BookingValidationError(str(e)) from e


class BookingService:
    """Service layer for booking business logic"""

    def __init__(
        self,
        db: Session,
        clock: Callable[[], datetime] = utcnow,
        publisher: Optional[events.BookingEventPublisher] = None,
    ):
        self.db = db
        self.repo = BookingRepository()
        self.conflicts = SlotConflictChecker(db, self.repo)
        self.state_machine = BookingStateMachine()
        self.clock = clock
        self.publisher = publisher or events.publisher

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_booking(self, identity: Identity, booking_id: str) -> Booking:
        """Get a booking visible to the caller"""
        booking = self._load(booking_id)
        resolve_actor(identity, booking)
        return booking

    def list_bookings(
        self,
        identity: Identity,
        status: Optional[str] = None,
        dentist_id: Optional[int] = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Booking], int]:
        """
        Role-scoped listing: patients see their own bookings, dentists the ones
        assigned to them, admins everything (optionally one dentist's).
        """
        page = max(page, 1)
        limit = min(max(limit, 1), BOOKINGS_MAX_PAGE_SIZE)
        status_value = _parse_status(status).value if status else None

        patient_id = None
        if identity.role == Role.DENTIST:
            profile = self.repo.get_dentist_by_user(self.db, identity.user_id)
            if profile is None:
                logger.warning(f"⚠️ Dentist user {identity.user_id} has no dentist profile")
                return [], 0
            dentist_id = profile.id
        elif identity.role != Role.ADMIN:
            patient_id = identity.user_id

        return self.repo.list_bookings(
            self.db,
            patient_id=patient_id,
            dentist_id=dentist_id,
            status=status_value,
            page=page,
            limit=limit,
        )

    def get_busy_intervals(self, dentist_id: int, day: date) -> list[Booking]:
        """Active bookings occupying any part of `day` for a dentist"""
        if self.repo.get_dentist(self.db, dentist_id) is None:
            raise NotFoundError("Dentist")
        day_start = datetime.combine(day, time.min)
        return self.repo.find_overlapping(
            self.db, dentist_id, day_start, day_start + timedelta(days=1)
        )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_booking(
        self,
        identity: Identity,
        dentist_id: int,
        service_id: int,
        starts_at: datetime,
        notes: Optional[str] = None,
        symptoms: Optional[str] = None,
    ) -> Booking:
        """Book a slot: check the dentist's calendar, snapshot the service, create PENDING"""
        logger.info(f"📅 Booking request from user {identity.user_id} for dentist {dentist_id}")

        now = self.clock()
        starts_at = self._normalize_start(starts_at, now)

        if self.repo.get_dentist(self.db, dentist_id) is None:
            raise NotFoundError("Dentist")

        service = self.repo.get_service(self.db, service_id)
        if service is None:
            raise NotFoundError("Service")
        if not service.is_active:
            logger.warning(f"⚠️ Booking attempted for inactive service {service_id}")
            raise ServiceInactiveError()

        ends_at = starts_at + timedelta(minutes=service.duration_minutes)
        if self.conflicts.check_conflict(dentist_id, starts_at, ends_at):
            raise SlotConflictError()

        try:
            booking = self.repo.create(
                self.db,
                id=generate_booking_id(),
                patient_id=identity.user_id,
                dentist_id=dentist_id,
                service_id=service.id,
                starts_at=starts_at,
                ends_at=ends_at,
                duration_minutes=service.duration_minutes,
                price=service.price,
                status=BookingStatus.PENDING.value,
                payment_status=PaymentStatus.PENDING.value,
                created_by=identity.role.value,
                notes=_sanitize_text("notes", notes),
                symptoms=_sanitize_text("symptoms", symptoms),
                version=1,
                created_at=now,
                updated_at=now,
            )
        except ConflictError as e:
            logger.warning(f"⚠️ Dentist {dentist_id} slot at {starts_at} taken concurrently")
            raise SlotConflictError() from e

        logger.info(f"✅ Booking {booking.id} created: {starts_at:%Y-%m-%d %H:%M}-{ends_at:%H:%M}")
        self.publisher.publish(events.BOOKING_CREATED, booking)
        return booking

    def transition_booking(self, identity: Identity, booking_id: str, requested_status) -> Booking:
        """Move a booking along the lifecycle on behalf of the caller"""
        booking = self._load(booking_id)
        actor = resolve_actor(identity, booking)
        requested = _parse_status(requested_status)
        now = self.clock()

        previous = booking.status
        self.state_machine.validate(previous, requested, actor, booking.starts_at, now)

        updated = self.repo.update_status(
            self.db,
            booking.id,
            requested,
            self.state_machine.audit_fields(requested, now),
            expected_version=booking.version,
        )
        logger.info(
            f"✅ Booking {updated.id}: {previous} → {updated.status} by {actor.value} {identity.user_id}"
        )
        self.publisher.publish_status_change(updated)
        return updated

    def cancel_booking(self, identity: Identity, booking_id: str) -> Booking:
        """Soft-cancel a booking; cancelled_at is stamped by the transition"""
        return self.transition_booking(identity, booking_id, BookingStatus.CANCELLED)

    def update_booking(self, identity: Identity, booking_id: str, requested_fields: dict) -> Booking:
        """
        Apply a partial update. Fields the caller may not write are dropped; a
        status change goes through the state machine and a new start time
        through the conflict checker.
        """
        booking = self._load(booking_id)
        actor = resolve_actor(identity, booking)
        allowed = filter_allowed_fields(actor, booking.status, requested_fields)
        now = self.clock()

        updates = {}
        new_status = None
        reschedule = False

        for field, value in allowed.items():
            if field == "status":
                if value is None:
                    continue
                target = _parse_status(value)
                if target == BookingStatus(booking.status):
                    continue
                self.state_machine.validate(booking.status, target, actor, booking.starts_at, now)
                new_status = target
            elif field == "starts_at":
                if value is None:
                    continue
                starts_at = self._normalize_start(value, now)
                ends_at = starts_at + timedelta(minutes=booking.duration_minutes)
                if starts_at == booking.starts_at:
                    continue
                updates["starts_at"] = starts_at
                updates["ends_at"] = ends_at
                reschedule = True
            elif field == "price":
                if value is None:
                    continue
                if value < 0:
                    raise BookingValidationError("Price must be positive")
                updates["price"] = float(value)
            elif field == "payment_status":
                if value is None:
                    continue
                try:
                    updates["payment_status"] = PaymentStatus(value).value
                except ValueError as e:
                    raise BookingValidationError(f"Unknown payment status: {value}") from e
            else:
                updates[field] = _sanitize_text(field, value)

        if not updates and new_status is None:
            raise NoUpdatableFieldsError()

        if reschedule and BookingStatus(new_status or booking.status) in ACTIVE_STATUSES:
            if self.conflicts.check_conflict(
                booking.dentist_id,
                updates["starts_at"],
                updates["ends_at"],
                exclude_booking_id=booking.id,
            ):
                raise SlotConflictError()

        if new_status is not None:
            updates["status"] = new_status.value
            updates.update(self.state_machine.audit_fields(new_status, now))
        else:
            updates["updated_at"] = now

        try:
            updated = self.repo.update_fields(
                self.db, booking.id, updates, expected_version=booking.version, reschedule=reschedule
            )
        except StaleBookingError:
            raise
        except ConflictError as e:
            raise SlotConflictError() from e

        logger.info(f"✅ Booking {booking.id} updated by {actor.value} {identity.user_id}: {sorted(updates)}")
        if new_status is not None:
            self.publisher.publish_status_change(updated)
        else:
            self.publisher.publish(events.BOOKING_UPDATED, updated)
        return updated

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load(self, booking_id: str) -> Booking:
        booking = self.repo.find_by_id(self.db, booking_id)
        if booking is None:
            raise NotFoundError("Booking")
        return booking

    @staticmethod
    def _normalize_start(starts_at, now: datetime) -> datetime:
        if not isinstance(starts_at, datetime):
            raise BookingValidationError("Start time must be a date and time")
        starts_at = truncate_to_minute(to_utc_naive(starts_at))
        if starts_at <= now:
            raise BookingValidationError("Appointments must start in the future")
        return starts_at
