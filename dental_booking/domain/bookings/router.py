"""Booking router - FastAPI endpoints for booking operations"""

import logging
import math
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import Identity, get_current_identity
from ...config import BOOKINGS_DEFAULT_PAGE_SIZE, BOOKINGS_MAX_PAGE_SIZE
from ...database import get_db
from ...models import Booking
from .schemas import (
    BookingCreate,
    BookingListResponse,
    BookingResponse,
    BookingTransition,
    BookingUpdate,
    BusyInterval,
    BusyIntervalsResponse,
    Pagination,
)
from .service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["Bookings"])
dentists_router = APIRouter(prefix="/dentists", tags=["Dentists"])


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db)


def to_response(booking: Booking) -> BookingResponse:
    return BookingResponse(
        id=booking.id,
        patientId=booking.patient_id,
        dentistId=booking.dentist_id,
        serviceId=booking.service_id,
        startsAt=booking.starts_at,
        endsAt=booking.ends_at,
        duration=booking.duration_minutes,
        price=booking.price,
        status=booking.status,
        paymentStatus=booking.payment_status,
        symptoms=booking.symptoms,
        notes=booking.notes,
        clinicalNotes=booking.clinical_notes,
        createdBy=booking.created_by,
        version=booking.version,
        createdAt=booking.created_at,
        updatedAt=booking.updated_at,
        cancelledAt=booking.cancelled_at,
    )


# ============================================================================
# CORE BOOKING OPERATIONS
# ============================================================================


@router.post("", response_model=BookingResponse, status_code=201)
async def create_booking(
    data: BookingCreate,
    identity: Identity = Depends(get_current_identity),
    service: BookingService = Depends(get_booking_service),
):
    """Request a new appointment (starts PENDING)"""
    booking = service.create_booking(
        identity,
        dentist_id=data.dentistId,
        service_id=data.serviceId,
        starts_at=data.startsAt,
        notes=data.notes,
        symptoms=data.symptoms,
    )
    return to_response(booking)


@router.get("", response_model=BookingListResponse)
async def list_bookings(
    status: Optional[str] = Query(None, description="Filter by booking status"),
    dentistId: Optional[int] = Query(None, description="Filter by dentist"),
    page: int = Query(1, ge=1),
    limit: int = Query(BOOKINGS_DEFAULT_PAGE_SIZE, ge=1, le=BOOKINGS_MAX_PAGE_SIZE),
    identity: Identity = Depends(get_current_identity),
    service: BookingService = Depends(get_booking_service),
):
    """List the caller's bookings, newest appointment first"""
    bookings, total = service.list_bookings(
        identity, status=status, dentist_id=dentistId, page=page, limit=limit
    )
    return BookingListResponse(
        bookings=[to_response(b) for b in bookings],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            totalPages=math.ceil(total / limit),
        ),
    )


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    identity: Identity = Depends(get_current_identity),
    service: BookingService = Depends(get_booking_service),
):
    """Get a booking the caller is a party to"""
    return to_response(service.get_booking(identity, booking_id))


@router.patch("/{booking_id}", response_model=BookingResponse)
async def update_booking(
    booking_id: str,
    data: BookingUpdate,
    identity: Identity = Depends(get_current_identity),
    service: BookingService = Depends(get_booking_service),
):
    """Update the booking fields the caller's role allows"""
    booking = service.update_booking(identity, booking_id, data.to_field_updates())
    return to_response(booking)


@router.post("/{booking_id}/transition", response_model=BookingResponse)
async def transition_booking(
    booking_id: str,
    data: BookingTransition,
    identity: Identity = Depends(get_current_identity),
    service: BookingService = Depends(get_booking_service),
):
    """Confirm, complete, cancel or mark a booking as no-show"""
    return to_response(service.transition_booking(identity, booking_id, data.status))


@router.delete("/{booking_id}", response_model=BookingResponse)
async def cancel_booking(
    booking_id: str,
    identity: Identity = Depends(get_current_identity),
    service: BookingService = Depends(get_booking_service),
):
    """Cancel a booking (kept on record as CANCELLED)"""
    return to_response(service.cancel_booking(identity, booking_id))


# ============================================================================
# DENTIST CALENDAR
# ============================================================================


@dentists_router.get("/{dentist_id}/busy", response_model=BusyIntervalsResponse)
async def get_busy_intervals(
    dentist_id: int,
    day: date = Query(..., alias="date", description="Calendar day, YYYY-MM-DD"),
    identity: Identity = Depends(get_current_identity),
    service: BookingService = Depends(get_booking_service),
):
    """Taken intervals for a dentist on one day, so the booking UI can disable them"""
    bookings = service.get_busy_intervals(dentist_id, day)
    return BusyIntervalsResponse(
        dentistId=dentist_id,
        day=day,
        busy=[
            BusyInterval(startsAt=b.starts_at, endsAt=b.ends_at, status=b.status)
            for b in bookings
        ],
    )


__all__ = [
    "router",
    "dentists_router",
    "create_booking",
    "list_bookings",
    "get_booking",
    "update_booking",
    "transition_booking",
    "cancel_booking",
    "get_busy_intervals",
]
