"""Booking domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from ...constants import BookingStatus, PaymentStatus

SYMPTOMS_MAX_LENGTH = 300
NOTES_MAX_LENGTH = 500
CLINICAL_NOTES_MAX_LENGTH = 2000

# API field name -> Booking column
UPDATE_FIELD_COLUMNS = {
    "status": "status",
    "symptoms": "symptoms",
    "notes": "notes",
    "clinicalNotes": "clinical_notes",
    "price": "price",
    "paymentStatus": "payment_status",
    "startsAt": "starts_at",
}


class BookingCreate(BaseModel):
    """Schema for requesting a new booking"""

    dentistId: int
    serviceId: int
    startsAt: datetime
    notes: Optional[str] = Field(default=None, max_length=NOTES_MAX_LENGTH)
    symptoms: Optional[str] = Field(default=None, max_length=SYMPTOMS_MAX_LENGTH)


class BookingUpdate(BaseModel):
    """Schema for a partial booking update; what is kept depends on the caller's role"""

    status: Optional[BookingStatus] = None
    symptoms: Optional[str] = Field(default=None, max_length=SYMPTOMS_MAX_LENGTH)
    notes: Optional[str] = Field(default=None, max_length=NOTES_MAX_LENGTH)
    clinicalNotes: Optional[str] = Field(default=None, max_length=CLINICAL_NOTES_MAX_LENGTH)
    price: Optional[float] = Field(default=None, ge=0)
    paymentStatus: Optional[PaymentStatus] = None
    startsAt: Optional[datetime] = None

    def to_field_updates(self) -> dict:
        """Fields the client actually sent, keyed by Booking column name"""
        return {
            UPDATE_FIELD_COLUMNS[key]: value
            for key, value in self.model_dump(exclude_unset=True).items()
        }


class BookingTransition(BaseModel):
    status: BookingStatus


class BookingResponse(BaseModel):
    """Schema for booking response"""

    id: str
    patientId: int
    dentistId: int
    serviceId: int
    startsAt: datetime
    endsAt: datetime
    duration: int
    price: float
    status: BookingStatus
    paymentStatus: PaymentStatus
    symptoms: Optional[str] = None
    notes: Optional[str] = None
    clinicalNotes: Optional[str] = None
    createdBy: Optional[str] = None
    version: int
    createdAt: datetime
    updatedAt: datetime
    cancelledAt: Optional[datetime] = None

    class Config:
        from_attributes = True


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    totalPages: int


class BookingListResponse(BaseModel):
    bookings: list[BookingResponse]
    pagination: Pagination


class BusyInterval(BaseModel):
    startsAt: datetime
    endsAt: datetime
    status: BookingStatus


class BusyIntervalsResponse(BaseModel):
    dentistId: int
    day: date
    busy: list[BusyInterval]
