import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .constants import BookingStatus, PaymentStatus, Role
from .database import Base


def generate_booking_id():
    """Generate an opaque booking identifier"""
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(255), nullable=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(50), nullable=True)
    role = Column(String(20), default=Role.PATIENT.value, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    dentist_profile = relationship("Dentist", back_populates="user", uselist=False)


class Dentist(Base):
    __tablename__ = "dentists"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    specialization = Column(String(100), nullable=False, default="General Dentistry")
    license_number = Column(String(100), unique=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    deleted_at = Column(DateTime, nullable=True, index=True)  # Soft delete
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="dentist_profile")
    bookings = relationship("Booking", back_populates="dentist")


class Service(Base):
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(String(500), nullable=True)
    category = Column(String(50), nullable=False, index=True)  # general, cosmetic, orthodontics, ...
    duration_minutes = Column(Integer, nullable=False)
    price = Column(Float, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="ck_services_positive_duration"),
        CheckConstraint("price >= 0", name="ck_services_non_negative_price"),
    )


class Booking(Base):
    """A patient's appointment with one dentist for one service"""

    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=generate_booking_id)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    dentist_id = Column(Integer, ForeignKey("dentists.id"), nullable=False)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)

    # Scheduling: ends_at is always starts_at + duration_minutes
    starts_at = Column(DateTime, nullable=False)
    ends_at = Column(DateTime, nullable=False)

    # Snapshots of the service at booking time
    duration_minutes = Column(Integer, nullable=False)
    price = Column(Float, nullable=False)

    # PENDING → CONFIRMED → COMPLETED, or CANCELLED / NO_SHOW
    status = Column(String(20), default=BookingStatus.PENDING.value, nullable=False)
    payment_status = Column(String(20), default=PaymentStatus.PENDING.value, nullable=False)
    created_by = Column(String(20), default=Role.PATIENT.value, nullable=False)

    symptoms = Column(Text, nullable=True)  # Patient-written, editable while pending
    notes = Column(Text, nullable=True)
    clinical_notes = Column(Text, nullable=True)  # Dentist/admin only

    # Optimistic concurrency counter, bumped by every repository write
    version = Column(Integer, default=1, nullable=False)

    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)
    cancelled_at = Column(DateTime, nullable=True)

    patient = relationship("User", foreign_keys=[patient_id])
    dentist = relationship("Dentist", back_populates="bookings")
    service = relationship("Service")
    slot_claims = relationship("BookingSlotClaim", back_populates="booking")

    __table_args__ = (
        Index("ix_bookings_dentist_slot", "dentist_id", "starts_at", "ends_at", "status"),
        CheckConstraint("ends_at > starts_at", name="ck_bookings_interval"),
    )


class BookingSlotClaim(Base):
    """One minute of a dentist's calendar held by an active booking.

    The unique constraint is what makes double-booking impossible at write time:
    two overlapping intervals on the same dentist always share at least one
    minute, so the second insert fails even if both requests passed the
    read-time conflict check.
    """

    __tablename__ = "booking_slot_claims"

    id = Column(Integer, primary_key=True)
    dentist_id = Column(Integer, ForeignKey("dentists.id"), nullable=False)
    slot_start = Column(DateTime, nullable=False)
    booking_id = Column(String(36), ForeignKey("bookings.id"), nullable=False, index=True)

    booking = relationship("Booking", back_populates="slot_claims")

    __table_args__ = (
        UniqueConstraint("dentist_id", "slot_start", name="uq_slot_claims_dentist_minute"),
    )
