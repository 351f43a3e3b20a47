"""Shared test fixtures for dental booking tests."""

import os

# Configure before the package builds its engine
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["DB_LOG_SLOW_QUERIES"] = "false"

from datetime import datetime, timedelta  # noqa: E402
from types import SimpleNamespace  # noqa: E402
from typing import Generator  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from dental_booking import models  # noqa: E402
from dental_booking.auth import Identity  # noqa: E402
from dental_booking.constants import Role  # noqa: E402
from dental_booking.database import Base  # noqa: E402
from dental_booking.domain.bookings.events import BookingEventPublisher  # noqa: E402
from dental_booking.domain.bookings.service import BookingService  # noqa: E402

NOW = datetime(2030, 1, 1, 8, 0)
APPOINTMENT_DAY = datetime(2030, 1, 2)


def at(hour: int, minute: int = 0) -> datetime:
    """A time on the appointment day used across tests"""
    return APPOINTMENT_DAY.replace(hour=hour, minute=minute)


class FixedClock:
    """Clock that only moves when a test moves it."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class EventRecorder:
    """Subscriber that records every booking event it receives."""

    def __init__(self):
        self.events: list[tuple[str, str]] = []

    def __call__(self, event: str, booking) -> None:
        self.events.append((event, booking.id))

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.events]


def seed_clinic(db: Session) -> SimpleNamespace:
    """Users, dentists and services used by most tests"""
    patient = models.User(full_name="Pat Patient", email="patient@example.com", role="PATIENT")
    other_patient = models.User(full_name="Olive Other", email="other@example.com", role="PATIENT")
    dentist_user = models.User(full_name="Dr. Dana", email="dana@example.com", role="DENTIST")
    second_dentist_user = models.User(full_name="Dr. Sam", email="sam@example.com", role="DENTIST")
    admin = models.User(full_name="Ada Admin", email="admin@example.com", role="ADMIN")
    db.add_all([patient, other_patient, dentist_user, second_dentist_user, admin])
    db.flush()

    dentist = models.Dentist(user_id=dentist_user.id, license_number="LIC-001")
    second_dentist = models.Dentist(user_id=second_dentist_user.id, license_number="LIC-002")
    checkup = models.Service(
        name="Check-up", category="general", duration_minutes=30, price=80.0
    )
    whitening = models.Service(
        name="Whitening", category="cosmetic", duration_minutes=60, price=250.0, is_active=False
    )
    db.add_all([dentist, second_dentist, checkup, whitening])
    db.commit()

    return SimpleNamespace(
        patient=patient,
        other_patient=other_patient,
        dentist_user=dentist_user,
        second_dentist_user=second_dentist_user,
        admin=admin,
        dentist=dentist,
        second_dentist=second_dentist,
        service=checkup,
        inactive_service=whitening,
    )


@pytest.fixture
def engine():
    """In-memory SQLite engine shared across threads."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine) -> Generator[Session, None, None]:
    """Database session for one test."""
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


@pytest.fixture
def clinic(db) -> SimpleNamespace:
    return seed_clinic(db)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def publisher(recorder) -> BookingEventPublisher:
    """Publisher with the recorder subscribed to every booking event."""
    from dental_booking.domain.bookings import events

    publisher = BookingEventPublisher()
    for event in (
        events.BOOKING_CREATED,
        events.BOOKING_CONFIRMED,
        events.BOOKING_CANCELLED,
        events.BOOKING_COMPLETED,
        events.BOOKING_NO_SHOW,
        events.BOOKING_UPDATED,
    ):
        publisher.subscribe(event, recorder)
    return publisher


@pytest.fixture
def booking_service(db, clock, publisher) -> BookingService:
    return BookingService(db, clock=clock, publisher=publisher)


@pytest.fixture
def patient(clinic) -> Identity:
    return Identity(user_id=clinic.patient.id, role=Role.PATIENT)


@pytest.fixture
def other_patient(clinic) -> Identity:
    return Identity(user_id=clinic.other_patient.id, role=Role.PATIENT)


@pytest.fixture
def dentist(clinic) -> Identity:
    return Identity(user_id=clinic.dentist_user.id, role=Role.DENTIST)


@pytest.fixture
def second_dentist(clinic) -> Identity:
    return Identity(user_id=clinic.second_dentist_user.id, role=Role.DENTIST)


@pytest.fixture
def admin(clinic) -> Identity:
    return Identity(user_id=clinic.admin.id, role=Role.ADMIN)


@pytest.fixture
def pending_booking(booking_service, clinic, patient):
    """A 10:00-10:30 check-up with the first dentist."""
    return booking_service.create_booking(
        patient,
        dentist_id=clinic.dentist.id,
        service_id=clinic.service.id,
        starts_at=at(10),
        symptoms="Toothache on the left side",
    )
