"""HTTP tests for the bookings API."""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from dental_booking.database import get_db
from dental_booking.main import app
from dental_booking.security_utils import create_jwt_token

SLOT = "2099-06-01T10:00:00Z"
OVERLAPPING_SLOT = "2099-06-01T10:15:00Z"
ADJACENT_SLOT = "2099-06-01T10:30:00Z"


def bearer(user_id: int, role: str) -> dict:
    token = create_jwt_token({"sub": str(user_id), "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def headers(clinic):
    return {
        "patient": bearer(clinic.patient.id, "PATIENT"),
        "other": bearer(clinic.other_patient.id, "PATIENT"),
        "dentist": bearer(clinic.dentist_user.id, "DENTIST"),
        "admin": bearer(clinic.admin.id, "ADMIN"),
    }


@pytest.fixture
def created(client, clinic, headers):
    response = client.post(
        "/bookings",
        json={
            "dentistId": clinic.dentist.id,
            "serviceId": clinic.service.id,
            "startsAt": SLOT,
            "symptoms": "Bleeding gums",
        },
        headers=headers["patient"],
    )
    assert response.status_code == 201
    return response.json()


class TestAuthentication:
    """Tests for bearer token handling."""

    def test_missing_token(self, client):
        response = client.get("/bookings")
        assert response.status_code in (401, 403)

    def test_malformed_token(self, client):
        response = client.get("/bookings", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_bad_signature(self, client, clinic):
        token = bearer(clinic.patient.id, "PATIENT")["Authorization"]
        response = client.get("/bookings", headers={"Authorization": token[:-2] + "xx"})
        assert response.status_code == 401

    def test_expired_token(self, client, clinic):
        token = create_jwt_token(
            {"sub": str(clinic.patient.id), "role": "PATIENT"}, expires_delta=timedelta(minutes=-5)
        )
        response = client.get("/bookings", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.headers["X-Token-Expired"] == "true"

    def test_unknown_role(self, client, clinic):
        response = client.get("/bookings", headers=bearer(clinic.patient.id, "JANITOR"))
        assert response.status_code == 401

    def test_legacy_role_alias(self, client, clinic):
        response = client.get("/bookings", headers=bearer(clinic.patient.id, "USER"))
        assert response.status_code == 200


class TestCreateEndpoint:
    """Tests for POST /bookings."""

    def test_created_booking_shape(self, created, clinic):
        assert created["status"] == "PENDING"
        assert created["paymentStatus"] == "PENDING"
        assert created["patientId"] == clinic.patient.id
        assert created["startsAt"] == "2099-06-01T10:00:00"
        assert created["endsAt"] == "2099-06-01T10:30:00"
        assert created["duration"] == 30
        assert created["price"] == 80.0
        assert created["version"] == 1
        assert created["cancelledAt"] is None

    def test_overlap_returns_conflict(self, client, clinic, headers, created):
        response = client.post(
            "/bookings",
            json={
                "dentistId": clinic.dentist.id,
                "serviceId": clinic.service.id,
                "startsAt": OVERLAPPING_SLOT,
            },
            headers=headers["other"],
        )
        assert response.status_code == 409
        assert response.json() == {
            "detail": "Time slot is not available. Please choose another time.",
            "code": "SLOT_CONFLICT",
        }

    def test_adjacent_slot_accepted(self, client, clinic, headers, created):
        response = client.post(
            "/bookings",
            json={
                "dentistId": clinic.dentist.id,
                "serviceId": clinic.service.id,
                "startsAt": ADJACENT_SLOT,
            },
            headers=headers["other"],
        )
        assert response.status_code == 201

    def test_inactive_service(self, client, clinic, headers):
        response = client.post(
            "/bookings",
            json={
                "dentistId": clinic.dentist.id,
                "serviceId": clinic.inactive_service.id,
                "startsAt": SLOT,
            },
            headers=headers["patient"],
        )
        assert response.status_code == 422
        assert response.json()["code"] == "SERVICE_INACTIVE"

    def test_unknown_dentist(self, client, clinic, headers):
        response = client.post(
            "/bookings",
            json={"dentistId": 9999, "serviceId": clinic.service.id, "startsAt": SLOT},
            headers=headers["patient"],
        )
        assert response.status_code == 404
        assert response.json()["detail"] == "Dentist not found"

    def test_symptoms_too_long(self, client, clinic, headers):
        response = client.post(
            "/bookings",
            json={
                "dentistId": clinic.dentist.id,
                "serviceId": clinic.service.id,
                "startsAt": SLOT,
                "symptoms": "a" * 301,
            },
            headers=headers["patient"],
        )
        assert response.status_code == 422

    def test_past_start(self, client, clinic, headers):
        response = client.post(
            "/bookings",
            json={
                "dentistId": clinic.dentist.id,
                "serviceId": clinic.service.id,
                "startsAt": "2001-01-01T10:00:00Z",
            },
            headers=headers["patient"],
        )
        assert response.status_code == 400


class TestReadEndpoints:
    """Tests for GET /bookings, GET /bookings/{id} and the busy calendar."""

    def test_get_own_booking(self, client, headers, created):
        response = client.get(f"/bookings/{created['id']}", headers=headers["patient"])
        assert response.status_code == 200
        assert response.json()["id"] == created["id"]

    def test_stranger_is_forbidden(self, client, headers, created):
        response = client.get(f"/bookings/{created['id']}", headers=headers["other"])
        assert response.status_code == 403
        assert response.json()["code"] == "PERMISSION_DENIED"

    def test_unknown_booking(self, client, headers):
        response = client.get("/bookings/does-not-exist", headers=headers["admin"])
        assert response.status_code == 404
        assert response.json()["detail"] == "Booking not found"

    def test_list_with_pagination(self, client, headers, created):
        response = client.get("/bookings?page=1&limit=5", headers=headers["patient"])
        assert response.status_code == 200
        body = response.json()
        assert [b["id"] for b in body["bookings"]] == [created["id"]]
        assert body["pagination"] == {"page": 1, "limit": 5, "total": 1, "totalPages": 1}

    def test_list_hides_other_patients_bookings(self, client, headers, created):
        response = client.get("/bookings", headers=headers["other"])
        assert response.json()["bookings"] == []
        assert response.json()["pagination"]["totalPages"] == 0

    def test_list_rejects_unknown_status(self, client, headers):
        response = client.get("/bookings?status=LOST", headers=headers["patient"])
        assert response.status_code == 400

    def test_busy_intervals(self, client, clinic, headers, created):
        response = client.get(
            f"/dentists/{clinic.dentist.id}/busy?date=2099-06-01", headers=headers["other"]
        )
        assert response.status_code == 200
        body = response.json()
        assert body["day"] == "2099-06-01"
        assert body["busy"] == [
            {"startsAt": "2099-06-01T10:00:00", "endsAt": "2099-06-01T10:30:00", "status": "PENDING"}
        ]


class TestWriteEndpoints:
    """Tests for PATCH, transition and DELETE."""

    def test_patient_patch_drops_clinical_notes(self, client, headers, created):
        response = client.patch(
            f"/bookings/{created['id']}",
            json={"symptoms": "Bleeding when brushing", "clinicalNotes": "Gingivitis"},
            headers=headers["patient"],
        )
        assert response.status_code == 200
        assert response.json()["symptoms"] == "Bleeding when brushing"
        assert response.json()["clinicalNotes"] is None

    def test_patch_with_nothing_allowed(self, client, headers, created):
        response = client.patch(
            f"/bookings/{created['id']}",
            json={"clinicalNotes": "Gingivitis"},
            headers=headers["patient"],
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "No valid fields to update"

    def test_dentist_confirms(self, client, headers, created):
        response = client.post(
            f"/bookings/{created['id']}/transition",
            json={"status": "CONFIRMED"},
            headers=headers["dentist"],
        )
        assert response.status_code == 200
        assert response.json()["status"] == "CONFIRMED"
        assert response.json()["version"] == 2

    def test_patient_cannot_confirm(self, client, headers, created):
        response = client.post(
            f"/bookings/{created['id']}/transition",
            json={"status": "CONFIRMED"},
            headers=headers["patient"],
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Cannot change booking status from PENDING to CONFIRMED"

    def test_cancel_is_soft_and_final(self, client, headers, created):
        response = client.delete(f"/bookings/{created['id']}", headers=headers["patient"])
        assert response.status_code == 200
        assert response.json()["status"] == "CANCELLED"
        assert response.json()["cancelledAt"] is not None

        again = client.delete(f"/bookings/{created['id']}", headers=headers["patient"])
        assert again.status_code == 400
        assert again.json()["code"] == "INVALID_TRANSITION"

        still_there = client.get(f"/bookings/{created['id']}", headers=headers["patient"])
        assert still_there.json()["status"] == "CANCELLED"

    def test_admin_reschedule(self, client, headers, created):
        response = client.patch(
            f"/bookings/{created['id']}",
            json={"startsAt": "2099-06-01T15:00:00Z", "price": 50},
            headers=headers["admin"],
        )
        assert response.status_code == 200
        assert response.json()["startsAt"] == "2099-06-01T15:00:00"
        assert response.json()["endsAt"] == "2099-06-01T15:30:00"
        assert response.json()["price"] == 50.0


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}
