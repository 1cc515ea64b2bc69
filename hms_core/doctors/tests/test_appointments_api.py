from datetime import timedelta

import pytest
from django.utils import timezone

from hms_core.audit.models import AuditEvent
from hms_core.doctors.models import Appointment, AppointmentStatus, Doctor

pytestmark = pytest.mark.django_db


def _tomorrow() -> str:
    return (timezone.localdate() + timedelta(days=1)).isoformat()


def _book(api_client, patient, doctor, at="10:00", **extra):
    payload = {
        "patient": str(patient.id),
        "doctor": str(doctor.id),
        "appointment_date": _tomorrow(),
        "appointment_time": at,
    }
    payload.update(extra)
    return api_client.post("/api/v1/appointments/", payload, format="json")


def test_book_appointment_and_walk_it_through_its_lifecycle(api_client, patient, doctor):
    resp = _book(api_client, patient, doctor)
    assert resp.status_code == 201, resp.data
    appt_id = resp.data["id"]
    assert resp.data["status"] == AppointmentStatus.SCHEDULED
    assert resp.data["appointment_id"].startswith("APT")
    assert resp.data["warnings"] == []

    assert AuditEvent.objects.filter(event_code="appointment.created", entity_id=appt_id).exists()

    # start needs a confirmed appointment
    resp = api_client.post(f"/api/v1/appointments/{appt_id}/start/", {}, format="json")
    assert resp.status_code == 409

    for step, expected in [
        ("confirm", AppointmentStatus.CONFIRMED),
        ("start", AppointmentStatus.IN_PROGRESS),
        ("complete", AppointmentStatus.COMPLETED),
    ]:
        resp = api_client.post(f"/api/v1/appointments/{appt_id}/{step}/", {}, format="json")
        assert resp.status_code == 200, resp.data
        assert resp.data["status"] == expected

    resp = api_client.post(f"/api/v1/appointments/{appt_id}/cancel/", {"reason": "late"}, format="json")
    assert resp.status_code == 409
    assert resp.data["error"]["code"] == "conflict"


def test_doctor_double_booking_is_rejected(api_client, patient, doctor):
    from hms_core.patients.models import Patient

    other = Patient.objects.create(uhid="AH-TEST-0002", name="Other Person")

    assert _book(api_client, patient, doctor, at="10:00").status_code == 201

    resp = _book(api_client, other, doctor, at="10:15")
    assert resp.status_code == 400
    assert "conflicting appointment at 10:00" in str(resp.data["error"]["details"])


def test_back_to_back_slots_are_fine(api_client, patient, doctor):
    assert _book(api_client, patient, doctor, at="10:00").status_code == 201
    assert _book(api_client, patient, doctor, at="10:30").status_code == 201


def test_past_appointment_is_rejected(api_client, patient, doctor):
    resp = _book(api_client, patient, doctor)
    assert resp.status_code == 201

    yesterday = (timezone.localdate() - timedelta(days=1)).isoformat()
    resp = api_client.post(
        "/api/v1/appointments/validate/",
        {
            "patient": str(patient.id),
            "doctor": str(doctor.id),
            "appointment_date": yesterday,
            "appointment_time": "10:00",
        },
        format="json",
    )
    assert resp.status_code == 200
    assert resp.data["is_valid"] is False
    assert any("past" in e for e in resp.data["errors"])


def test_daily_limit(api_client, patient, doctor, settings):
    settings.HMS_MAX_APPOINTMENTS_PER_DAY = 1
    assert _book(api_client, patient, doctor, at="09:00").status_code == 201

    from hms_core.patients.models import Patient

    other = Patient.objects.create(uhid="AH-TEST-0003", name="Third Person")
    resp = _book(api_client, other, doctor, at="15:00")
    assert resp.status_code == 400
    assert "maximum daily appointment limit" in str(resp.data["error"]["details"])


def test_reschedule_frees_the_old_slot(api_client, patient, doctor):
    appt_id = _book(api_client, patient, doctor, at="10:00").data["id"]

    resp = api_client.post(
        f"/api/v1/appointments/{appt_id}/reschedule/",
        {"appointment_date": _tomorrow(), "appointment_time": "11:00"},
        format="json",
    )
    assert resp.status_code == 200, resp.data
    assert resp.data["appointment_time"] == "11:00:00"

    resp = api_client.get(f"/api/v1/doctors/{doctor.id}/available-slots/", {"date": _tomorrow(), "time": "10:00"})
    assert resp.status_code == 200
    assert resp.data == {"available": True}


def test_alternatives_skip_booked_slots(api_client, patient, doctor):
    _book(api_client, patient, doctor, at="09:00")

    resp = api_client.post(
        "/api/v1/appointments/alternatives/",
        {"doctor": str(doctor.id), "appointment_date": _tomorrow(), "limit": 2},
        format="json",
    )
    assert resp.status_code == 200
    assert [r["time"] for r in resp.data] == ["09:30", "10:00"]


def test_alternatives_skip_a_full_day(api_client, patient, doctor, settings):
    settings.HMS_MAX_APPOINTMENTS_PER_DAY = 1
    _book(api_client, patient, doctor, at="09:00")

    resp = api_client.post(
        "/api/v1/appointments/alternatives/",
        {"doctor": str(doctor.id), "appointment_date": _tomorrow(), "limit": 1},
        format="json",
    )
    assert resp.status_code == 200
    day_after = (timezone.localdate() + timedelta(days=2)).isoformat()
    assert [(r["date"], r["time"]) for r in resp.data] == [(day_after, "09:00")]


def test_alternatives_skip_the_patients_own_bookings(api_client, patient, doctor):
    other = Doctor.objects.create(doctor_id="DOC0002", name="Arun Das", specialization="Neurology")
    _book(api_client, patient, doctor, at="09:00")

    resp = api_client.post(
        "/api/v1/appointments/alternatives/",
        {"doctor": str(other.id), "patient": str(patient.id), "appointment_date": _tomorrow(), "limit": 1},
        format="json",
    )
    assert [r["time"] for r in resp.data] == ["09:30"]


def test_available_slots_and_with_slots(api_client, patient, doctor):
    _book(api_client, patient, doctor, at="09:00")

    resp = api_client.get(f"/api/v1/doctors/{doctor.id}/available-slots/", {"date": _tomorrow()})
    assert resp.status_code == 200
    assert "09:00" not in resp.data["morning"]
    assert resp.data["morning"][0] == "09:30"

    resp = api_client.get("/api/v1/doctors/with-slots/", {"date": _tomorrow(), "specialization": "cardiology"})
    assert resp.status_code == 200
    assert [row["doctor"]["id"] for row in resp.data] == [str(doctor.id)]


def test_reception_can_book_but_not_start(role_client, patient, doctor):
    reception = role_client("RECEPTION")
    resp = _book(reception, patient, doctor)
    assert resp.status_code == 201
    appt_id = resp.data["id"]

    assert reception.post(f"/api/v1/appointments/{appt_id}/confirm/", {}, format="json").status_code == 200
    resp = reception.post(f"/api/v1/appointments/{appt_id}/start/", {}, format="json")
    assert resp.status_code == 403

    assert Appointment.objects.get(id=appt_id).status == AppointmentStatus.CONFIRMED
