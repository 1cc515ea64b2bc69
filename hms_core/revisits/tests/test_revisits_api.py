from datetime import date, timedelta

import pytest

from hms_core.patients.models import Patient

pytestmark = pytest.mark.django_db

REVISITS = "/api/v1/revisits/"


def test_create_takes_department_and_fee_from_doctor(api_client, patient, doctor, staff_member):
    resp = api_client.post(
        REVISITS,
        {
            "patient": str(patient.id),
            "doctor": str(doctor.id),
            "staff": str(staff_member.id),
            "reason_for_visit": "BP review",
            "visit_type": "review",
        },
        format="json",
    )
    assert resp.status_code == 201, resp.data
    assert resp.data["uhid"] == patient.uhid
    assert resp.data["department"] == "Cardiology"
    assert resp.data["consultation_fee"] == "500.00"
    assert resp.data["staff_name"] == "Ravi Kumar"


def test_create_requires_an_active_patient(api_client, patient):
    assert api_client.post(REVISITS, {"reason_for_visit": "x"}, format="json").status_code == 400

    Patient.objects.filter(id=patient.id).update(status="inactive")
    resp = api_client.post(REVISITS, {"patient": str(patient.id)}, format="json")
    assert resp.status_code == 400
    assert "patient" in resp.data["error"]["details"]


def test_search_patient_by_uhid(api_client, patient):
    api_client.post(
        REVISITS,
        {"patient": str(patient.id), "visit_date": (date.today() - timedelta(days=7)).isoformat()},
        format="json",
    )
    latest = api_client.post(REVISITS, {"patient": str(patient.id)}, format="json").data

    resp = api_client.get(f"{REVISITS}search-patient/", {"uhid": patient.uhid.lower()})
    assert resp.status_code == 200
    assert resp.data["total_visits"] == 2
    assert resp.data["last_visit"]["id"] == latest["id"]

    assert api_client.get(f"{REVISITS}search-patient/").status_code == 400
    assert api_client.get(f"{REVISITS}search-patient/", {"uhid": "NOPE"}).status_code == 404


def test_history_recent_and_stats(api_client, patient):
    for _ in range(3):
        api_client.post(REVISITS, {"patient": str(patient.id)}, format="json")

    resp = api_client.get(f"{REVISITS}history/", {"patient": str(patient.id), "limit": "2"})
    assert len(resp.data) == 2
    assert api_client.get(f"{REVISITS}history/").status_code == 400

    assert len(api_client.get(f"{REVISITS}recent/").data) == 3

    resp = api_client.get(f"{REVISITS}stats/")
    assert resp.data == {"total": 3, "today": 3, "this_month": 3}


def test_update_revisit(api_client, patient, doctor):
    revisit_id = api_client.post(REVISITS, {"patient": str(patient.id)}, format="json").data["id"]

    resp = api_client.patch(
        f"{REVISITS}{revisit_id}/",
        {"current_diagnosis": "Hypertension", "doctor": str(doctor.id), "payment_status": "paid"},
        format="json",
    )
    assert resp.status_code == 200
    assert resp.data["current_diagnosis"] == "Hypertension"
    assert resp.data["doctor"]["id"] == str(doctor.id)
    assert resp.data["payment_status"] == "paid"


def test_pharmacist_cannot_record_visits(role_client, patient):
    resp = role_client("PHARMACIST").post(REVISITS, {"patient": str(patient.id)}, format="json")
    assert resp.status_code == 403
