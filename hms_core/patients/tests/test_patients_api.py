from datetime import date
from decimal import Decimal

import pytest
from django.utils import timezone

from hms_core.audit.models import AuditEvent
from hms_core.beds.models import Bed
from hms_core.patients.models import Patient
from hms_core.patients.services import age_from_dob, compute_registration_charges

pytestmark = pytest.mark.django_db


def test_register_issues_sequential_uhids(api_client, settings):
    settings.HMS_UHID_PREFIX = "AH"
    prefix = f"AH{timezone.localdate():%y%m}"

    first = api_client.post("/api/v1/patients/", {"name": "Asha Rao", "phone": "999"}, format="json")
    second = api_client.post("/api/v1/patients/", {"name": "Vikram Shah"}, format="json")

    assert first.status_code == 201, first.data
    assert first.data["uhid"] == f"{prefix}0001"
    assert second.data["uhid"] == f"{prefix}0002"
    assert AuditEvent.objects.filter(event_code="patient.registered").count() == 2


def test_register_derives_age_from_dob(api_client):
    resp = api_client.post(
        "/api/v1/patients/", {"name": "Dob Person", "date_of_birth": "1990-01-01"}, format="json"
    )
    assert resp.status_code == 201
    assert resp.data["age"] == age_from_dob(date(1990, 1, 1))


def test_blank_name_is_rejected(api_client):
    resp = api_client.post("/api/v1/patients/", {"name": "   "}, format="json")
    assert resp.status_code == 400
    assert resp.data["error"]["code"] == "validation_error"


def test_register_with_doctor_and_bed_returns_charges(api_client, doctor, settings):
    settings.HMS_REGISTRATION_FEE = Decimal("100")
    bed = Bed.objects.create(bed_number="ICU-1", daily_rate=Decimal("2500.00"))

    resp = api_client.post(
        "/api/v1/patients/",
        {"name": "Inpatient", "admission_type": "inpatient", "doctor": str(doctor.id), "bed": str(bed.id)},
        format="json",
    )
    assert resp.status_code == 201
    assert resp.data["admission_type"] == "inpatient"
    charges = resp.data["registration_charges"]
    assert charges["total_amount"] == "3100.00"
    assert [row["item"] for row in charges["breakdown"]] == [
        "Registration Fee",
        "Consultation Fee",
        "Bed Charges (per day)",
    ]


def test_outpatients_pay_no_bed_charges():
    out = compute_registration_charges(
        registration_fee=Decimal("100"), consultation_fee=Decimal("500"), bed_daily_rate=Decimal("2500")
    )
    assert out["bed_charges"] == Decimal("0.00")
    assert out["total_amount"] == Decimal("600.00")


def test_age_from_dob_before_and_after_birthday():
    assert age_from_dob(date(2000, 6, 15), today=date(2026, 6, 14)) == 25
    assert age_from_dob(date(2000, 6, 15), today=date(2026, 6, 15)) == 26


def test_search_and_lookup_by_uhid(api_client, patient):
    Patient.objects.create(uhid="AH-TEST-0009", name="Somebody Else", phone="111")

    resp = api_client.get("/api/v1/patients/", {"q": "asha"})
    assert resp.status_code == 200
    assert [p["uhid"] for p in resp.data["results"]] == [patient.uhid]

    resp = api_client.get(f"/api/v1/patients/by-uhid/{patient.uhid.lower()}/")
    assert resp.status_code == 200
    assert resp.data["id"] == str(patient.id)

    resp = api_client.get("/api/v1/patients/by-uhid/NOPE/")
    assert resp.status_code == 404
    assert resp.data["error"]["code"] == "not_found"


def test_uhid_cannot_be_changed(api_client, patient):
    resp = api_client.patch(
        f"/api/v1/patients/{patient.id}/", {"uhid": "HACKED", "phone": "12345"}, format="json"
    )
    assert resp.status_code == 200
    patient.refresh_from_db()
    assert patient.uhid == "AH-TEST-0001"
    assert patient.phone == "12345"


def test_empty_patch_is_rejected(api_client, patient):
    resp = api_client.patch(f"/api/v1/patients/{patient.id}/", {}, format="json")
    assert resp.status_code == 400


def test_summary_collects_related_records(api_client, patient):
    resp = api_client.get(f"/api/v1/patients/{patient.id}/summary/")
    assert resp.status_code == 200
    assert resp.data["patient"]["uhid"] == patient.uhid
    assert resp.data["current_allocation"] is None
    for key in ("bed_allocations", "prescriptions", "revisits", "pharmacy_bills"):
        assert resp.data[key] == []


def test_non_uuid_lookup_is_404(api_client):
    assert api_client.get("/api/v1/patients/not-a-uuid/").status_code == 404


def test_readonly_cannot_register(role_client):
    resp = role_client("READONLY").post("/api/v1/patients/", {"name": "X"}, format="json")
    assert resp.status_code == 403
