import pytest
from django.utils import timezone

from hms_core.audit.models import AuditEvent
from hms_core.prescriptions.models import Prescription
from hms_core.prescriptions.selectors import pending_dispense_count

pytestmark = pytest.mark.django_db

RX = "/api/v1/prescriptions/"


def _prescribe(client, patient, doctor, medication, qty=10):
    return client.post(
        RX,
        {
            "patient": str(patient.id),
            "doctor": str(doctor.id),
            "items": [
                {"medication": str(medication.id), "quantity": qty, "dosage": "500mg", "frequency": "1-0-1"}
            ],
        },
        format="json",
    )


def test_create_prescription(api_client, patient, doctor, medication):
    resp = _prescribe(api_client, patient, doctor, medication)
    assert resp.status_code == 201, resp.data
    assert resp.data["prescription_id"] == f"RX{timezone.localdate():%Y%m%d}0001"
    assert resp.data["status"] == "active"
    assert resp.data["patient"]["uhid"] == patient.uhid
    (item,) = resp.data["items"]
    assert item["frequency"] == "1-0-1"
    assert item["status"] == "pending"

    assert AuditEvent.objects.filter(event_code="prescription.created").exists()
    assert pending_dispense_count() == 1


def test_create_needs_items(api_client, patient, doctor):
    resp = api_client.post(RX, {"patient": str(patient.id), "doctor": str(doctor.id), "items": []}, format="json")
    assert resp.status_code == 400


def test_bill_against_prescription_dispenses_items(api_client, patient, doctor, medication, batch):
    rx_id = _prescribe(api_client, patient, doctor, medication).data["id"]

    def bill(qty):
        return api_client.post(
            "/api/v1/pharmacy/bills/",
            {
                "patient": str(patient.id),
                "prescription_id": rx_id,
                "items": [{"medication": str(medication.id), "quantity": qty}],
            },
            format="json",
        )

    assert bill(6).status_code == 201
    resp = api_client.get(f"{RX}{rx_id}/")
    assert resp.data["status"] == "active"
    assert resp.data["items"][0]["dispensed_quantity"] == 6

    assert bill(4).status_code == 201
    resp = api_client.get(f"{RX}{rx_id}/")
    assert resp.data["status"] == "completed"
    assert resp.data["items"][0]["status"] == "dispensed"
    assert pending_dispense_count() == 0

    # dispensed prescriptions stay on record
    assert api_client.delete(f"{RX}{rx_id}/").status_code == 409


def test_status_transitions(api_client, patient, doctor, medication):
    rx_id = _prescribe(api_client, patient, doctor, medication).data["id"]

    resp = api_client.patch(f"{RX}{rx_id}/status/", {"status": "cancelled"}, format="json")
    assert resp.status_code == 200
    assert resp.data["status"] == "cancelled"

    resp = api_client.patch(f"{RX}{rx_id}/status/", {"status": "active"}, format="json")
    assert resp.status_code == 409


def test_replace_medicines(api_client, patient, doctor, medication):
    rx_id = _prescribe(api_client, patient, doctor, medication).data["id"]

    resp = api_client.put(
        f"{RX}{rx_id}/medicines/",
        {"items": [{"medication": str(medication.id), "quantity": 3, "duration": "3 days"}]},
        format="json",
    )
    assert resp.status_code == 200
    assert [(i["quantity"], i["duration"]) for i in resp.data["items"]] == [(3, "3 days")]


def test_list_stats_and_delete(api_client, patient, doctor, medication):
    rx_id = _prescribe(api_client, patient, doctor, medication).data["id"]

    resp = api_client.get(RX, {"q": patient.uhid})
    assert resp.data["count"] == 1

    resp = api_client.get(f"{RX}stats/")
    assert resp.data == {"total": 1, "active": 1, "completed": 0, "today": 1}

    resp = api_client.get(f"{RX}medicine-search/", {"q": "para"})
    assert [m["id"] for m in resp.data] == [str(medication.id)]

    assert api_client.delete(f"{RX}{rx_id}/").status_code == 204
    assert not Prescription.objects.exists()


def test_nurse_reads_but_cannot_prescribe(role_client, patient, doctor, medication):
    nurse = role_client("NURSE")
    assert _prescribe(nurse, patient, doctor, medication).status_code == 403
    assert nurse.get(RX).status_code == 200
