from datetime import time
from decimal import Decimal

import pytest
from django.utils import timezone

from hms_core.dashboard.selectors import percentage_change, trend
from hms_core.doctors.models import Appointment

DASH = "/api/v1/dashboard/"


@pytest.mark.parametrize(
    "current,previous,expected",
    [
        (10, 8, "+25.0%"),
        (5, 10, "-50.0%"),
        (1, 3, "-66.7%"),
        (3, 3, "+0.0%"),
        (7, 0, "+0%"),
    ],
)
def test_percentage_change(current, previous, expected):
    assert percentage_change(current, previous) == expected


def test_trend():
    assert trend(2, 1) == "up"
    assert trend(Decimal("1.00"), Decimal("3.00")) == "down"
    assert trend(0, 0) == "stable"


@pytest.mark.django_db
def test_dashboard_payload(api_client, patient, doctor, bed, medication, batch):
    Appointment.objects.create(
        appointment_id="APT0001",
        patient=patient,
        doctor=doctor,
        appointment_date=timezone.localdate(),
        appointment_time=time(10, 30),
    )
    api_client.post(
        "/api/v1/bed-allocations/allocate/",
        {"bed": str(bed.id), "patient": str(patient.id)},
        format="json",
    )
    api_client.post(
        "/api/v1/pharmacy/bills/",
        {"patient": str(patient.id), "items": [{"medication": str(medication.id), "quantity": 10}]},
        format="json",
    )

    resp = api_client.get(DASH)
    assert resp.status_code == 200
    assert set(resp.data) == {
        "stats",
        "recent_appointments",
        "recent_patients",
        "bed_status",
        "department_status",
        "quick_stats",
        "trends",
    }

    stats = resp.data["stats"]
    assert stats["total_patients"] == 1
    assert stats["admitted_patients"] == 1
    assert stats["today_appointments"] == 1
    assert stats["occupied_beds"] == 1
    assert stats["bed_occupancy_rate"] == 100
    assert stats["pending_bills"] == 1
    assert stats["revenue_today"] == "24.00"

    (appt,) = resp.data["recent_appointments"]
    assert appt["patient_initials"] == "AR"
    assert appt["type"] == "Consultation"

    assert resp.data["recent_patients"][0]["condition"] == "Inpatient"
    assert resp.data["quick_stats"]["low_stock_medications"] == 0


@pytest.mark.django_db
def test_single_sections(api_client, patient):
    resp = api_client.get(f"{DASH}trends/")
    assert resp.status_code == 200
    by_metric = {t["metric"]: t for t in resp.data}
    assert by_metric["registrations"]["current"] == 1
    assert by_metric["registrations"]["trend"] == "up"
    assert by_metric["revenue"]["change"] == "+0%"

    resp = api_client.get(f"{DASH}quick-stats/")
    assert resp.data == {
        "staff_on_duty": 0,
        "medicine_requests": 0,
        "discharge_today": 0,
        "low_stock_medications": 0,
    }

    resp = api_client.get(f"{DASH}nope/")
    assert resp.status_code == 404
    assert resp.data["error"]["code"] == "not_found"


@pytest.mark.django_db
def test_every_role_can_read(role_client):
    assert role_client("PHARMACIST").get(DASH).status_code == 200
