from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from hms_core.beds.models import AllocationStatus, Bed, BedAllocation, BedStatus
from hms_core.beds.selectors import display_status, occupancy_rate
from hms_core.patients.models import Patient

pytestmark = pytest.mark.django_db

ALLOC = "/api/v1/bed-allocations/"


def _allocate(client, bed, patient, **extra):
    payload = {"bed": str(bed.id), "patient": str(patient.id)}
    payload.update(extra)
    return client.post(f"{ALLOC}allocate/", payload, format="json")


def test_display_status_and_rate():
    assert display_status(BedStatus.OCCUPIED, False) == BedStatus.AVAILABLE
    assert display_status(BedStatus.OCCUPIED, True) == BedStatus.OCCUPIED
    assert display_status(BedStatus.MAINTENANCE, False) == BedStatus.MAINTENANCE
    assert occupancy_rate(1, 3) == 33.3
    assert occupancy_rate(1, 8, places=0) == 13.0
    assert occupancy_rate(0, 0) == 0.0


def test_create_bed_rejects_duplicate_numbers(api_client, bed):
    resp = api_client.post("/api/v1/beds/", {"bed_number": "b-101"}, format="json")
    assert resp.status_code == 400

    resp = api_client.post(
        "/api/v1/beds/", {"bed_number": "ICU-1", "bed_type": "icu", "daily_rate": "3000"}, format="json"
    )
    assert resp.status_code == 201
    assert resp.data["display_status"] == "available"


def test_allocate_occupies_bed_and_admits_patient(api_client, bed, patient, doctor):
    resp = _allocate(api_client, bed, patient, doctor=str(doctor.id), admission_type="emergency")
    assert resp.status_code == 201, resp.data
    assert resp.data["ip_number"].startswith(f"IP{timezone.localdate():%y%m}")
    assert resp.data["status"] == "active"

    bed.refresh_from_db()
    patient.refresh_from_db()
    assert bed.status == BedStatus.OCCUPIED
    assert patient.admission_type == "inpatient"

    resp = api_client.get(f"/api/v1/beds/{bed.id}/")
    assert resp.data["active_allocation"]["patient"]["uhid"] == patient.uhid

    # bed taken, patient already admitted
    other = Patient.objects.create(uhid="AH-TEST-0002", name="Other")
    assert _allocate(api_client, bed, other).status_code == 409
    spare = Bed.objects.create(bed_number="B-102")
    assert _allocate(api_client, spare, patient).status_code == 409


def test_stale_occupied_bed_can_be_allocated(api_client, patient):
    stale = Bed.objects.create(bed_number="B-200", status=BedStatus.OCCUPIED)

    resp = api_client.get("/api/v1/beds/available/")
    assert [b["bed_number"] for b in resp.data] == ["B-200"]

    assert _allocate(api_client, stale, patient).status_code == 201


def test_maintenance_bed_cannot_be_allocated(api_client, patient):
    broken = Bed.objects.create(bed_number="B-300", status=BedStatus.MAINTENANCE)
    assert _allocate(api_client, broken, patient).status_code == 409


def test_discharge_frees_bed(api_client, bed, patient):
    allocation_id = _allocate(api_client, bed, patient).data["id"]

    resp = api_client.post(f"{ALLOC}{allocation_id}/discharge/", {"discharge_notes": "stable"}, format="json")
    assert resp.status_code == 200
    assert resp.data["status"] == "discharged"
    assert resp.data["length_of_stay_days"] == 1

    bed.refresh_from_db()
    patient.refresh_from_db()
    assert bed.status == BedStatus.AVAILABLE
    assert patient.admission_type == "outpatient"

    assert api_client.post(f"{ALLOC}{allocation_id}/discharge/", {}, format="json").status_code == 409


@pytest.mark.parametrize(
    "stay,expected",
    [(timedelta(hours=2), 1), (timedelta(days=1), 1), (timedelta(days=2, hours=3), 3)],
)
def test_length_of_stay_counts_started_days(stay, expected):
    admitted = timezone.now() - timedelta(days=10)
    allocation = BedAllocation(admission_date=admitted, discharge_date=admitted + stay)
    assert allocation.length_of_stay_days == expected


def test_discharge_before_admission_is_rejected(api_client, bed, patient):
    allocation_id = _allocate(api_client, bed, patient).data["id"]
    earlier = (timezone.now() - timedelta(days=2)).isoformat()

    resp = api_client.post(f"{ALLOC}{allocation_id}/discharge/", {"discharge_date": earlier}, format="json")
    assert resp.status_code == 400


def test_transfer_keeps_ip_number(api_client, bed, patient):
    first = _allocate(api_client, bed, patient).data
    icu = Bed.objects.create(bed_number="ICU-2", bed_type="icu")

    resp = api_client.post(f"{ALLOC}{first['id']}/transfer/", {"new_bed": str(icu.id), "reason": "worse"}, format="json")
    assert resp.status_code == 201, resp.data
    assert resp.data["ip_number"] == first["ip_number"]
    assert resp.data["bed"]["bed_number"] == "ICU-2"

    old = BedAllocation.objects.get(id=first["id"])
    assert old.status == AllocationStatus.TRANSFERRED
    assert old.transfer_reason == "worse"

    bed.refresh_from_db()
    icu.refresh_from_db()
    assert (bed.status, icu.status) == (BedStatus.AVAILABLE, BedStatus.OCCUPIED)

    resp = api_client.get(f"{ALLOC}patient/{patient.id}/")
    assert len(resp.data) == 2

    resp = api_client.post(f"{ALLOC}{resp.data[0]['id']}/transfer/", {"new_bed": str(icu.id)}, format="json")
    assert resp.status_code == 400


def test_stats_and_occupancy(api_client, bed, patient):
    Bed.objects.create(bed_number="B-103", department="Medicine")
    Bed.objects.create(bed_number="ICU-3", bed_type="icu", daily_rate=Decimal("2500"))
    _allocate(api_client, bed, patient)

    resp = api_client.get("/api/v1/beds/stats/")
    assert resp.data["total"] == 3
    assert resp.data["occupied"] == 1
    assert resp.data["occupancy_rate"] == 33.3

    resp = api_client.get("/api/v1/beds/occupancy/")
    by_type = {r["bed_type"]: r for r in resp.data["by_type"]}
    assert by_type["general"]["occupancy_rate"] == 50
    assert by_type["icu"]["available"] == 1
    departments = {r["department"]: r["occupied"] for r in resp.data["by_department"]}
    assert departments == {"General": 0, "Medicine": 1}


def test_delete_bed_with_history_is_a_conflict(api_client, bed, patient):
    allocation_id = _allocate(api_client, bed, patient).data["id"]
    api_client.post(f"{ALLOC}{allocation_id}/discharge/", {}, format="json")

    assert api_client.delete(f"/api/v1/beds/{bed.id}/").status_code == 409


def test_pharmacist_cannot_allocate(role_client, bed, patient):
    assert _allocate(role_client("PHARMACIST"), bed, patient).status_code == 403
