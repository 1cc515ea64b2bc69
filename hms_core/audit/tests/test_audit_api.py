import uuid

import pytest

from hms_core.audit.services import AuditService

pytestmark = pytest.mark.django_db

AUDIT = "/api/v1/audit/events/"


def test_admin_lists_and_filters_events(api_client, user):
    bed_id = uuid.uuid4()
    AuditService.log(event_code="bed.allocated", entity_type="BedAllocation", entity_id=bed_id, actor_user_id=user.id)
    AuditService.log(event_code="patient.registered", entity_type="Patient", entity_id=uuid.uuid4())

    resp = api_client.get(AUDIT)
    assert resp.status_code == 200
    assert len(resp.data) == 2

    resp = api_client.get(AUDIT, {"entity_type": "BedAllocation", "entity_id": str(bed_id)})
    assert [e["event_code"] for e in resp.data] == ["bed.allocated"]

    resp = api_client.get(AUDIT, {"actor_user_id": str(user.id)})
    assert len(resp.data) == 1

    assert len(api_client.get(AUDIT, {"limit": "1"}).data) == 1


def test_bad_filters_are_rejected(api_client):
    resp = api_client.get(AUDIT, {"entity_id": "nope"})
    assert resp.status_code == 400
    assert "entity_id" in resp.data["error"]["details"]

    assert api_client.get(AUDIT, {"actor_user_id": "x"}).status_code == 400


def test_only_admin_reads_the_log(role_client):
    resp = role_client("DOCTOR").get(AUDIT)
    assert resp.status_code == 403
    assert resp.data["error"]["code"] == "permission_denied"


def test_prefix_filter_timeline_and_codes(api_client):
    bill_id = uuid.uuid4()
    AuditService.log(event_code="pharmacy.bill.created", entity_type="PharmacyBill", entity_id=bill_id)
    AuditService.log(event_code="pharmacy.bill.paid", entity_type="PharmacyBill", entity_id=bill_id)
    AuditService.log(event_code="bed.allocated", entity_type="BedAllocation", entity_id=uuid.uuid4())

    resp = api_client.get(AUDIT, {"event_code": "pharmacy.*"})
    assert {e["event_code"] for e in resp.data} == {"pharmacy.bill.created", "pharmacy.bill.paid"}
    assert {e["module"] for e in resp.data} == {"pharmacy"}

    resp = api_client.get(f"{AUDIT}timeline/PharmacyBill/{bill_id}/")
    assert [e["event_code"] for e in resp.data] == ["pharmacy.bill.created", "pharmacy.bill.paid"]

    resp = api_client.get(f"{AUDIT}event-codes/")
    assert resp.data == {"event_codes": ["bed.allocated", "pharmacy.bill.created", "pharmacy.bill.paid"]}


def test_events_carry_the_request_id(api_client):
    resp = api_client.post("/api/v1/patients/", {"name": "Meera Iyer"}, format="json", HTTP_X_REQUEST_ID="reg-42")
    assert resp.status_code == 201

    resp = api_client.get(AUDIT, {"entity_type": "Patient", "entity_id": resp.data["id"]})
    (event,) = resp.data
    assert event["request_id"] == "reg-42"
    assert event["actor_username"] == "testuser"
