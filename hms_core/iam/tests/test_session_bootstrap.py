import pytest
from rest_framework.test import APIClient

from hms_core.conftest import make_user

pytestmark = pytest.mark.django_db


def _bootstrap(user):
    c = APIClient()
    c.force_authenticate(user=user)
    res = c.get("/api/v1/session/bootstrap/")
    assert res.status_code == 200
    return res.json()


def test_bootstrap_shape(user, settings):
    body = _bootstrap(user)
    assert body["user"]["id"] == user.id
    assert body["roles"] == ["ADMIN"]
    assert body["api_version"] == settings.HMS_API_VERSION
    assert "server_time" in body
    assert body["profile"] is None


def test_pharmacist_capabilities():
    caps = set(_bootstrap(make_user("pharm", "PHARMACIST"))["permissions"])

    assert "pharmacy.add_batch" in caps
    assert "pharmacy_bills.create" in caps
    assert "beds.allocate" not in caps
    assert "audit.list" not in caps


def test_admin_sees_every_capability(user):
    caps = set(_bootstrap(user)["permissions"])
    assert {"audit.list", "beds.allocate", "bulk_upload.stock_workbook"} <= caps


def test_bootstrap_includes_linked_staff_profile(staff_member):
    nurse = make_user("ravi", "NURSE")
    staff_member.user = nurse
    staff_member.save(update_fields=["user"])

    profile = _bootstrap(nurse)["profile"]
    assert profile["type"] == "staff"
    assert profile["code"] == "EMP0001"
    assert profile["name"] == "Ravi Kumar"
    assert profile["department"] == "Nursing"
