import pytest
from rest_framework.test import APIClient

from hms_core.audit.models import AuditEvent
from hms_core.iam.services import group_for_role, login_email

pytestmark = pytest.mark.django_db

ACCOUNTS = "/api/v1/accounts/"
PASSWORD = "Ward-Round-2026"


def _create(client, entity_type, entity, login, **extra):
    payload = {"entity_type": entity_type, "entity_id": str(entity.id), "login": login, "password": PASSWORD}
    payload.update(extra)
    return client.post(ACCOUNTS, payload, format="json")


def test_login_email_and_role_mapping(settings):
    settings.HMS_LOGIN_EMAIL_DOMAIN = "hospital.test"
    assert login_email("9876543210") == "9876543210@hospital.test"
    assert login_email(" Ravi@Hospital.TEST ") == "ravi@hospital.test"
    assert group_for_role("Lab Technician") == "LAB"
    assert group_for_role("Receptionist") == "RECEPTION"
    assert group_for_role("pharmacist") == "PHARMACIST"


def test_staff_account_links_profile(api_client, staff_member, settings):
    settings.HMS_LOGIN_EMAIL_DOMAIN = "hospital.test"
    resp = _create(api_client, "staff", staff_member, "9876500000")
    assert resp.status_code == 201, resp.data
    assert resp.data["user"]["username"] == "EMP0001"
    assert resp.data["user"]["email"] == "9876500000@hospital.test"
    assert resp.data["roles"] == ["NURSE"]
    assert resp.data["profile"]["type"] == "staff"

    staff_member.refresh_from_db()
    assert staff_member.user.username == "EMP0001"
    assert AuditEvent.objects.filter(event_code="iam.account.created", entity_id=staff_member.id).exists()

    # one login per profile
    assert _create(api_client, "staff", staff_member, "other@hospital.test").status_code == 409


def test_doctor_account_and_login_by_mobile(api_client, doctor, settings):
    settings.HMS_LOGIN_EMAIL_DOMAIN = "hospital.test"
    resp = _create(api_client, "doctor", doctor, "9000000001")
    assert resp.status_code == 201, resp.data
    assert resp.data["roles"] == ["DOCTOR"]

    c = APIClient()
    resp = c.post("/api/v1/auth/login/", {"username": "9000000001", "password": PASSWORD}, format="json")
    assert resp.status_code == 200
    assert resp.data["profile"]["code"] == doctor.doctor_id


def test_account_input_errors(api_client, staff_member):
    assert _create(api_client, "staff", staff_member, "not an email").status_code == 400
    assert _create(api_client, "staff", staff_member, "a@b.test", password="123").status_code == 400
    assert _create(api_client, "staff", staff_member, "a@b.test", role="Astronaut").status_code == 400


def test_deactivated_staff_cannot_log_in(api_client, staff_member):
    _create(api_client, "staff", staff_member, "ravi@hospital.test")
    staff_member.refresh_from_db()
    staff_member.is_active = False
    staff_member.save(update_fields=["is_active"])

    resp = APIClient().post("/api/v1/auth/login/", {"username": "ravi@hospital.test", "password": PASSWORD}, format="json")
    assert resp.status_code == 401


def test_only_admin_creates_accounts(role_client, staff_member):
    assert _create(role_client("RECEPTION"), "staff", staff_member, "x@hospital.test").status_code == 403
