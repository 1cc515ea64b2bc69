import logging
import uuid
from decimal import Decimal

import pytest
from rest_framework.exceptions import ValidationError

from hms_core.common.api.pagination import clamp_limit
from hms_core.common.events import publish, subscribe
from hms_core.common.log_context import RequestIdLogFilter
from hms_core.common.money import q2, round_rupees, to_decimal
from hms_core.common.numbering import next_sequence_number
from hms_core.patients.models import Patient


@pytest.mark.django_db
def test_next_sequence_number():
    assert next_sequence_number(model=Patient, field="uhid", prefix="AHX") == "AHX0001"

    Patient.objects.create(uhid="AHX0009", name="A")
    Patient.objects.create(uhid="AHY0500", name="B")
    assert next_sequence_number(model=Patient, field="uhid", prefix="AHX") == "AHX0010"

    # width overflow keeps counting upwards
    Patient.objects.create(uhid="AHX9999", name="C")
    assert next_sequence_number(model=Patient, field="uhid", prefix="AHX") == "AHX10000"
    Patient.objects.create(uhid="AHX10000", name="D")
    assert next_sequence_number(model=Patient, field="uhid", prefix="AHX") == "AHX10001"


def test_money_helpers():
    assert round_rupees(Decimal("3.6")) == Decimal("4.00")
    assert round_rupees("2.5") == Decimal("3.00")
    assert round_rupees("2.49") == Decimal("2.00")
    assert q2("1.005") == Decimal("1.01")
    assert to_decimal("", default=Decimal("0")) == Decimal("0")
    with pytest.raises(ValidationError):
        to_decimal("abc", "rate")
    with pytest.raises(ValidationError):
        to_decimal(None)


def test_clamp_limit():
    assert clamp_limit(None, default=5, maximum=50) == 5
    assert clamp_limit("500", default=5, maximum=50) == 50
    assert clamp_limit("0", default=5, maximum=50) == 1
    assert clamp_limit("x", default=5, maximum=50) == 5


def test_publish_runs_subscribers_in_order():
    seen = []
    name = f"test.{uuid.uuid4().hex}"

    @subscribe(name)
    def first(payload):
        seen.append(("first", payload["n"]))

    @subscribe(name)
    def second(payload):
        seen.append(("second", payload["n"]))

    subscribe(name)(first)
    publish(name, {"n": 1})
    publish("nobody.listens", {"n": 2})

    assert seen == [("first", 1), ("second", 1)]


def test_log_filter_stamps_request_id():
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
    assert RequestIdLogFilter().filter(record) is True
    assert record.request_id == "-"


@pytest.mark.django_db
def test_error_envelope_echoes_request_id(api_client):
    resp = api_client.get(f"/api/v1/patients/{uuid.uuid4()}/", HTTP_X_REQUEST_ID="req-123")
    assert resp.status_code == 404
    assert resp["X-Request-Id"] == "req-123"

    error = resp.data["error"]
    assert error["code"] == "not_found"
    assert error["request_id"] == "req-123"


@pytest.mark.django_db
def test_validation_errors_keep_field_details(api_client):
    resp = api_client.post("/api/v1/patients/", {"name": ""}, format="json")
    assert resp.status_code == 400
    error = resp.data["error"]
    assert error["code"] == "validation_error"
    assert error["message"] == "Request failed."
    assert "name" in error["details"]


@pytest.mark.django_db
def test_unauthenticated_requests_are_rejected(client):
    resp = client.get("/api/v1/patients/")
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "not_authenticated"


def test_orm_errors_translate_to_http_errors():
    from django.core.exceptions import ValidationError as DjangoValidationError
    from django.db import IntegrityError
    from django.db.models import ProtectedError
    from rest_framework.exceptions import NotFound

    from hms_core.common.api.exceptions import ConflictError, _translate

    assert isinstance(_translate(Patient.DoesNotExist()), NotFound)
    assert isinstance(_translate(IntegrityError("dup")), ConflictError)

    protected = _translate(ProtectedError("in use", {Patient(name="x")}))
    assert isinstance(protected, ConflictError)
    assert "Patient" in str(protected.detail)

    invalid = _translate(DjangoValidationError({"name": ["Required."]}))
    assert isinstance(invalid, ValidationError)
    assert invalid.detail["name"] == ["Required."]


@pytest.mark.django_db
def test_health_needs_no_auth(client, settings):
    resp = client.get("/api/v1/health/")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "database": "ok", "version": settings.HMS_API_VERSION}


@pytest.mark.django_db
def test_ensure_roles_is_idempotent_and_grants_admin():
    from django.contrib.auth import get_user_model
    from django.contrib.auth.models import Group
    from django.core.management import call_command

    from hms_core.common.permissions import ALL_ROLES, ROLE_ADMIN

    user = get_user_model().objects.create_user(username="ops", password="pass123")
    call_command("ensure_roles")
    call_command("ensure_roles", admin_user="ops")

    assert set(Group.objects.values_list("name", flat=True)) >= set(ALL_ROLES)
    assert Group.objects.filter(name__in=ALL_ROLES).count() == len(ALL_ROLES)
    assert user.groups.filter(name=ROLE_ADMIN).exists()


@pytest.mark.django_db
def test_ensure_roles_unknown_user():
    from django.core.management import call_command
    from django.core.management.base import CommandError

    with pytest.raises(CommandError):
        call_command("ensure_roles", admin_user="nobody")
