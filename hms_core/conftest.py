# hms_core/conftest.py
from datetime import date, timedelta
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from rest_framework.test import APIClient

from hms_core.beds.models import Bed, BedType
from hms_core.common.permissions import ALL_ROLES
from hms_core.doctors.models import Doctor
from hms_core.patients.models import Patient
from hms_core.pharmacy.models import Medication, MedicineBatch
from hms_core.staff.models import Department, Staff


def ensure_groups():
    for name in ALL_ROLES:
        Group.objects.get_or_create(name=name)


def make_user(username: str, role: str | None = None):
    ensure_groups()
    User = get_user_model()
    u = User.objects.create_user(username=username, password="pass123", is_active=True)
    if role:
        u.groups.add(Group.objects.get(name=role))
    return u


@pytest.fixture
def user(db):
    """ADMIN user; every module allows ADMIN."""
    return make_user("testuser", "ADMIN")


@pytest.fixture
def api_client(user):
    c = APIClient()
    c.force_authenticate(user=user)
    return c


@pytest.fixture
def role_client(db):
    """
    role_client("PHARMACIST") -> APIClient authenticated as a fresh user in that group.
    """
    created = []

    def _make(role: str) -> APIClient:
        u = make_user(f"user-{role.lower()}-{len(created)}", role)
        created.append(u)
        c = APIClient()
        c.force_authenticate(user=u)
        return c

    return _make


@pytest.fixture
def patient(db):
    return Patient.objects.create(uhid="AH-TEST-0001", name="Asha Rao", phone="9876543210")


@pytest.fixture
def doctor(db):
    return Doctor.objects.create(
        doctor_id="DOC0001",
        name="Meera Iyer",
        specialization="Cardiology",
        department="Cardiology",
        consultation_fee=Decimal("500.00"),
    )


@pytest.fixture
def department(db):
    return Department.objects.create(name="Nursing")


@pytest.fixture
def staff_member(db, department):
    return Staff.objects.create(
        employee_id="EMP0001",
        first_name="Ravi",
        last_name="Kumar",
        role="Nurse",
        department=department,
    )


@pytest.fixture
def bed(db):
    return Bed.objects.create(bed_number="B-101", room_number="101", bed_type=BedType.GENERAL, department="Medicine")


@pytest.fixture
def medication(db):
    return Medication.objects.create(
        medication_code="MED-PARA-0001",
        name="Paracetamol 500mg",
        generic_name="Paracetamol",
        category="Analgesics",
        purchase_price=Decimal("1.50"),
        selling_price=Decimal("2.00"),
        mrp=Decimal("2.50"),
        minimum_stock_level=10,
    )


@pytest.fixture
def batch(db, medication):
    """100 units on the shelf, expiring in a year."""
    b = MedicineBatch.objects.create(
        medication=medication,
        batch_number="PCM001",
        expiry_date=date.today() + timedelta(days=365),
        received_quantity=100,
        current_quantity=100,
        purchase_price=Decimal("1.50"),
        selling_price=Decimal("2.00"),
        mrp=Decimal("2.50"),
    )
    Medication.objects.filter(id=medication.id).update(total_stock=100, available_stock=100)
    medication.refresh_from_db()
    return b
