from datetime import date

import pytest
from django.utils import timezone

from hms_core.staff.models import Department, Staff, StaffSchedule

pytestmark = pytest.mark.django_db

STAFF = "/api/v1/staff/"


def test_create_staff_issues_employee_id(api_client, department):
    resp = api_client.post(
        STAFF,
        {"first_name": " Lakshmi ", "last_name": "Nair", "role": "Nurse", "department": str(department.id)},
        format="json",
    )
    assert resp.status_code == 201, resp.data
    assert resp.data["employee_id"] == f"EMP{timezone.localdate():%y%m}0001"
    assert resp.data["full_name"] == "Lakshmi Nair"
    assert resp.data["department_name"] == "Nursing"


def test_create_requires_first_name_and_role(api_client):
    resp = api_client.post(STAFF, {"last_name": "Only"}, format="json")
    assert resp.status_code == 400
    assert set(resp.data["error"]["details"]) == {"first_name", "role"}


def test_list_filters(api_client, staff_member):
    Staff.objects.create(employee_id="EMP0002", first_name="Anil", role="Technician", is_active=False)

    resp = api_client.get(STAFF, {"is_active": "true"})
    assert [s["employee_id"] for s in resp.data["results"]] == ["EMP0001"]

    resp = api_client.get(STAFF, {"q": "anil"})
    assert [s["first_name"] for s in resp.data["results"]] == ["Anil"]

    resp = api_client.get(f"{STAFF}roles/")
    assert resp.data == {"roles": ["Nurse", "Technician"]}


def test_stats(api_client, staff_member):
    Staff.objects.create(employee_id="EMP0002", first_name="Anil", role="Technician", is_active=False)

    resp = api_client.get(f"{STAFF}stats/")
    assert resp.data == {
        "total_staff": 2,
        "active_staff": 1,
        "on_leave_staff": 1,
        "department_counts": {"Unassigned": 1, "Nursing": 1},
        "role_counts": {"Nurse": 1, "Technician": 1},
    }


def test_bulk_update_and_delete(api_client, staff_member):
    other = Staff.objects.create(employee_id="EMP0002", first_name="Anil", role="Technician")
    ids = [str(staff_member.id), str(other.id)]

    resp = api_client.post(f"{STAFF}bulk-update/", {"ids": ids, "data": {"is_active": False}}, format="json")
    assert resp.data == {"count": 2}
    assert not Staff.objects.filter(is_active=True).exists()

    resp = api_client.post(f"{STAFF}bulk-update/", {"ids": ids, "data": {"employee_id": "X"}}, format="json")
    assert resp.status_code == 400

    resp = api_client.post(f"{STAFF}bulk-delete/", {"ids": ids}, format="json")
    assert resp.data == {"count": 2}
    assert not Staff.objects.exists()


def test_schedules(api_client, staff_member):
    resp = api_client.post(
        f"{STAFF}schedules/",
        {"staff": str(staff_member.id), "date": "2026-03-02", "shift_start": "08:00", "shift_end": "14:00"},
        format="json",
    )
    assert resp.status_code == 201, resp.data
    schedule_id = resp.data["id"]
    assert resp.data["staff_name"] == "Ravi Kumar"

    # night shifts cross midnight, day shifts may not
    resp = api_client.post(
        f"{STAFF}schedules/",
        {
            "staff": str(staff_member.id),
            "date": "2026-03-02",
            "shift_start": "22:00",
            "shift_end": "06:00",
            "shift_type": "night",
        },
        format="json",
    )
    assert resp.status_code == 201
    resp = api_client.patch(f"{STAFF}schedules/{schedule_id}/", {"shift_end": "07:00"}, format="json")
    assert resp.status_code == 400

    resp = api_client.patch(f"{STAFF}schedules/{schedule_id}/", {"status": "cancelled"}, format="json")
    assert resp.status_code == 200
    assert StaffSchedule.objects.get(id=schedule_id).status == "cancelled"

    resp = api_client.get(f"{STAFF}schedules/", {"staff": str(staff_member.id), "date_from": "2026-03-01"})
    assert resp.data["count"] == 2


def test_departments(api_client, staff_member):
    resp = api_client.get("/api/v1/departments/")
    assert [(d["name"], d["staff_count"]) for d in resp.data] == [("Nursing", 1)]

    assert api_client.post("/api/v1/departments/", {"name": "nursing"}, format="json").status_code == 400
    assert api_client.post("/api/v1/departments/", {"name": "Radiology"}, format="json").status_code == 201
    assert Department.objects.count() == 2


def test_reception_reads_but_cannot_schedule(role_client, staff_member):
    reception = role_client("RECEPTION")
    assert reception.get(f"{STAFF}schedules/").status_code == 200
    resp = reception.post(
        f"{STAFF}schedules/",
        {"staff": str(staff_member.id), "date": str(date.today()), "shift_start": "08:00", "shift_end": "14:00"},
        format="json",
    )
    assert resp.status_code == 403
